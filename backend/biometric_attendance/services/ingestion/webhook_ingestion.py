"""
Push ingestion: one authenticated webhook delivery becomes one sync attempt.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from biometric_attendance.integrations.devices.registry import AdapterRegistry
from biometric_attendance.models.sync_log import SyncAttemptStatus, SyncType
from biometric_attendance.services.ingestion.reconciliation import ReconciliationEngine
from biometric_attendance.services.ingestion.security_gate import DeviceSecurityGate
from biometric_attendance.services.ingestion.sync_ledger import SyncLedger


logger = logging.getLogger(__name__)


class PayloadValidationError(Exception):
    """Webhook body is not JSON or not a supported shape. Maps to 400."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


@dataclass
class WebhookIngestionResult:
    attempt_id: int
    records_synced: int
    errors: List[str] = field(default_factory=list)

    @property
    def status(self) -> SyncAttemptStatus:
        return SyncAttemptStatus.FAILED if self.errors else SyncAttemptStatus.SUCCESS

    def to_response(self) -> Dict[str, Any]:
        response: Dict[str, Any] = {"success": True, "records_synced": self.records_synced}
        if self.errors:
            response["errors"] = self.errors
        return response


def parse_payload(body: Union[bytes, str]) -> Any:
    try:
        return json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise PayloadValidationError(f"Malformed JSON body: {e}")


def extract_records(payload: Any) -> List[Any]:
    """Accept ``{"logs": [...]}``, a single flat record or a bare list."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        if "logs" in payload:
            logs = payload["logs"]
            if not isinstance(logs, list):
                raise PayloadValidationError("'logs' must be a list")
            return logs
        return [payload]
    raise PayloadValidationError("Body must be a JSON object or array")


class WebhookIngestionService:
    def __init__(
        self,
        db: AsyncSession,
        registry: AdapterRegistry,
        gate: Optional[DeviceSecurityGate] = None,
        ledger: Optional[SyncLedger] = None,
        engine: Optional[ReconciliationEngine] = None
    ):
        self.db = db
        self.registry = registry
        self.ledger = ledger or SyncLedger(db)
        self.gate = gate or DeviceSecurityGate(db, ledger=self.ledger)
        self.engine = engine or ReconciliationEngine(db)

    async def ingest(
        self,
        body: Union[bytes, str],
        device_serial: Optional[str],
        device_secret: Optional[str],
        nonce: Optional[str] = None,
        request_timestamp: Optional[str] = None,
        client_ip: Optional[str] = None
    ) -> WebhookIngestionResult:
        """
        Authenticate, normalize and reconcile one delivery.

        The attempt succeeds only when every record was normalized and merged;
        otherwise it is recorded as failed with the errors joined by "; ".
        Events merged before a failure stay committed.

        Raises:
            DeviceAuthenticationError: 401
            ReplayError: 409
            PayloadValidationError: 400
        """
        device = await self.gate.authenticate(
            device_serial,
            device_secret,
            nonce=nonce,
            request_timestamp=request_timestamp,
            client_ip=client_ip
        )

        records = extract_records(parse_payload(body))
        normalized = self.registry.normalize(
            device.company, records, default_device_id=device.device_serial
        )

        attempt_id = await self.ledger.start_attempt(device.id, SyncType.WEBHOOK)
        try:
            outcome = await self.engine.reconcile_batch(normalized.events, device.id)
        except Exception as e:
            await self.db.rollback()
            await self.ledger.complete_attempt(attempt_id, SyncAttemptStatus.FAILED, 0, str(e))
            raise

        result = WebhookIngestionResult(
            attempt_id=attempt_id,
            records_synced=outcome.records_synced,
            errors=normalized.errors + outcome.errors
        )
        await self.ledger.complete_attempt(
            attempt_id,
            result.status,
            result.records_synced,
            "; ".join(result.errors) if result.errors else None
        )
        await self.ledger.mark_device_synced(device.id)

        logger.info(
            f"Webhook from {device.device_serial}: {result.records_synced} of "
            f"{len(records)} records synced"
        )
        return result
