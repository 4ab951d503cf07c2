"""
Device attendance ingestion: security gate, reconciliation, ledger and the
push/pull entry points.
"""

from .sync_ledger import SyncLedger, SyncAttemptFinalizedError
from .security_gate import DeviceSecurityGate, DeviceAuthenticationError, ReplayError
from .reconciliation import ReconciliationEngine, ReconciliationResult, StudentNotFoundError
from .webhook_ingestion import WebhookIngestionService, WebhookIngestionResult, PayloadValidationError
from .pull_orchestrator import DevicePullOrchestrator, DeviceSyncResult, NO_PULL_DEVICES_MESSAGE

__all__ = [
    "SyncLedger",
    "SyncAttemptFinalizedError",
    "DeviceSecurityGate",
    "DeviceAuthenticationError",
    "ReplayError",
    "ReconciliationEngine",
    "ReconciliationResult",
    "StudentNotFoundError",
    "WebhookIngestionService",
    "WebhookIngestionResult",
    "PayloadValidationError",
    "DevicePullOrchestrator",
    "DeviceSyncResult",
    "NO_PULL_DEVICES_MESSAGE",
]
