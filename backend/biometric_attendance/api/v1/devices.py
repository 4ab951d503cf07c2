"""
API endpoints for biometric device ingestion
"""

from fastapi import APIRouter, HTTPException, Depends, Header, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from biometric_attendance.core.database import get_db
from biometric_attendance.integrations.devices.registry import AdapterRegistry, get_adapter_registry
from biometric_attendance.services.ingestion import (
    DeviceAuthenticationError,
    DevicePullOrchestrator,
    NO_PULL_DEVICES_MESSAGE,
    PayloadValidationError,
    ReplayError,
    WebhookIngestionService,
)
from biometric_attendance.schemas.device_ingest import AutoSyncResponse, WebhookIngestResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/webhook", response_model=WebhookIngestResponse, response_model_exclude_none=True)
async def receive_device_webhook(
    request: Request,
    x_device_id: Optional[str] = Header(None),
    x_device_secret: Optional[str] = Header(None),
    x_nonce: Optional[str] = Header(None),
    x_timestamp: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    registry: AdapterRegistry = Depends(get_adapter_registry)
):
    """Receive pushed attendance logs from a device"""
    body = await request.body()
    client_ip = request.client.host if request.client else None

    service = WebhookIngestionService(db, registry)
    try:
        result = await service.ingest(
            body,
            device_serial=x_device_id,
            device_secret=x_device_secret,
            nonce=x_nonce,
            request_timestamp=x_timestamp,
            client_ip=client_ip
        )
    except DeviceAuthenticationError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message)
    except ReplayError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except PayloadValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except Exception:
        logger.exception(f"Webhook processing failed for device {x_device_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error"
        )

    return WebhookIngestResponse(**result.to_response())


@router.post("/auto-sync", response_model=AutoSyncResponse, response_model_exclude_none=True)
async def trigger_auto_sync(
    db: AsyncSession = Depends(get_db),
    registry: AdapterRegistry = Depends(get_adapter_registry)
):
    """Run one pull cycle over all enabled api_pull devices"""
    try:
        results = await DevicePullOrchestrator(db, registry).run_cycle()
    except Exception:
        logger.exception("Auto-sync cycle failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error"
        )

    if not results:
        return AutoSyncResponse(results=[], message=NO_PULL_DEVICES_MESSAGE)
    return AutoSyncResponse(results=[r.to_dict() for r in results])
