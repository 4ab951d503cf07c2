"""
Pydantic schemas for device ingestion endpoints
"""

from pydantic import BaseModel, Field
from typing import List, Optional


class WebhookIngestResponse(BaseModel):
    """Result of one webhook delivery"""
    success: bool = True
    records_synced: int = Field(ge=0)
    errors: Optional[List[str]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "records_synced": 2,
                "errors": ["Student not found for biometric ID: 9999"]
            }
        }


class DeviceSyncResultSchema(BaseModel):
    """Outcome for one device in a pull cycle"""
    device: str
    status: str
    records: Optional[int] = None
    error: Optional[str] = None


class AutoSyncResponse(BaseModel):
    """Outcome of one pull cycle"""
    results: List[DeviceSyncResultSchema] = []
    message: Optional[str] = None
