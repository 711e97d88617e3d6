"""
Data models for queue messages.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HitEvent(BaseModel):
    """
    Event model for hit tracking.

    Published to the queue when a visitor is redirected; the hit worker turns
    it into a Hit row. The timestamp is captured at redirect time, so a slow
    worker does not shift the recorded visit time.
    """

    destination_id: uuid.UUID = Field(..., description="The destination that was resolved")
    alias_id: Optional[uuid.UUID] = Field(None, description="The alias used, if any")
    timestamp: datetime = Field(default_factory=_utcnow, description="When the hit occurred")

    # Request metadata
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="User agent string")

    # Set by the queue backend when consumed, used for acknowledgment
    message_id: Optional[str] = Field(None, exclude=True)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "destination_id": "0b6f0c7e-3c55-4c1b-9f5e-6f0f4a4c2b1d",
                "alias_id": None,
                "timestamp": "2025-10-29T10:30:00+00:00",
                "ip_address": "192.168.1.1",
                "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0",
            }
        }
    )
