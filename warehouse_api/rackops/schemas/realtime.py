from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class WsEnvelope(BaseModel):
    """Envelope for WebSocket messages."""
    type: str = Field(..., description="Message type (e.g., 'rack_inventory.UPDATE').")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Message payload.")
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Timestamp (UTC).")
    user_id: Optional[str] = Field(default=None, description="User whose action caused the change, if known.")
    channel: Optional[str] = Field(default=None, description="Table the change belongs to.")


class ChangeEvent(BaseModel):
    """A committed row change on one of the watched tables."""
    table: str = Field(..., description="Table name (e.g., 'rack_inventory').")
    event: Literal["INSERT", "UPDATE", "DELETE"] = Field(..., description="Change type.")
    record: Dict[str, Any] = Field(default_factory=dict, description="Row snapshot after the change.")
    user_id: Optional[str] = Field(default=None, description="Initiating user id, if known.")
