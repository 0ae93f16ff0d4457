from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CurrentUser(BaseModel):
    """Identity stamped on every write (user_id/username)."""
    id: str = Field(..., description="Identity platform user id")
    email: Optional[str] = Field(None, description="Email claim from the token")
    username: str = Field(..., description="Operator username from the profile")
    full_name: Optional[str] = Field(None)
    role: str = Field(..., description="admin | controller | operator")
    is_active: bool = Field(True, description="Active flag")


class ProfileRead(BaseModel):
    """Profile read model."""
    id: str = Field(..., description="User id")
    username: str = Field(..., description="Username")
    full_name: Optional[str] = Field(None)
    role: str = Field(..., description="Role name")
    is_active: bool = Field(..., description="Active flag")
    created_at: datetime = Field(..., description="Created timestamp")
    updated_at: datetime = Field(..., description="Updated timestamp")

    model_config = ConfigDict(from_attributes=True)
