from __future__ import annotations

from typing import Optional
from sqlalchemy import Boolean, Text, true
from sqlalchemy.orm import Mapped, mapped_column

from rackops.db.base import Base, TimestampMixin


ROLES = ("admin", "controller", "operator")


class Profile(TimestampMixin, Base):
    """Operator profile keyed by the identity platform's user id."""
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    username: Mapped[str] = mapped_column(Text, nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(Text, nullable=False, default="operator", server_default="operator")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
