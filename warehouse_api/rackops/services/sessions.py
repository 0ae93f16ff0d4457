from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Generic, Optional, Protocol, TypeVar
from uuid import UUID

from rackops.core.settings import get_app_settings
from rackops.services.errors import NotFoundError

logger = logging.getLogger(__name__)


class WorkflowSession(Protocol):
    id: UUID
    owner_id: str
    touched_at: datetime


S = TypeVar("S", bound=WorkflowSession)


class SessionRegistry(Generic[S]):
    """
    In-process store of open workflow sessions.

    Sessions belong to the operator who opened them; another user asking for
    the same id gets a not-found error. Each session has its own lock so two
    requests on one session never interleave.
    """

    def __init__(self, kind: str, ttl_minutes: int = 240) -> None:
        self.kind = kind
        self.ttl = timedelta(minutes=ttl_minutes)
        self._sessions: Dict[UUID, S] = {}
        self._locks: Dict[UUID, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    # PUBLIC_INTERFACE
    def add(self, session: S) -> S:
        self.purge_expired()
        self._sessions[session.id] = session
        self._locks[session.id] = asyncio.Lock()
        logger.info("Opened %s session %s", self.kind, session.id)
        return session

    # PUBLIC_INTERFACE
    def get(self, session_id: UUID, owner_id: str) -> S:
        """Return the session or raise NotFoundError."""
        session = self._sessions.get(session_id)
        if session is None or session.owner_id != owner_id:
            raise NotFoundError(f"{self.kind.capitalize()} session not found", str(session_id))
        session.touched_at = datetime.now(timezone.utc)
        return session

    # PUBLIC_INTERFACE
    def lock(self, session_id: UUID) -> asyncio.Lock:
        if session_id not in self._locks:
            self._locks[session_id] = asyncio.Lock()
        return self._locks[session_id]

    # PUBLIC_INTERFACE
    def discard(self, session_id: UUID) -> Optional[S]:
        """Drop a session without any writes."""
        self._locks.pop(session_id, None)
        session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.info("Closed %s session %s", self.kind, session_id)
        return session

    # PUBLIC_INTERFACE
    def purge_expired(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        expired = [sid for sid, s in self._sessions.items() if now - s.touched_at > self.ttl]
        for sid in expired:
            self.discard(sid)
        return len(expired)


_ttl = get_app_settings().SESSION_TTL_MINUTES

# One registry per workflow; sessions never cross workflows.
picking_sessions: SessionRegistry = SessionRegistry("picking", ttl_minutes=_ttl)
supply_sessions: SessionRegistry = SessionRegistry("supply", ttl_minutes=_ttl)
kobetsu_sessions: SessionRegistry = SessionRegistry("kobetsu", ttl_minutes=_ttl)
partner_supply_sessions: SessionRegistry = SessionRegistry("big part supply", ttl_minutes=_ttl)
