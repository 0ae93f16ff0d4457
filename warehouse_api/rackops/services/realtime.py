from __future__ import annotations

import asyncio

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Set

from sqlalchemy import inspect
from starlette.websockets import WebSocket, WebSocketState

from rackops.schemas.realtime import ChangeEvent, WsEnvelope

logger = logging.getLogger(__name__)

WATCHED_TABLES = (
    "rack_inventory",
    "transaction_log",
    "stock_transactions",
    "activity_log",
    "stock_adjustments",
)


# PUBLIC_INTERFACE
def row_snapshot(entity: Any) -> Dict[str, Any]:
    """Loaded column values of an ORM row as a JSON-friendly dict (never triggers IO)."""
    state = inspect(entity)
    values: Dict[str, Any] = {}
    for attr in state.mapper.column_attrs:
        if attr.key not in state.dict:
            continue
        value = state.dict[attr.key]
        if isinstance(value, (datetime, date)):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            value = float(value)
        values[attr.key] = value
    return values


# PUBLIC_INTERFACE
def change_event(entity: Any, event: str, user_id: Optional[str] = None) -> ChangeEvent:
    """Describe a committed insert/update of entity for the change feed."""
    return ChangeEvent(table=entity.__tablename__, event=event, record=row_snapshot(entity), user_id=user_id)


class BroadcastManager:
    """
    Simple in-process pub-sub manager for WebSocket topics.

    Topics:
      - changes:{table} for each table in WATCHED_TABLES

    Read-side only: publishing happens after a commit and failures never
    affect the write that triggered them.
    """

    def __init__(self) -> None:
        self._topics: Dict[str, Set[WebSocket]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._global_lock = asyncio.Lock()

    def _topic_lock(self, topic: str) -> asyncio.Lock:
        if topic not in self._locks:
            self._locks[topic] = asyncio.Lock()
        return self._locks[topic]

    # PUBLIC_INTERFACE
    def table_topic(self, table: str) -> str:
        """Return the change-feed topic name for a table."""
        return f"changes:{table}"

    # PUBLIC_INTERFACE
    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))

    async def _ensure_topic(self, topic: str) -> None:
        async with self._global_lock:
            if topic not in self._topics:
                self._topics[topic] = set()

    # PUBLIC_INTERFACE
    async def connect(self, topic: str, websocket: WebSocket) -> None:
        """
        Add an accepted websocket to topic subscribers.
        """
        await self._ensure_topic(topic)
        async with self._topic_lock(topic):
            self._topics[topic].add(websocket)
            logger.info("WebSocket connected to topic=%s; subscribers=%d", topic, len(self._topics[topic]))

    # PUBLIC_INTERFACE
    async def disconnect(self, topic: str, websocket: WebSocket) -> None:
        """Remove websocket from topic subscribers."""
        if topic not in self._topics:
            return
        async with self._topic_lock(topic):
            self._topics[topic].discard(websocket)
            logger.info("WebSocket disconnected from topic=%s; subscribers=%d", topic, len(self._topics[topic]))

    # PUBLIC_INTERFACE
    async def broadcast(self, topic: str, message: dict, exclude: Optional[WebSocket] = None) -> None:
        """
        Broadcast a dict message to all subscribers in the topic.
        """
        await self._ensure_topic(topic)
        async with self._topic_lock(topic):
            to_drop: list[WebSocket] = []
            for ws in list(self._topics[topic]):
                if exclude is not None and ws is exclude:
                    continue
                try:
                    if ws.application_state == WebSocketState.DISCONNECTED or ws.client_state == WebSocketState.DISCONNECTED:
                        to_drop.append(ws)
                        continue
                    await ws.send_json(message)
                except Exception:
                    logger.exception("Failed to send message to websocket; scheduling drop")
                    to_drop.append(ws)
            for ws in to_drop:
                self._topics[topic].discard(ws)

    # PUBLIC_INTERFACE
    async def publish_change(self, event: ChangeEvent) -> None:
        """Publish one committed row change to the table's topic."""
        env = WsEnvelope(
            type=f"{event.table}.{event.event}",
            payload=event.record,
            user_id=event.user_id,
            channel=event.table,
        )
        await self.broadcast(self.table_topic(event.table), env.model_dump(mode="json"))

    # PUBLIC_INTERFACE
    async def publish_changes(self, events: Iterable[ChangeEvent]) -> None:
        """Publish several changes; a failure is logged and does not stop the rest."""
        for event in events:
            try:
                await self.publish_change(event)
            except Exception:
                logger.exception("Failed to publish %s change for %s", event.event, event.table)


# Singleton instance
broadcast_manager = BroadcastManager()
