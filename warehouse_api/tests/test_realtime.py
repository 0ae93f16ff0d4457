from datetime import datetime, timedelta, timezone

import pytest
from starlette.websockets import WebSocketState

from rackops.db.models.inventory import RackInventory
from rackops.services.errors import NotFoundError
from rackops.services.picking import PickingSession
from rackops.services.realtime import BroadcastManager, change_event, row_snapshot
from rackops.services.sessions import SessionRegistry


class FakeWebSocket:
    def __init__(self, fail=False):
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED
        self.fail = fail
        self.sent = []

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)


def test_row_snapshot_is_json_friendly():
    supplied = datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)
    row = RackInventory(part_no="9632107140", part_name="BUCKET ASSY", rack_location="A-01-01", qty=3,
                        last_supply=supplied)

    snap = row_snapshot(row)

    assert snap["qty"] == 3
    assert snap["last_supply"] == supplied.isoformat()
    assert "id" not in snap


async def test_publish_change_reaches_table_subscribers():
    manager = BroadcastManager()
    inventory_ws, ledger_ws = FakeWebSocket(), FakeWebSocket()
    await manager.connect(manager.table_topic("rack_inventory"), inventory_ws)
    await manager.connect(manager.table_topic("stock_transactions"), ledger_ws)

    row = RackInventory(part_no="9632107140", part_name="BUCKET ASSY", rack_location="A-01-01", qty=3)
    await manager.publish_change(change_event(row, "UPDATE", "u-op"))

    (message,) = inventory_ws.sent
    assert message["type"] == "rack_inventory.UPDATE"
    assert message["channel"] == "rack_inventory"
    assert message["user_id"] == "u-op"
    assert message["payload"]["qty"] == 3
    assert ledger_ws.sent == []


async def test_failing_subscriber_is_dropped():
    manager = BroadcastManager()
    topic = manager.table_topic("rack_inventory")
    good, bad = FakeWebSocket(), FakeWebSocket(fail=True)
    await manager.connect(topic, good)
    await manager.connect(topic, bad)

    row = RackInventory(part_no="9632107140", part_name="BUCKET ASSY", rack_location="A-01-01", qty=1)
    await manager.publish_changes([change_event(row, "INSERT")])

    assert len(good.sent) == 1
    assert manager.subscriber_count(topic) == 1


async def test_disconnect_removes_subscriber():
    manager = BroadcastManager()
    topic = manager.table_topic("activity_log")
    ws = FakeWebSocket()
    await manager.connect(topic, ws)
    await manager.disconnect(topic, ws)

    assert manager.subscriber_count(topic) == 0


def test_registry_hides_sessions_of_other_operators():
    registry = SessionRegistry("picking")
    picking = registry.add(PickingSession(owner_id="u-op"))

    assert registry.get(picking.id, "u-op") is picking
    with pytest.raises(NotFoundError, match="Picking session not found"):
        registry.get(picking.id, "u-admin")


def test_registry_purges_idle_sessions():
    registry = SessionRegistry("picking", ttl_minutes=30)
    idle = registry.add(PickingSession(owner_id="u-op"))
    fresh = registry.add(PickingSession(owner_id="u-op"))
    idle.touched_at = datetime.now(timezone.utc) - timedelta(minutes=31)

    assert registry.purge_expired() == 1
    assert len(registry) == 1
    assert registry.get(fresh.id, "u-op") is fresh


def test_discard_is_idempotent():
    registry = SessionRegistry("supply")
    picking = registry.add(PickingSession(owner_id="u-op"))

    assert registry.discard(picking.id) is picking
    assert registry.discard(picking.id) is None
