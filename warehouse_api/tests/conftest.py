"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timezone

# Settings are read from the environment at import time; the app must not try to
# reach Postgres or run migrations under test.
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"
os.environ["AUTO_SEED"] = "false"
os.environ["POSTGRES_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from rackops.api.main import app
from rackops.core.security import create_access_token
from rackops.db.base import Base
from rackops.db.models.inventory import RackInventory
from rackops.db.models.ledger import StockTransaction
from rackops.db.models.master_data import BomMaster, PartnerRack
from rackops.db.models.security import Profile
from rackops.db.session import get_async_session, make_session_maker
from rackops.schemas.auth import CurrentUser

KANBAN = "KB-TEST-01"
BUCKET = "9632107140"
SEAL = "4471820030"
BRACKET = "8812300510"
BIG_PART = "7790010020"


async def occupy_transaction_id(session, transaction_id, part_no, location):
    """Commit a ledger row that already holds transaction_id."""
    session.add(
        StockTransaction(
            transaction_id=transaction_id, transaction_type="ADJUSTMENT", item_code=part_no,
            item_name=part_no, qty=0, rack_location=location, timestamp=datetime.now(timezone.utc),
        )
    )
    await session.commit()


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return make_session_maker(engine)


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def seeded(db_session):
    """
    Kanban KB-TEST-01 with two lines and stock for both; a third BOM line sits
    on rack A-01-03 with no inventory row yet.
    BIG_PART has two partner racks and no BOM line.
    """
    db_session.add_all(
        [
            BomMaster(
                parent_part="ASSY-100", child_part=BUCKET, part_name="BUCKET ASSY", model="M1",
                qty_bom=2, location="A-01-01", kanban_code=KANBAN, sequence=1,
            ),
            BomMaster(
                parent_part="ASSY-100", child_part=SEAL, part_name="SEAL RING", model="M1",
                qty_bom=4, location="A-01-02", kanban_code=KANBAN, sequence=2,
            ),
            BomMaster(
                parent_part="ASSY-200", child_part=BRACKET, part_name="BRACKET LH", model="M2",
                qty_bom=1, location="A-01-03", kanban_code="KB-TEST-02", sequence=1,
            ),
            RackInventory(part_no=BUCKET, part_name="BUCKET ASSY", rack_location="A-01-01", qty=10, max_capacity=50),
            RackInventory(part_no=SEAL, part_name="SEAL RING", rack_location="A-01-02", qty=4, max_capacity=50),
            PartnerRack(part_no=BIG_PART, part_name="FRAME ASSY", qty_per_box=5, part_type="Big", rack_location="B-07-01"),
            PartnerRack(part_no=BIG_PART, part_name="FRAME ASSY", qty_per_box=5, part_type="Big", rack_location="B-07-02"),
            Profile(id="u-admin", username="admin", role="admin", is_active=True),
            Profile(id="u-op", username="operator1", role="operator", is_active=True),
            Profile(id="u-off", username="former", role="operator", is_active=False),
        ]
    )
    await db_session.commit()
    return db_session


@pytest.fixture
def operator():
    return CurrentUser(id="u-op", username="operator1", role="operator")


@pytest.fixture
def admin():
    return CurrentUser(id="u-admin", username="admin", role="admin")


@pytest.fixture
def auth_headers():
    def _headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers


@pytest.fixture
async def client(seeded, session_maker):
    async def _override_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = _override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
