"""Test configuration for API tests."""

import os
import pathlib
import sys
from types import SimpleNamespace

import pytest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

# Provide default settings so tests can run without requiring a full
# environment configuration.
os.environ.setdefault("SECRET_KEY", "x" * 32)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "false")

from api.app.auth import create_access_token  # noqa: E402
from api.app.db import create_test_session  # noqa: E402
from api.app.domain.order_status import KitchenStation  # noqa: E402
from api.app.domain.roles import Actor, Role  # noqa: E402
from api.app.events import NotificationHub  # noqa: E402
from api.app.models_tenant import MenuCategory, MenuItem  # noqa: E402
from api.app.services import tables as table_service  # noqa: E402
from api.app.services.kitchen_routing import RoutingPolicy  # noqa: E402

RESTAURANT = "r1"
OTHER_RESTAURANT = "r2"

MANAGER = Actor(id="manager-1", role=Role.MANAGER)
WAITER = Actor(id="waiter-1", role=Role.WAITER)
CHEF = Actor(id="chef-1", role=Role.KITCHEN)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def session_factory(anyio_backend):
    factory, engine = await create_test_session()
    yield factory
    await engine.dispose()


@pytest.fixture
async def seeded(session_factory):
    """Two tables and a small menu split between kitchen and bar."""

    async with session_factory() as s:
        async with s.begin():
            mains = MenuCategory(restaurant_id=RESTAURANT, name="Mains", sort=1)
            drinks = MenuCategory(restaurant_id=RESTAURANT, name="Beverages", sort=2)
            s.add_all([mains, drinks])
            await s.flush()
            burger = MenuItem(
                restaurant_id=RESTAURANT, category_id=mains.id, name="Burger", price=12
            )
            fries = MenuItem(
                restaurant_id=RESTAURANT, category_id=mains.id, name="Fries", price=4
            )
            cola = MenuItem(
                restaurant_id=RESTAURANT, category_id=drinks.id, name="Cola", price=3
            )
            shake = MenuItem(
                restaurant_id=RESTAURANT,
                category_id=mains.id,
                name="Milkshake",
                price=6,
                kitchen_station=KitchenStation.BAR,
            )
            soldout = MenuItem(
                restaurant_id=RESTAURANT,
                category_id=mains.id,
                name="Special",
                price=20,
                is_available=False,
            )
            s.add_all([burger, fries, cola, shake, soldout])
            await s.flush()
            menu = SimpleNamespace(
                burger=burger.id,
                fries=fries.id,
                cola=cola.id,
                shake=shake.id,
                soldout=soldout.id,
            )

    async with session_factory() as s:
        t1 = await table_service.create_table(s, RESTAURANT, "T1", 4, actor=MANAGER)
    async with session_factory() as s:
        t2 = await table_service.create_table(s, RESTAURANT, "T2", 2, actor=MANAGER)
    async with session_factory() as s:
        other = await table_service.create_table(
            s, OTHER_RESTAURANT, "T1", 4, actor=MANAGER
        )
    return SimpleNamespace(
        menu=menu, t1=t1.id, t2=t2.id, other_table=other.id, otp=t1.current_otp
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def hub():
    return NotificationHub(queue_max=10)


@pytest.fixture
def policy():
    return RoutingPolicy(
        bar_categories=frozenset({"beverages", "drinks", "bar", "cocktails"}),
        urgent_threshold_minutes=10,
    )


def token_for(role: Role, restaurant_id: str = RESTAURANT, username: str = "staff-1"):
    return create_access_token(
        {"sub": username, "role": role.value, "restaurant_id": restaurant_id}
    )


def auth(role: Role, restaurant_id: str = RESTAURANT, username: str = "staff-1"):
    return {"Authorization": f"Bearer {token_for(role, restaurant_id, username)}"}


@pytest.fixture
async def client(session_factory, seeded, hub, policy):
    from httpx import ASGITransport, AsyncClient

    from api.app.db import get_session
    from api.app.main import app
    from api.app.services.inventory import NullStockService

    async def _session():
        async with session_factory() as session:
            yield session

    app.state.hub = hub
    app.state.policy = policy
    app.state.stock = NullStockService()
    app.dependency_overrides[get_session] = _session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def headers():
    """Return a helper building bearer headers for a role."""

    return auth
