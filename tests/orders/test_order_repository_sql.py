from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from domain.common.exceptions import OrderNumberConflictException
from domain.order.entity import Order, OrderItem, OrderStatus
from infrastructure.models import Base
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, expire_on_commit=False)
    await engine.dispose()


def _uow(session_factory, readonly=False):
    return SQLAlchemyUnitOfWork(session_factory=session_factory, readonly=readonly)


def _order(order_id="ord-1", number="GEM-20261019-0001", user_id="user-1", created_at=None) -> Order:
    now = created_at or datetime.now(timezone.utc)
    return Order(
        id=order_id,
        order_number=number,
        user_id=user_id,
        items=[OrderItem(product_id="ring-001", quantity=2, unit_price=Decimal("90.00"), name="Silver Ring")],
        shipping_address={"city": "Tel Aviv"},
        billing_address={"city": "Tel Aviv", "sameAsShipping": True},
        shipping_method={"id": "standard", "cost": "50.00"},
        payment_method="payplus",
        subtotal=Decimal("180.00"),
        shipping=Decimal("50.00"),
        tax=Decimal("30.60"),
        total=Decimal("260.60"),
        currency="ILS",
        created_at=now,
        updated_at=now,
    )


@pytest.mark.asyncio
async def test_create_and_load_round_trip(session_factory):
    async with _uow(session_factory) as uow:
        await uow.order_repository.create(_order())
        await uow.commit()

    async with _uow(session_factory, readonly=True) as uow:
        loaded = await uow.order_repository.get_by_id("ord-1")

    assert loaded.status == OrderStatus.PENDING_PAYMENT
    assert loaded.total == Decimal("260.60")
    assert loaded.items[0].unit_price == Decimal("90.00")
    assert loaded.billing_address["sameAsShipping"] is True
    assert loaded.version == 0
    assert loaded.created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_duplicate_order_number_raises_conflict(session_factory):
    async with _uow(session_factory) as uow:
        await uow.order_repository.create(_order())

    with pytest.raises(OrderNumberConflictException):
        async with _uow(session_factory) as uow:
            await uow.order_repository.create(_order(order_id="ord-2"))

    async with _uow(session_factory, readonly=True) as uow:
        assert await uow.order_repository.get_by_id("ord-2") is None


@pytest.mark.asyncio
async def test_count_by_number_prefix(session_factory):
    async with _uow(session_factory) as uow:
        await uow.order_repository.create(_order("a", "GEM-20261019-0001"))
        await uow.order_repository.create(_order("b", "GEM-20261019-0002"))
        await uow.order_repository.create(_order("c", "GEM-20261018-0001"))

    async with _uow(session_factory, readonly=True) as uow:
        assert await uow.order_repository.count_by_number_prefix("GEM-20261019-") == 2
        assert await uow.order_repository.count_by_number_prefix("GEM-20261017-") == 0


@pytest.mark.asyncio
async def test_payment_result_is_compare_and_set(session_factory):
    async with _uow(session_factory) as uow:
        await uow.order_repository.create(_order())

    async with _uow(session_factory) as uow:
        order = await uow.order_repository.get_by_id("ord-1")
        order.apply_payment_result(OrderStatus.PAID, "txn123")
        assert await uow.order_repository.save_payment_result(order, expected_version=0)
        assert order.version == 1

    # A writer holding the stale version loses
    async with _uow(session_factory) as uow:
        stale = _order()
        stale.apply_payment_result(OrderStatus.FAILED, "txn999")
        assert not await uow.order_repository.save_payment_result(stale, expected_version=0)

    async with _uow(session_factory, readonly=True) as uow:
        stored = await uow.order_repository.get_by_id("ord-1")
    assert stored.status == OrderStatus.PAID
    assert stored.transaction_id == "txn123"
    assert stored.paid_at is not None
    assert stored.version == 1


@pytest.mark.asyncio
async def test_save_status_requires_expected_status(session_factory):
    async with _uow(session_factory) as uow:
        await uow.order_repository.create(_order())

    async with _uow(session_factory) as uow:
        order = await uow.order_repository.get_by_id("ord-1")
        order.status = OrderStatus.PROCESSING
        assert not await uow.order_repository.save_status(
            order, expected_status=OrderStatus.PAID, expected_version=0
        )


@pytest.mark.asyncio
async def test_list_by_user_newest_first(session_factory):
    base = datetime(2026, 10, 1, tzinfo=timezone.utc)
    async with _uow(session_factory) as uow:
        await uow.order_repository.create(_order("old", "N-1", created_at=base))
        await uow.order_repository.create(_order("new", "N-2", created_at=base + timedelta(days=1)))
        await uow.order_repository.create(_order("other", "N-3", user_id="user-2"))

    async with _uow(session_factory, readonly=True) as uow:
        orders = await uow.order_repository.list_by_user("user-1")
        page = await uow.order_repository.list_by_user("user-1", skip=1, limit=1)

    assert [o.id for o in orders] == ["new", "old"]
    assert [o.id for o in page] == ["old"]


@pytest.mark.asyncio
async def test_readonly_unit_of_work_never_commits(session_factory):
    async with _uow(session_factory, readonly=True) as uow:
        await uow.order_repository.create(_order())
        with pytest.raises(RuntimeError):
            await uow.commit()

    async with _uow(session_factory, readonly=True) as uow:
        assert await uow.order_repository.get_by_id("ord-1") is None
