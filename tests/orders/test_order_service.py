import asyncio
import re
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from application.dtos.orders import CreateOrderDTO
from application.services.order_service import OrderApplicationService
from domain.common.exceptions import (
    ConcurrentUpdateException,
    DomainValidationException,
    InvalidTransitionException,
    OrderNotFoundException,
    OrderNumberConflictException,
)
from domain.order.entity import OrderStatus
from shared.codes.payment_codes import CanonicalStatus
from tests.fakes import (
    FailingNotifier,
    InMemoryOrderRepository,
    RecordingNotifier,
    make_uow_factory,
    order_payload,
)


@pytest.fixture
def repo():
    return InMemoryOrderRepository()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(repo, notifier):
    return OrderApplicationService(
        make_uow_factory(repo),
        payment_methods=["stripe", "payplus"],
        notifier=notifier,
    )


async def _create(service, user_id="user-1", **overrides):
    return await service.create_order(user_id, CreateOrderDTO.model_validate(order_payload(**overrides)))


@pytest.mark.asyncio
async def test_create_order_persists_pending_order(service, repo, notifier):
    result = await _create(service)

    stored = repo.rows[result.order_id]
    assert stored.status == OrderStatus.PENDING_PAYMENT
    assert stored.total == Decimal("260.60")
    assert stored.currency == "ILS"
    assert stored.items[0].unit_price == Decimal("90.00")
    assert stored.billing_address["sameAsShipping"] is True
    assert stored.billing_address["city"] == "Tel Aviv"
    assert re.fullmatch(r"GEM-\d{8}-0001", result.order_number)
    assert notifier.names() == ["OrderCreated"]


@pytest.mark.asyncio
async def test_order_numbers_increase_within_a_day(service):
    first = await _create(service)
    second = await _create(service, user_id="user-2")
    assert first.order_number.endswith("-0001")
    assert second.order_number.endswith("-0002")


@pytest.mark.asyncio
async def test_order_number_collision_is_retried(service, repo):
    await _create(service)

    async def stale_count(prefix: str) -> int:
        return 0

    # A concurrent creator took -0001 after this request counted
    repo.count_by_number_prefix = stale_count
    result = await _create(service)
    assert result.order_number.endswith("-0002")


@pytest.mark.asyncio
async def test_order_number_conflicts_stop_after_configured_attempts(service, repo):
    attempts = []

    async def always_taken(order):
        attempts.append(order.order_number)
        raise OrderNumberConflictException(order.order_number)

    repo.create = always_taken
    with pytest.raises(OrderNumberConflictException):
        await _create(service)
    assert len(attempts) == 3
    assert len(set(attempts)) == 3
    assert repo.rows == {}


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"items": []}, "Items are required"),
        ({"shippingAddress": None}, "Shipping and billing information required"),
        ({"shippingMethod": None}, "Shipping and billing information required"),
        ({"paymentMethod": "paypal"}, "Valid payment method required"),
        ({"paymentMethod": None}, "Valid payment method required"),
        ({"total": "0"}, "Total amount and currency required"),
        ({"currency": None}, "Total amount and currency required"),
    ],
)
@pytest.mark.asyncio
async def test_create_order_validation_messages(service, repo, overrides, message):
    with pytest.raises(DomainValidationException) as exc_info:
        await _create(service, **overrides)
    assert exc_info.value.message == message
    assert repo.rows == {}


@pytest.mark.asyncio
async def test_client_totals_must_add_up(service):
    with pytest.raises(DomainValidationException):
        await _create(service, total="999.00")


@pytest.mark.asyncio
async def test_success_webhook_marks_order_paid_once(service, repo, notifier):
    created = await _create(service)

    first = await service.update_payment_status(created.order_id, CanonicalStatus.SUCCESS, "txn123",
                                                amount=Decimal("260.6"))
    again = await service.update_payment_status(created.order_id, CanonicalStatus.SUCCESS, "txn123")

    assert first.applied and first.status == "paid"
    assert not again.applied and again.status == "paid"
    assert repo.rows[created.order_id].transaction_id == "txn123"
    assert repo.payment_writes == 1
    assert notifier.names() == ["OrderCreated", "OrderPaymentSucceeded"]


@pytest.mark.asyncio
async def test_pending_notification_changes_nothing(service, repo):
    created = await _create(service)
    update = await service.update_payment_status(created.order_id, CanonicalStatus.PENDING, "txn1")
    assert not update.applied
    assert repo.rows[created.order_id].status == OrderStatus.PENDING_PAYMENT
    assert repo.rows[created.order_id].transaction_id is None


@pytest.mark.asyncio
async def test_failure_after_success_is_rejected(service, repo, notifier):
    created = await _create(service)
    await service.update_payment_status(created.order_id, CanonicalStatus.SUCCESS, "txn123")

    with pytest.raises(InvalidTransitionException):
        await service.update_payment_status(created.order_id, CanonicalStatus.FAILED, "txn124")

    stored = repo.rows[created.order_id]
    assert stored.status == OrderStatus.PAID
    assert stored.transaction_id == "txn123"
    assert "OrderPaymentFailed" not in notifier.names()


@pytest.mark.asyncio
async def test_failed_order_records_failure(service, repo, notifier):
    created = await _create(service)
    update = await service.update_payment_status(created.order_id, CanonicalStatus.FAILED, "txn1")
    assert update.applied and update.status == "failed"
    assert notifier.names()[-1] == "OrderPaymentFailed"


@pytest.mark.asyncio
async def test_unknown_order(service):
    with pytest.raises(OrderNotFoundException):
        await service.update_payment_status("missing", CanonicalStatus.SUCCESS, "t")


@pytest.mark.asyncio
async def test_notifier_failure_does_not_undo_the_update(repo):
    failing = FailingNotifier()
    service = OrderApplicationService(make_uow_factory(repo), payment_methods=["payplus"], notifier=failing)
    created = await _create(service)

    update = await service.update_payment_status(created.order_id, CanonicalStatus.SUCCESS, "txn1")

    assert update.applied
    assert repo.rows[created.order_id].status == OrderStatus.PAID
    assert failing.calls == 2


@pytest.mark.asyncio
async def test_lost_race_to_same_transaction_is_a_duplicate(service, repo, notifier):
    created = await _create(service)

    def concurrent_delivery(row):
        row.status = OrderStatus.PAID
        row.transaction_id = "txn123"
        row.version += 1

    repo.before_next_write = concurrent_delivery
    update = await service.update_payment_status(created.order_id, CanonicalStatus.SUCCESS, "txn123")

    assert not update.applied
    assert repo.payment_writes == 0
    assert "OrderPaymentSucceeded" not in notifier.names()


@pytest.mark.asyncio
async def test_lost_race_to_conflicting_outcome_is_rejected(service, repo):
    created = await _create(service)

    def concurrent_failure(row):
        row.status = OrderStatus.FAILED
        row.transaction_id = "txn-other"
        row.version += 1

    repo.before_next_write = concurrent_failure
    with pytest.raises(InvalidTransitionException):
        await service.update_payment_status(created.order_id, CanonicalStatus.SUCCESS, "txn123")
    assert repo.rows[created.order_id].status == OrderStatus.FAILED


@pytest.mark.asyncio
async def test_exhausted_cas_attempts_raise(service, repo):
    created = await _create(service)

    def bump(row):
        row.version += 1
        repo.before_next_write = bump

    repo.before_next_write = bump
    with pytest.raises(ConcurrentUpdateException):
        await service.update_payment_status(created.order_id, CanonicalStatus.SUCCESS, "txn1")
    assert repo.rows[created.order_id].status == OrderStatus.PENDING_PAYMENT


@pytest.mark.asyncio
async def test_concurrent_identical_deliveries_apply_once(service, repo, notifier):
    created = await _create(service)
    results = await asyncio.gather(*[
        service.update_payment_status(created.order_id, CanonicalStatus.SUCCESS, "txn123")
        for _ in range(5)
    ])
    assert sum(r.applied for r in results) == 1
    assert notifier.names().count("OrderPaymentSucceeded") == 1


@pytest.mark.asyncio
async def test_fulfillment_flow(service, repo, notifier):
    created = await _create(service)
    with pytest.raises(InvalidTransitionException):
        await service.update_fulfillment_status(created.order_id, OrderStatus.PROCESSING)

    await service.update_payment_status(created.order_id, CanonicalStatus.SUCCESS, "txn1")
    for status in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        dto = await service.update_fulfillment_status(created.order_id, status)
        assert dto.status == status.value

    # Late replay of the original success is still a no-op
    replay = await service.update_payment_status(created.order_id, CanonicalStatus.SUCCESS, "txn1")
    assert not replay.applied
    assert notifier.names().count("OrderStatusAdvanced") == 3


@pytest.mark.asyncio
async def test_orders_are_private_to_their_owner(service):
    created = await _create(service, user_id="user-1")
    dto = await service.get_order(created.order_id, "user-1")
    assert dto.order_number == created.order_number
    with pytest.raises(OrderNotFoundException):
        await service.get_order(created.order_id, "user-2")


@pytest.mark.asyncio
async def test_list_user_orders_newest_first(service, repo):
    first = await _create(service)
    second = await _create(service)
    repo.rows[first.order_id].created_at = datetime(2000, 1, 1, tzinfo=timezone.utc)
    await _create(service, user_id="someone-else")

    orders = await service.list_user_orders("user-1")
    assert [o.id for o in orders] == [second.order_id, first.order_id]
    assert len(await service.list_user_orders("user-1", limit=1)) == 1


@pytest.mark.parametrize(
    "subtotal,shipping,tax,total",
    [
        ("180", "50.00", "30.60", "260.60"),
        ("500", "50.00", "85.00", "635.00"),
        ("600", "0.00", "102.00", "702.00"),
    ],
)
def test_quote_totals(service, subtotal, shipping, tax, total):
    quote = service.quote_totals(Decimal(subtotal))
    assert quote.shipping == Decimal(shipping)
    assert quote.tax == Decimal(tax)
    assert quote.total == Decimal(total)
    assert quote.currency == "ILS"


def _events(caplog, name):
    return [r.msg for r in caplog.records if isinstance(r.msg, dict) and r.msg.get("event") == name]


@pytest.mark.asyncio
async def test_payment_from_other_provider_is_logged_as_anomaly(service, repo, caplog):
    created = await _create(service, paymentMethod="payplus")

    update = await service.update_payment_status(
        created.order_id, CanonicalStatus.SUCCESS, "pi_1", provider="stripe"
    )

    assert update.applied
    assert repo.rows[created.order_id].status == OrderStatus.PAID
    [anomaly] = _events(caplog, "order_payment_provider_mismatch")
    assert anomaly["payment_method"] == "payplus"
    assert anomaly["provider"] == "stripe"


@pytest.mark.asyncio
async def test_matching_provider_is_not_an_anomaly(service, caplog):
    created = await _create(service, paymentMethod="payplus")
    await service.update_payment_status(created.order_id, CanonicalStatus.SUCCESS, "t1", provider="PayPlus")
    assert _events(caplog, "order_payment_provider_mismatch") == []
