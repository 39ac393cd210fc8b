"""
订单应用服务（application/services）- 订单创建、支付状态对账、履约推进与查询
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, Iterator, List, Optional
import itertools
import uuid

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from application.dtos.orders import (
    CreateOrderDTO,
    CreateOrderResultDTO,
    OrderDTO,
    OrderItemDTO,
    OrderQuoteDTO,
    PaymentStatusUpdateDTO,
)
from application.ports.notifications import NotificationDispatcher
from core.config import OrderSettings, settings
from core.logging_config import get_logger
from domain.common.exceptions import (
    ConcurrentUpdateException,
    DomainValidationException,
    OrderNotFoundException,
    OrderNumberConflictException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, OrderItem, OrderStatus, quantize_money
from domain.order.events import OrderCreated, OrderEvent
from shared.codes.payment_codes import CanonicalStatus


logger = get_logger(__name__)


class OrderApplicationService:
    """订单应用服务

    所有状态写入走仓储的条件更新；并发冲突时重新读取并重新判定，
    不依赖进程内锁，多实例部署下依然正确。
    """

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        payment_methods: Iterable[str],
        notifier: Optional[NotificationDispatcher] = None,
        order_settings: Optional[OrderSettings] = None,
    ):
        self._uow_factory = uow_factory
        self._payment_methods = frozenset(m.lower() for m in payment_methods)
        self._notifier = notifier
        self._settings = order_settings or settings.order

    # ------------------------------------------------------------------
    # 创建订单
    # ------------------------------------------------------------------
    def _validate_create(self, data: CreateOrderDTO) -> None:
        """校验下单参数，错误信息直接面向前端"""
        if not data.items:
            raise DomainValidationException("Items are required", field="items")
        if not data.shipping_address or not data.billing_address or not data.shipping_method:
            raise DomainValidationException(
                "Shipping and billing information required",
                field="shippingAddress" if not data.shipping_address else (
                    "billingAddress" if not data.billing_address else "shippingMethod"
                ),
            )
        if not data.payment_method or data.payment_method.lower() not in self._payment_methods:
            raise DomainValidationException(
                "Valid payment method required",
                field="paymentMethod",
                details={"supported": sorted(self._payment_methods)},
            )
        if not data.total or data.total <= 0 or not data.currency:
            raise DomainValidationException(
                "Total amount and currency required",
                field="currency" if not data.currency else "total",
            )

    def _build_order(self, user_id: str, data: CreateOrderDTO, order_number: str, now: datetime) -> Order:
        shipping_address = data.shipping_address.model_dump(by_alias=True, exclude_none=True)
        billing = data.billing_address
        if billing.same_as_shipping:
            billing_address = {**shipping_address, "sameAsShipping": True}
        else:
            billing_address = billing.model_dump(by_alias=True, exclude_none=True)
        return Order(
            id=str(uuid.uuid4()),
            order_number=order_number,
            user_id=user_id,
            items=[
                OrderItem(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    name=item.name,
                    sku=item.sku,
                    customization=item.customization,
                )
                for item in data.items or []
            ],
            shipping_address=shipping_address,
            billing_address=billing_address,
            shipping_method=data.shipping_method.model_dump(mode="json", by_alias=True, exclude_none=True),
            payment_method=data.payment_method.lower(),
            customer_notes=data.customer_notes,
            subtotal=data.subtotal,
            shipping=data.shipping,
            tax=data.tax,
            total=data.total,
            currency=data.currency,
            created_at=now,
            updated_at=now,
        )

    def _format_order_number(self, now: datetime, sequence: int) -> str:
        width = self._settings.number_sequence_width
        return f"{self._number_prefix(now)}{sequence:0{width}d}"

    def _number_prefix(self, now: datetime) -> str:
        return f"{self._settings.number_prefix}-{now:%Y%m%d}-"

    async def _insert_order(
        self, user_id: str, data: CreateOrderDTO, offsets: Iterator[int]
    ) -> Order:
        now = datetime.now(timezone.utc)
        async with self._uow_factory() as uow:
            taken = await uow.order_repository.count_by_number_prefix(self._number_prefix(now))
            # 重试时向后偏移，避开并发创建者刚占用的序号
            sequence = taken + next(offsets)
            candidate = self._build_order(user_id, data, self._format_order_number(now, sequence), now)
            order = await uow.order_repository.create(candidate)
            await uow.commit()
        return order

    async def create_order(self, user_id: str, data: CreateOrderDTO) -> CreateOrderResultDTO:
        """创建订单（状态 pending_payment），订单号冲突时重试"""
        self._validate_create(data)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.number_max_attempts),
            retry=retry_if_exception_type(OrderNumberConflictException),
            reraise=True,
        )
        offsets = itertools.count(1)
        order = await retrying(self._insert_order, user_id, data, offsets)
        logger.info(
            "order_created",
            order_id=order.id,
            order_number=order.order_number,
            user_id=user_id,
            payment_method=order.payment_method,
            total=str(order.total),
            currency=order.currency,
        )
        await self._dispatch([
            OrderCreated(
                order_id=order.id,
                order_number=order.order_number,
                user_id=order.user_id,
                total=str(order.total),
                currency=order.currency,
            )
        ])
        return CreateOrderResultDTO(order_id=order.id, order_number=order.order_number)

    # ------------------------------------------------------------------
    # 支付状态对账
    # ------------------------------------------------------------------
    async def update_payment_status(
        self,
        order_id: str,
        canonical_status: CanonicalStatus,
        gateway_transaction_id: str,
        *,
        amount: Optional[Decimal] = None,
        provider: Optional[str] = None,
    ) -> PaymentStatusUpdateDTO:
        """
        应用一次规范化的支付结果

        - pending_payment -> paid / failed 为唯一的新迁移
        - 同一交易号的重复投递为幂等 no-op（不重复触发副作用）
        - 冲突或倒退的回调抛出 InvalidTransitionException，订单不变
        - 金额或支付渠道与订单不一致时只记录异常日志
        """
        canonical_status = CanonicalStatus(canonical_status)
        attempts = self._settings.transition_max_attempts
        events: List[OrderEvent] = []

        for attempt in range(1, attempts + 1):
            async with self._uow_factory() as uow:
                order = await uow.order_repository.get_by_id(order_id)
                if order is None:
                    raise OrderNotFoundException(order_id)

                target = order.plan_payment_transition(canonical_status, gateway_transaction_id)
                if target is None:
                    logger.info(
                        "order_payment_noop",
                        order_id=order_id,
                        status=order.status.value,
                        canonical_status=canonical_status.value,
                        reason="pending" if canonical_status == CanonicalStatus.PENDING else "duplicate",
                    )
                    return PaymentStatusUpdateDTO(
                        order_id=order.id,
                        status=order.status.value,
                        transaction_id=order.transaction_id,
                        applied=False,
                    )

                expected_version = order.version
                order.apply_payment_result(target, gateway_transaction_id, amount=amount)
                if await uow.order_repository.save_payment_result(order, expected_version=expected_version):
                    await uow.commit()
                    events = order.clear_events()
                    break

            logger.info("order_payment_cas_retry", order_id=order_id, attempt=attempt)
        else:
            raise ConcurrentUpdateException(order_id, attempts)

        self._check_amount(order, amount)
        self._check_provider(order, provider)
        logger.info(
            "order_payment_status_updated",
            order_id=order.id,
            order_number=order.order_number,
            status=order.status.value,
            transaction_id=gateway_transaction_id,
        )
        await self._dispatch(events)
        return PaymentStatusUpdateDTO(
            order_id=order.id,
            status=order.status.value,
            transaction_id=order.transaction_id,
            applied=True,
        )

    def _check_provider(self, order: Order, provider: Optional[str]) -> None:
        # 只记录，不影响对账结果
        if provider and provider.lower() != order.payment_method.lower():
            logger.warning(
                "order_payment_provider_mismatch",
                order_id=order.id,
                payment_method=order.payment_method,
                provider=provider,
            )

    def _check_amount(self, order: Order, amount: Optional[Decimal]) -> None:
        if amount is None:
            return
        if quantize_money(amount) != quantize_money(order.total):
            logger.warning(
                "order_payment_amount_mismatch",
                order_id=order.id,
                order_total=str(order.total),
                paid_amount=str(amount),
            )

    # ------------------------------------------------------------------
    # 履约状态
    # ------------------------------------------------------------------
    async def update_fulfillment_status(self, order_id: str, status: OrderStatus) -> OrderDTO:
        """推进履约状态：paid -> processing -> shipped -> delivered"""
        target = OrderStatus(status)
        attempts = self._settings.transition_max_attempts

        for attempt in range(1, attempts + 1):
            async with self._uow_factory() as uow:
                order = await uow.order_repository.get_by_id(order_id)
                if order is None:
                    raise OrderNotFoundException(order_id)
                expected_version = order.version
                previous = order.advance_fulfillment(target)
                if await uow.order_repository.save_status(
                    order,
                    expected_status=previous,
                    expected_version=expected_version,
                ):
                    await uow.commit()
                    events = order.clear_events()
                    break
            logger.info("order_status_cas_retry", order_id=order_id, attempt=attempt)
        else:
            raise ConcurrentUpdateException(order_id, attempts)

        logger.info(
            "order_status_advanced",
            order_id=order.id,
            previous_status=previous.value,
            status=order.status.value,
        )
        await self._dispatch(events)
        return self._to_dto(order)

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------
    async def get_order(self, order_id: str, user_id: str) -> OrderDTO:
        """获取订单（他人订单视为不存在）"""
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(order_id)
            if order is None or order.user_id != user_id:
                raise OrderNotFoundException(order_id)
            return self._to_dto(order)

    async def list_user_orders(self, user_id: str, skip: int = 0, limit: int = 10) -> List[OrderDTO]:
        """获取用户订单列表（最新在前）"""
        async with self._uow_factory(readonly=True) as uow:
            orders = await uow.order_repository.list_by_user(user_id, skip=skip, limit=limit)
            return [self._to_dto(o) for o in orders]

    def quote_totals(self, subtotal: Decimal, currency: Optional[str] = None) -> OrderQuoteDTO:
        """结算报价：超过阈值包邮，否则固定运费；税费按小计计算"""
        subtotal = quantize_money(subtotal)
        cfg = self._settings
        shipping = Decimal("0") if subtotal > cfg.free_shipping_threshold else cfg.flat_shipping_cost
        shipping = quantize_money(shipping)
        tax = quantize_money(subtotal * cfg.tax_rate)
        return OrderQuoteDTO(
            subtotal=subtotal,
            shipping=shipping,
            tax=tax,
            total=subtotal + shipping + tax,
            currency=(currency or cfg.default_currency).upper(),
        )

    # ------------------------------------------------------------------
    # 内部工具
    # ------------------------------------------------------------------
    async def _dispatch(self, events: List[OrderEvent]) -> None:
        """通知失败只记录日志，不影响已提交的订单状态"""
        if self._notifier is None:
            return
        for event in events:
            try:
                await self._notifier.dispatch(event)
            except Exception as exc:
                logger.error(
                    "order_notification_failed",
                    order_id=event.order_id,
                    event_name=event.name,
                    error=str(exc),
                    exc_info=True,
                )

    @staticmethod
    def _to_dto(order: Order) -> OrderDTO:
        return OrderDTO(
            id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            status=order.status.value,
            payment_method=order.payment_method,
            items=[
                OrderItemDTO(
                    product_id=i.product_id,
                    quantity=i.quantity,
                    unit_price=i.unit_price,
                    name=i.name,
                    sku=i.sku,
                    customization=i.customization,
                )
                for i in order.items
            ],
            shipping_address=order.shipping_address,
            billing_address=order.billing_address,
            shipping_method=order.shipping_method,
            customer_notes=order.customer_notes,
            subtotal=order.subtotal,
            shipping=order.shipping,
            tax=order.tax,
            total=order.total,
            currency=order.currency,
            transaction_id=order.transaction_id,
            created_at=order.created_at,
            updated_at=order.updated_at,
            paid_at=order.paid_at,
        )
