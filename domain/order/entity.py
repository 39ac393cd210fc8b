"""
订单领域实体 - 订单聚合根与支付状态机
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Optional

from domain.common.exceptions import (
    DomainValidationException,
    InvalidTransitionException,
)
from domain.order.events import (
    OrderEvent,
    OrderPaymentFailed,
    OrderPaymentSucceeded,
    OrderStatusAdvanced,
)
from shared.codes.payment_codes import CanonicalStatus


CENT = Decimal("0.01")


class OrderStatus(str, Enum):
    """订单状态枚举"""
    PENDING_PAYMENT = "pending_payment"  # 待支付（初始）
    PAID = "paid"                        # 支付成功（本子系统终态）
    FAILED = "failed"                    # 支付失败（本子系统终态）
    PROCESSING = "processing"            # 履约中
    SHIPPED = "shipped"                  # 已发货
    DELIVERED = "delivered"              # 已送达


# 履约流转只能从 paid 开始，逐级前进
FULFILLMENT_TRANSITIONS: dict[OrderStatus, OrderStatus] = {
    OrderStatus.PAID: OrderStatus.PROCESSING,
    OrderStatus.PROCESSING: OrderStatus.SHIPPED,
    OrderStatus.SHIPPED: OrderStatus.DELIVERED,
}

SETTLED_SUCCESS_STATUSES = frozenset({
    OrderStatus.PAID,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
})


def quantize_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class OrderItem:
    product_id: str
    quantity: int
    unit_price: Decimal
    name: Optional[str] = None
    sku: Optional[str] = None
    customization: Optional[dict[str, Any]] = None

    @property
    def line_total(self) -> Decimal:
        return quantize_money(self.unit_price * self.quantity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "name": self.name,
            "sku": self.sku,
            "customization": self.customization,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderItem":
        return cls(
            product_id=str(data["product_id"]),
            quantity=int(data["quantity"]),
            unit_price=Decimal(str(data["unit_price"])),
            name=data.get("name"),
            sku=data.get("sku"),
            customization=data.get("customization"),
        )


@dataclass
class Order:
    """
    订单聚合根 - 管理订单与支付生命周期

    业务规则：
    1. total == subtotal + shipping + tax，创建后不可变
    2. 只有 pending_payment 可以转为 paid / failed
    3. transaction_id 只在首次终态迁移时写入，之后不会被其它值覆盖
    4. 履约状态（processing/shipped/delivered）只能从 paid 开始
    """

    id: str
    order_number: str
    user_id: str
    items: list[OrderItem]
    shipping_address: dict[str, Any]
    billing_address: dict[str, Any]
    shipping_method: dict[str, Any]
    payment_method: str
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    status: OrderStatus = OrderStatus.PENDING_PAYMENT
    customer_notes: Optional[str] = None
    transaction_id: Optional[str] = None
    version: int = 0

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    events: list[OrderEvent] = field(default_factory=list, repr=False, compare=False)

    def __post_init__(self):
        self.currency = (self.currency or "").upper()
        self._validate_items()
        self._validate_amounts()
        self._validate_currency()
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        self.paid_at = _ensure_utc(self.paid_at)

    def _validate_items(self) -> None:
        if not self.items:
            raise DomainValidationException("Items are required", field="items")

    def _validate_amounts(self) -> None:
        """业务规则：金额大于0，且总额等于各项之和（精确到分）"""
        if self.total <= 0:
            raise DomainValidationException(
                f"Total amount must be greater than 0: {self.total}",
                field="total",
            )
        expected = quantize_money(self.subtotal + self.shipping + self.tax)
        if quantize_money(self.total) != expected:
            raise DomainValidationException(
                f"Total {self.total} does not equal subtotal + shipping + tax ({expected})",
                field="total",
                details={"expected_total": str(expected), "total": str(self.total)},
            )

    def _validate_currency(self) -> None:
        """业务规则：货币代码必须是3位字母"""
        if len(self.currency) != 3 or not self.currency.isalpha():
            raise DomainValidationException(
                f"Invalid currency code: {self.currency}",
                field="currency",
            )

    # ------------------------------------------------------------------
    # 支付状态机
    # ------------------------------------------------------------------
    @property
    def payment_outcome(self) -> Optional[CanonicalStatus]:
        """已结算订单的支付结果；待支付时返回 None"""
        if self.status in SETTLED_SUCCESS_STATUSES:
            return CanonicalStatus.SUCCESS
        if self.status == OrderStatus.FAILED:
            return CanonicalStatus.FAILED
        return None

    def is_payment_settled(self) -> bool:
        return self.payment_outcome is not None

    def plan_payment_transition(
        self,
        canonical_status: CanonicalStatus,
        transaction_id: str,
    ) -> Optional[OrderStatus]:
        """
        计算一次支付回调应当产生的新状态

        返回 None 表示无需变更（pending 回调，或同一交易的重复投递）；
        冲突或倒退的回调抛出 InvalidTransitionException。
        """
        canonical_status = CanonicalStatus(canonical_status)
        if self.status == OrderStatus.PENDING_PAYMENT:
            if canonical_status == CanonicalStatus.PENDING:
                return None
            if canonical_status == CanonicalStatus.SUCCESS:
                return OrderStatus.PAID
            return OrderStatus.FAILED

        if (
            canonical_status == self.payment_outcome
            and transaction_id == self.transaction_id
        ):
            return None

        raise InvalidTransitionException(
            self.id,
            self.status.value,
            canonical_status.value,
            stored_transaction_id=self.transaction_id,
            incoming_transaction_id=transaction_id,
        )

    def apply_payment_result(
        self,
        target: OrderStatus,
        transaction_id: str,
        *,
        amount: Optional[Decimal] = None,
        at: Optional[datetime] = None,
    ) -> None:
        """将订单从 pending_payment 迁移到 paid / failed，并记录领域事件"""
        if self.status != OrderStatus.PENDING_PAYMENT or target not in (
            OrderStatus.PAID,
            OrderStatus.FAILED,
        ):
            raise InvalidTransitionException(self.id, self.status.value, target.value)
        now = at or datetime.now(timezone.utc)
        self.status = target
        self.transaction_id = transaction_id
        self.updated_at = now
        if target == OrderStatus.PAID:
            self.paid_at = now
            self.events.append(OrderPaymentSucceeded(
                order_id=self.id,
                order_number=self.order_number,
                user_id=self.user_id,
                payment_method=self.payment_method,
                transaction_id=transaction_id,
                amount=str(amount if amount is not None else self.total),
                currency=self.currency,
            ))
        else:
            self.events.append(OrderPaymentFailed(
                order_id=self.id,
                order_number=self.order_number,
                user_id=self.user_id,
                payment_method=self.payment_method,
                transaction_id=transaction_id,
            ))

    # ------------------------------------------------------------------
    # 履约状态
    # ------------------------------------------------------------------
    def advance_fulfillment(self, target: OrderStatus, *, at: Optional[datetime] = None) -> OrderStatus:
        """推进履约状态，返回迁移前的状态"""
        target = OrderStatus(target)
        if FULFILLMENT_TRANSITIONS.get(self.status) != target:
            raise InvalidTransitionException(self.id, self.status.value, target.value)
        previous = self.status
        self.status = target
        self.updated_at = at or datetime.now(timezone.utc)
        self.events.append(OrderStatusAdvanced(
            order_id=self.id,
            order_number=self.order_number,
            user_id=self.user_id,
            previous_status=previous.value,
            status=target.value,
        ))
        return previous

    def clear_events(self) -> list[OrderEvent]:
        """清空并返回领域事件"""
        events = self.events.copy()
        self.events.clear()
        return events
