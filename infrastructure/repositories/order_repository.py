"""
订单仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional, List
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, update
from sqlalchemy.exc import IntegrityError

from domain.common.exceptions import OrderNumberConflictException
from domain.order.entity import Order, OrderItem, OrderStatus
from domain.order.repository import OrderRepository
from infrastructure.models.order import OrderModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyOrderRepository(OrderRepository):
    """订单仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrderModel) -> Order:
        """将数据库模型转换为领域实体"""
        return Order(
            id=model.id,
            order_number=model.order_number,
            user_id=model.user_id,
            items=[OrderItem.from_dict(item) for item in (model.items or [])],
            shipping_address=model.shipping_address or {},
            billing_address=model.billing_address or {},
            shipping_method=model.shipping_method or {},
            payment_method=model.payment_method,
            subtotal=Decimal(str(model.subtotal)),
            shipping=Decimal(str(model.shipping)),
            tax=Decimal(str(model.tax)),
            total=Decimal(str(model.total)),
            currency=model.currency,
            status=OrderStatus(model.status),
            customer_notes=model.customer_notes,
            transaction_id=model.transaction_id,
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
            paid_at=model.paid_at,
        )

    def _to_model(self, entity: Order) -> OrderModel:
        """将领域实体转换为数据库模型"""
        return OrderModel(
            id=entity.id,
            order_number=entity.order_number,
            user_id=entity.user_id,
            items=[item.to_dict() for item in entity.items],
            shipping_address=entity.shipping_address,
            billing_address=entity.billing_address,
            shipping_method=entity.shipping_method,
            payment_method=entity.payment_method,
            customer_notes=entity.customer_notes,
            status=entity.status.value,
            subtotal=entity.subtotal,
            shipping=entity.shipping,
            tax=entity.tax,
            total=entity.total,
            currency=entity.currency,
            transaction_id=entity.transaction_id,
            version=entity.version,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            paid_at=entity.paid_at,
        )

    async def create(self, order: Order) -> Order:
        """创建订单"""
        try:
            db_order = self._to_model(order)
            self.session.add(db_order)
            await self.session.flush()
            await self.session.refresh(db_order)
            logger.info(
                "order_persisted",
                order_id=db_order.id,
                order_number=db_order.order_number,
            )
            return self._to_entity(db_order)
        except IntegrityError as e:
            await self.session.rollback()
            msg = str(e).lower()
            if "order_number" in msg:
                logger.warning(
                    "order_number_conflict",
                    order_number=order.order_number,
                )
                raise OrderNumberConflictException(order.order_number) from e
            raise

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        """根据ID获取订单"""
        result = await self.session.execute(
            select(OrderModel).where(OrderModel.id == order_id)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def list_by_user(self, user_id: str, skip: int = 0, limit: int = 10) -> List[Order]:
        """获取用户订单列表"""
        result = await self.session.execute(
            select(OrderModel)
            .where(OrderModel.user_id == user_id)
            .order_by(OrderModel.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(o) for o in result.scalars().all()]

    async def count_by_number_prefix(self, prefix: str) -> int:
        """统计订单号前缀匹配的订单数量"""
        result = await self.session.execute(
            select(func.count(OrderModel.id)).where(
                OrderModel.order_number.like(f"{prefix}%")
            )
        )
        return result.scalar_one()

    async def save_payment_result(self, order: Order, *, expected_version: int) -> bool:
        """条件写入支付结果（CAS on status + version）"""
        result = await self.session.execute(
            update(OrderModel)
            .where(
                OrderModel.id == order.id,
                OrderModel.status == OrderStatus.PENDING_PAYMENT.value,
                OrderModel.version == expected_version,
            )
            .values(
                status=order.status.value,
                transaction_id=order.transaction_id,
                paid_at=order.paid_at,
                updated_at=order.updated_at,
                version=expected_version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info(
                "order_payment_cas_lost",
                order_id=order.id,
                expected_version=expected_version,
            )
            return False
        order.version = expected_version + 1
        return True

    async def save_status(
        self,
        order: Order,
        *,
        expected_status: OrderStatus,
        expected_version: int,
    ) -> bool:
        """条件写入履约状态"""
        result = await self.session.execute(
            update(OrderModel)
            .where(
                OrderModel.id == order.id,
                OrderModel.status == expected_status.value,
                OrderModel.version == expected_version,
            )
            .values(
                status=order.status.value,
                updated_at=order.updated_at,
                version=expected_version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        order.version = expected_version + 1
        return True
