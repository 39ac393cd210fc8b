"""
订单数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Text, JSON, Index
)
from datetime import datetime, timezone

from .base import Base


class OrderModel(Base):
    """
    订单数据库模型

    这是数据库表的映射，不包含业务逻辑
    所有业务规则都在 domain.order.entity.Order 中
    """
    __tablename__ = "orders"

    # 主键（UUID 字符串，对外不可猜测）
    id = Column(String(36), primary_key=True, comment="订单ID")
    order_number = Column(String(32), unique=True, index=True, nullable=False, comment="订单号 <PREFIX>-YYYYMMDD-NNNN")
    user_id = Column(String(64), nullable=False, index=True, comment="用户ID（来自认证服务）")

    # 订单内容快照
    items = Column(JSON, nullable=False, comment="订单明细")
    shipping_address = Column(JSON, nullable=False, comment="收货地址")
    billing_address = Column(JSON, nullable=False, comment="账单地址")
    shipping_method = Column(JSON, nullable=False, comment="配送方式")
    payment_method = Column(String(32), nullable=False, comment="支付方式: stripe/payplus")
    customer_notes = Column(Text, nullable=True, comment="买家备注")

    # 状态
    status = Column(
        String(32),
        nullable=False,
        default="pending_payment",
        index=True,
        comment="订单状态: pending_payment/paid/failed/processing/shipped/delivered"
    )

    # 金额信息（使用 Numeric 存储精确金额）
    subtotal = Column(Numeric(precision=12, scale=2), nullable=False, comment="商品小计")
    shipping = Column(Numeric(precision=12, scale=2), nullable=False, comment="运费")
    tax = Column(Numeric(precision=12, scale=2), nullable=False, comment="税费")
    total = Column(Numeric(precision=12, scale=2), nullable=False, comment="订单总额")
    currency = Column(String(3), nullable=False, default="ILS", comment="货币代码 ISO-4217")

    # 支付渠道交易号，首次终态迁移时写入
    transaction_id = Column(String(200), nullable=True, index=True, comment="渠道交易ID")

    # 乐观并发版本号
    version = Column(Integer, nullable=False, default=0, comment="版本号")

    # 时间戳
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )
    paid_at = Column(DateTime(timezone=True), nullable=True, comment="支付完成时间")

    # 索引
    __table_args__ = (
        Index("ix_orders_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return (
            f"<OrderModel(id='{self.id}', order_number='{self.order_number}', "
            f"total={self.total}, status='{self.status}')>"
        )
