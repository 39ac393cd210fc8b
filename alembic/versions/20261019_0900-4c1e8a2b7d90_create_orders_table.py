"""create_orders_table

Revision ID: 4c1e8a2b7d90
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4c1e8a2b7d90'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create orders table
    op.create_table(
        'orders',
        sa.Column('id', sa.String(length=36), nullable=False, comment='订单ID'),
        sa.Column('order_number', sa.String(length=32), nullable=False, comment='订单号 <PREFIX>-YYYYMMDD-NNNN'),
        sa.Column('user_id', sa.String(length=64), nullable=False, comment='用户ID（来自认证服务）'),
        sa.Column('items', sa.JSON(), nullable=False, comment='订单明细'),
        sa.Column('shipping_address', sa.JSON(), nullable=False, comment='收货地址'),
        sa.Column('billing_address', sa.JSON(), nullable=False, comment='账单地址'),
        sa.Column('shipping_method', sa.JSON(), nullable=False, comment='配送方式'),
        sa.Column('payment_method', sa.String(length=32), nullable=False, comment='支付方式: stripe/payplus'),
        sa.Column('customer_notes', sa.Text(), nullable=True, comment='买家备注'),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending_payment',
                  comment='订单状态: pending_payment/paid/failed/processing/shipped/delivered'),
        sa.Column('subtotal', sa.Numeric(precision=12, scale=2), nullable=False, comment='商品小计'),
        sa.Column('shipping', sa.Numeric(precision=12, scale=2), nullable=False, comment='运费'),
        sa.Column('tax', sa.Numeric(precision=12, scale=2), nullable=False, comment='税费'),
        sa.Column('total', sa.Numeric(precision=12, scale=2), nullable=False, comment='订单总额'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='ILS', comment='货币代码 ISO-4217'),
        sa.Column('transaction_id', sa.String(length=200), nullable=True, comment='渠道交易ID'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0', comment='版本号'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='更新时间'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True, comment='支付完成时间'),
        sa.PrimaryKeyConstraint('id'),
        comment='订单表，记录订单快照与支付状态'
    )

    # Create indexes
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_user_id', 'orders', ['user_id'], unique=False)
    op.create_index('ix_orders_status', 'orders', ['status'], unique=False)
    op.create_index('ix_orders_transaction_id', 'orders', ['transaction_id'], unique=False)
    op.create_index('ix_orders_created_at', 'orders', ['created_at'], unique=False)
    op.create_index('ix_orders_user_created', 'orders', ['user_id', 'created_at'], unique=False)


def downgrade() -> None:
    # Drop indexes
    op.drop_index('ix_orders_user_created', table_name='orders')
    op.drop_index('ix_orders_created_at', table_name='orders')
    op.drop_index('ix_orders_transaction_id', table_name='orders')
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_user_id', table_name='orders')
    op.drop_index('ix_orders_order_number', table_name='orders')

    # Drop table
    op.drop_table('orders')
