"""
订单仓储接口 - 定义订单数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from .entity import Order, OrderStatus


class OrderRepository(ABC):
    """订单仓储抽象接口 - 只定义能做什么，不管怎么做

    状态写入全部是条件更新（compare-and-set），多实例并发投递的 webhook
    通过仓储的原子性串行化，而不是进程内锁。
    """

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """创建订单；订单号冲突时抛出 OrderNumberConflictException"""
        pass

    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        """根据ID获取订单"""
        pass

    @abstractmethod
    async def list_by_user(self, user_id: str, skip: int = 0, limit: int = 10) -> List[Order]:
        """获取用户订单列表（按创建时间倒序）"""
        pass

    @abstractmethod
    async def count_by_number_prefix(self, prefix: str) -> int:
        """统计以指定前缀开头的订单号数量，用于生成当日订单号序列"""
        pass

    @abstractmethod
    async def save_payment_result(self, order: Order, *, expected_version: int) -> bool:
        """
        条件写入支付结果

        仅当库中订单仍为 pending_payment 且 version == expected_version 时写入
        status / transaction_id / paid_at 并递增 version；返回是否写入成功。
        """
        pass

    @abstractmethod
    async def save_status(
        self,
        order: Order,
        *,
        expected_status: OrderStatus,
        expected_version: int,
    ) -> bool:
        """条件写入履约状态，语义同 save_payment_result"""
        pass
