"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentErrorType


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type=PaymentErrorType.VALIDATION_ERROR.value,
            details=details,
            field=field,
        )


class OrderNotFoundException(BusinessException):
    def __init__(self, order_id: str):
        super().__init__(
            code=BusinessCode.ORDER_NOT_FOUND,
            message=f"Order {order_id} not found",
            error_type=PaymentErrorType.ORDER_NOT_FOUND.value,
            details={"order_id": order_id},
        )


class OrderNumberConflictException(BusinessException):
    """订单号唯一约束冲突（并发创建时可重试）"""

    def __init__(self, order_number: str):
        super().__init__(
            code=BusinessCode.ORDER_NUMBER_CONFLICT,
            message=f"Order number {order_number} already taken",
            error_type="OrderNumberConflict",
            details={"order_number": order_number},
        )


class InvalidTransitionException(BusinessException):
    def __init__(
        self,
        order_id: str,
        current_status: str,
        requested: str,
        *,
        stored_transaction_id: Optional[str] = None,
        incoming_transaction_id: Optional[str] = None,
    ):
        super().__init__(
            code=BusinessCode.INVALID_TRANSITION,
            message=f"Order {order_id} cannot move from {current_status} on {requested}",
            error_type=PaymentErrorType.INVALID_TRANSITION.value,
            details={
                "order_id": order_id,
                "current_status": current_status,
                "requested": requested,
                "stored_transaction_id": stored_transaction_id,
                "incoming_transaction_id": incoming_transaction_id,
            },
        )


class ConcurrentUpdateException(BusinessException):
    """乐观并发冲突重试耗尽，调用方应整体重试"""

    def __init__(self, order_id: str, attempts: int):
        super().__init__(
            code=BusinessCode.CONCURRENT_UPDATE,
            message=f"Order {order_id} changed concurrently {attempts} times",
            error_type=PaymentErrorType.INTERNAL_ERROR.value,
            details={"order_id": order_id, "attempts": attempts},
        )
