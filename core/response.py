"""
统一响应格式定义

前端约定为扁平结构：成功 ``{"success": true, ...}``，
失败 ``{"success": false, "error": "...", "code": ..., "type": "..."}``。
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel
from datetime import datetime, timezone


class ErrorResponse(BaseModel):
    """错误响应"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = False
    error: str
    code: int
    type: str
    details: Optional[dict] = None
    field: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer('timestamp')
    def serialize_timestamp(self, timestamp: datetime) -> str:
        """序列化时间戳为 UTC ISO8601，统一使用 Z 结尾"""
        ts = timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        else:
            ts = ts.astimezone(timezone.utc)
        s = ts.isoformat()
        return s.replace("+00:00", "Z")


def success_response(data: Any = None, **fields: Any) -> dict:
    """
    创建成功响应

    Args:
        data: Pydantic 模型或字典，字段平铺到响应体（camelCase）
        fields: 额外的顶层字段

    Returns:
        dict: 可直接序列化的响应体
    """
    body: dict[str, Any] = {"success": True}
    if isinstance(data, BaseModel):
        body.update(data.model_dump(mode="json", by_alias=True, exclude_none=True))
    elif isinstance(data, dict):
        body.update(data)
    body.update(fields)
    return body


def error_response(
    code: int,
    message: str,
    error_type: str = "BusinessError",
    details: Optional[dict] = None,
    field: Optional[str] = None,
    request_id: Optional[str] = None
) -> dict:
    """
    创建错误响应

    Args:
        code: 业务状态码
        message: 面向调用方的错误消息
        error_type: 错误类型（VALIDATION_ERROR / NETWORK_ERROR ...）
        details: 错误详情
        field: 错误字段
        request_id: 请求ID

    Returns:
        dict: 可直接序列化的响应体
    """
    return ErrorResponse(
        error=message,
        code=int(code),
        type=error_type,
        details=details,
        field=field,
        request_id=request_id,
    ).model_dump(mode="json", by_alias=True, exclude_none=True)
