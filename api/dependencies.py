"""
API依赖项 - 身份解析与服务注入

身份由外部认证服务签发的 JWT 提供（sub 即用户ID），此处只做校验。
服务实例在应用启动时构建并挂载到 app.state，请求期间只读取。
"""
from typing import Optional

import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from application.services.order_service import OrderApplicationService
from application.services.payment_service import PaymentService
from application.services.webhook_reconciler import WebhookReconciler
from core.config import settings
from core.exceptions import UnauthorizedException
from core.logging_config import get_logger
from infrastructure.external.payments import PaymentGatewayRegistry


logger = get_logger(__name__)

# HTTP Bearer for direct API calls
http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token issued by the identity provider",
    auto_error=False,
)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> str:
    """解析当前用户ID，无有效会话时返回 401"""
    if not credentials or not credentials.credentials:
        raise UnauthorizedException()
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedException("Session expired")
    except jwt.PyJWTError as e:
        logger.info("auth_token_rejected", error_type=type(e).__name__)
        raise UnauthorizedException()

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedException()
    structlog.contextvars.bind_contextvars(user_id=str(user_id))
    return str(user_id)


def get_gateway_registry(request: Request) -> PaymentGatewayRegistry:
    return request.app.state.gateway_registry


def get_order_service(request: Request) -> OrderApplicationService:
    return request.app.state.order_service


def get_payment_service(request: Request) -> PaymentService:
    return request.app.state.payment_service


def get_webhook_reconciler(request: Request) -> WebhookReconciler:
    return request.app.state.webhook_reconciler
