"""
FastAPI应用主入口
"""
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from api.routes import orders as orders_routes
from api.routes import payments as payments_routes
from api.middleware import RequestIDMiddleware, LoggingMiddleware
from application.ports.notifications import NotificationDispatcher
from application.services.order_service import OrderApplicationService
from application.services.payment_service import PaymentService
from application.services.webhook_reconciler import WebhookReconciler
from core.config import settings
from core.exceptions import register_exception_handlers
from core.response import success_response
from core.logging_config import get_logger, configure_logging
from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.database import create_tables
from infrastructure.external.payments import PaymentGatewayRegistry, build_gateway_registry
from infrastructure.notifications import LoggingNotificationDispatcher
from infrastructure.unit_of_work import sqlalchemy_uow_factory


# 初始化日志：在入口处显式配置
configure_logging()
logger = get_logger(__name__)


def _lifespan(*, manage_schema: bool):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理"""
        # 启动时创建数据库表（仅开发环境）。生产应使用 Alembic 迁移
        if manage_schema and settings.DEBUG:
            await create_tables()
            logger.info("database_initialized", message="Database tables created (development)")
        elif manage_schema:
            logger.info(
                "database_migrations_required",
                message="No auto-create in production, use Alembic migrations (alembic upgrade head)",
            )
        logger.info(
            "payment_gateways_ready",
            providers=app.state.gateway_registry.names(),
            configured=[
                name for name in app.state.gateway_registry.names()
                if app.state.gateway_registry.get(name).is_configured
            ],
        )

        yield

        # 关闭网关 HTTP 连接
        await app.state.gateway_registry.aclose()
        logger.info("application_shutdown", message="Application shutdown")

    return lifespan


def create_app(
    *,
    registry: Optional[PaymentGatewayRegistry] = None,
    uow_factory: Optional[Callable[..., AbstractUnitOfWork]] = None,
    notifier: Optional[NotificationDispatcher] = None,
) -> FastAPI:
    """
    组装应用：网关、服务在进程启动时构建一次，挂载到 app.state

    Args:
        registry: 支付网关注册表（默认按配置构建 stripe / payplus）
        uow_factory: 工作单元工厂（默认 SQLAlchemy）
        notifier: 订单事件通知器（默认写日志）
    """
    registry = registry or build_gateway_registry()
    manage_schema = uow_factory is None
    uow_factory = uow_factory or sqlalchemy_uow_factory
    notifier = notifier or LoggingNotificationDispatcher()

    order_service = OrderApplicationService(
        uow_factory,
        payment_methods=registry.names(),
        notifier=notifier,
        order_settings=settings.order,
    )

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=_lifespan(manage_schema=manage_schema),
        description="订单与支付对账服务",
    )
    app.state.gateway_registry = registry
    app.state.order_service = order_service
    app.state.payment_service = PaymentService(registry)
    app.state.webhook_reconciler = WebhookReconciler(registry, order_service)

    # 添加中间件（注意顺序：后添加的先执行）
    # 1. 日志中间件（依赖request_id）
    app.add_middleware(LoggingMiddleware)
    # 2. Request ID中间件（先于日志执行，为其提供request_id）
    app.add_middleware(RequestIDMiddleware)

    # 3. CORS中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 注册全局异常处理器
    register_exception_handlers(app)

    # 注册路由
    app.include_router(orders_routes.router)
    app.include_router(payments_routes.router)

    @app.get("/", tags=["Root"])
    async def root():
        """API根路径"""
        return success_response(
            name=settings.PROJECT_NAME,
            version=settings.VERSION,
            docs="/docs",
        )

    @app.get("/health", tags=["Health"])
    async def health_check():
        """健康检查端点"""
        return success_response(status="healthy", providers=registry.names())

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
