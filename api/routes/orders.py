"""
订单API路由 - FastAPI表现层
"""
from fastapi import APIRouter, Depends, Query

from api.dependencies import get_current_user_id, get_order_service
from application.dtos.orders import CreateOrderDTO, OrderQuoteRequestDTO
from application.services.order_service import OrderApplicationService
from core.response import success_response


router = APIRouter(
    prefix="/orders",
    tags=["订单"],
)


@router.post("", summary="创建订单")
async def create_order(
    payload: CreateOrderDTO,
    user_id: str = Depends(get_current_user_id),
    service: OrderApplicationService = Depends(get_order_service),
):
    """
    创建待支付订单

    - **items**: 购物车条目（至少一项）
    - **shippingAddress / billingAddress / shippingMethod**: 配送与账单信息
    - **paymentMethod**: 支付渠道（stripe / payplus）
    - **total / currency**: 客户端计算的金额，服务端原样保存
    """
    result = await service.create_order(user_id, payload)
    return success_response(result)


@router.post("/quote", summary="结算报价")
async def quote_order(
    payload: OrderQuoteRequestDTO,
    service: OrderApplicationService = Depends(get_order_service),
):
    """按小计计算运费、税费与总额"""
    quote = service.quote_totals(payload.subtotal, payload.currency)
    return success_response(quote)


@router.get("", summary="当前用户订单列表")
async def list_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    service: OrderApplicationService = Depends(get_order_service),
):
    orders = await service.list_user_orders(user_id, skip=skip, limit=limit)
    return success_response(
        orders=[o.model_dump(mode="json", by_alias=True, exclude_none=True) for o in orders]
    )


@router.get("/{order_id}", summary="订单详情")
async def get_order(
    order_id: str,
    user_id: str = Depends(get_current_user_id),
    service: OrderApplicationService = Depends(get_order_service),
):
    order = await service.get_order(order_id, user_id)
    return success_response(order=order.model_dump(mode="json", by_alias=True, exclude_none=True))
