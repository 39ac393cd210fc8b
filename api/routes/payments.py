"""
Payments API routes.

Exposes intent creation, payment status queries, the provider webhook and
fee quotes. Keep this thin:
signature checks, normalization and order updates live in the application
services and gateway adapters.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import JSONResponse

from api.dependencies import (
    get_gateway_registry,
    get_payment_service,
    get_webhook_reconciler,
)
from api.middleware import get_request_id
from application.dtos.payments import RawWebhookEvent
from application.services.payment_service import PaymentService
from application.services.webhook_reconciler import WebhookReconciler
from core.response import error_response, success_response
from infrastructure.external.payments import PaymentGatewayRegistry
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentErrorType


router = APIRouter(prefix="/payment", tags=["Payments"])


@router.post("/{provider}/create")
async def create_payment(
    provider: str,
    payload: dict[str, Any] = Body(...),
    service: PaymentService = Depends(get_payment_service),
):
    result = await service.create_payment(provider, payload)
    if not result.success:
        return JSONResponse(
            status_code=502,
            content=error_response(
                code=BusinessCode.NETWORK_ERROR,
                message=result.error or "Payment provider unavailable",
                error_type=PaymentErrorType.NETWORK_ERROR.value,
                details={"provider": result.provider},
                request_id=get_request_id(),
            ),
        )

    body: dict[str, Any] = {
        "provider": result.provider,
        "paymentId": result.gateway_payment_id,
        "isMock": result.is_mock,
    }
    if result.client_secret:
        body["clientSecret"] = result.client_secret
        body["paymentIntentId"] = result.gateway_payment_id
    if result.redirect_url:
        body["redirectUrl"] = result.redirect_url
    if result.transaction_id:
        body["transactionId"] = result.transaction_id
    if result.publishable_key:
        body["publishableKey"] = result.publishable_key
    return success_response(body)


@router.post("/{provider}/webhook")
async def payment_webhook(
    provider: str,
    request: Request,
    registry: PaymentGatewayRegistry = Depends(get_gateway_registry),
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
):
    # Signatures are computed over the exact bytes received
    raw_body = await request.body()
    gateway = registry.get(provider)
    signature = request.headers.get(gateway.signature_header_name) or ""
    ack = await reconciler.reconcile(
        RawWebhookEvent(provider=provider, raw_body=raw_body, signature_header=signature)
    )
    return success_response(received=True, outcome=ack.outcome.value)


@router.get("/{provider}/fees")
async def payment_fees(
    provider: str,
    amount: Decimal = Query(..., ge=0),
    currency: Optional[str] = Query(None, min_length=3, max_length=3),
    service: PaymentService = Depends(get_payment_service),
):
    quote = service.quote_fees(provider, amount, currency)
    return success_response(quote)


@router.get("/{provider}/status/{payment_id}")
async def payment_status(
    provider: str,
    payment_id: str,
    service: PaymentService = Depends(get_payment_service),
):
    result = await service.get_payment_status(provider, payment_id)
    if not result.success:
        return JSONResponse(
            status_code=502,
            content=error_response(
                code=BusinessCode.NETWORK_ERROR,
                message=result.error or "Payment provider unavailable",
                error_type=PaymentErrorType.NETWORK_ERROR.value,
                details={"provider": result.provider, "paymentId": result.payment_id},
                request_id=get_request_id(),
            ),
        )
    return success_response(result)
