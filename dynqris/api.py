"""FastAPI application for dynqris."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .crc import crc16_ccitt, verify_crc
from .logging_conf import configure_logging
from .middleware import RequestLoggingMiddleware
from .models import PaymentRequest, get_session, init_db
from .monitoring import metrics_payload, record_service_error
from .schemas import (
    ConfirmRequest,
    ConfirmResponse,
    GenerateQRRequest,
    GenerateQRResponse,
    MerchantRequest,
    MerchantResponse,
    PaymentListResponse,
    PaymentResponse,
    PaymentStatusEnum,
    VerifyRequest,
    VerifyResponse,
)
from .services.errors import ServiceError
from .services.generator import PaymentGenerator
from .services.merchants import MerchantRegistry
from .services.reconcile import ReconcileService

logger = logging.getLogger("dynqris.api")


def _warn_insecure_defaults() -> None:
    if settings.api_key == "dev-secret-key":
        logger.warning(
            "api key is using the default value",
            extra={"config_key": "api_key", "environment": settings.environment},
        )


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    _warn_insecure_defaults()
    await init_db()
    yield


app = FastAPI(title="dynqris", version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CORSMiddleware, allow_origins=settings.allowed_origins, allow_methods=["*"], allow_headers=["*"])


async def require_api_key(x_api_key: str = Header(...)) -> None:
    if x_api_key != settings.api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    route = request.scope.get("route")
    route_path = route.path if route else request.url.path
    logger.warning(
        "service error",
        extra={"code": exc.code, "path": route_path, "method": request.method},
    )
    record_service_error(exc.code, route_path)
    return JSONResponse(status_code=exc.status_code, content={"code": exc.code, "message": exc.message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    route = request.scope.get("route")
    route_path = route.path if route else request.url.path
    logger.exception(
        "unhandled exception",
        extra={"path": route_path, "method": request.method},
    )
    return JSONResponse(status_code=500, content={"code": "ERR_INTERNAL", "message": "Internal server error"})


def _payment_response(payment: PaymentRequest) -> PaymentResponse:
    return PaymentResponse(
        payment_id=payment.id,
        transaction_id=payment.transaction_id,
        merchant_id=payment.merchant_id,
        status=PaymentStatusEnum(payment.status.value),
        bill_amount=payment.bill_amount,
        unique_code=payment.unique_code,
        final_amount=payment.final_amount,
        payload=payment.payload,
        created_at=payment.created_at,
    )


@app.get("/health", tags=["system"])
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/metrics", tags=["system"])
async def metrics() -> Response:
    payload, content_type = metrics_payload()
    return Response(content=payload, media_type=content_type)


@app.put(
    "/v1/merchants/{merchant_id}",
    response_model=MerchantResponse,
    tags=["merchants"],
    dependencies=[Depends(require_api_key)],
)
async def register_merchant(
    merchant_id: str,
    payload: MerchantRequest,
    session: AsyncSession = Depends(get_session),
) -> MerchantResponse:
    result = await MerchantRegistry(session).register(merchant_id=merchant_id, static_payload=payload.static_payload)
    return MerchantResponse(
        merchant_id=result.merchant.merchant_id,
        static_payload=result.merchant.static_payload,
        crc_valid=result.crc_valid,
        updated_at=result.merchant.updated_at,
    )


@app.get(
    "/v1/merchants/{merchant_id}",
    response_model=MerchantResponse,
    tags=["merchants"],
    dependencies=[Depends(require_api_key)],
)
async def get_merchant(merchant_id: str, session: AsyncSession = Depends(get_session)) -> MerchantResponse:
    merchant = await MerchantRegistry(session).get(merchant_id)
    return MerchantResponse(
        merchant_id=merchant.merchant_id,
        static_payload=merchant.static_payload,
        crc_valid=verify_crc(merchant.static_payload),
        updated_at=merchant.updated_at,
    )


@app.post("/v1/qr", response_model=GenerateQRResponse, tags=["qr"], dependencies=[Depends(require_api_key)])
async def generate_qr(
    payload: GenerateQRRequest,
    session: AsyncSession = Depends(get_session),
) -> GenerateQRResponse:
    generator = PaymentGenerator(session)
    result = await generator.create_payment(
        amount=payload.amount,
        merchant_id=payload.merchant_id,
        static_payload=payload.static_payload,
    )

    return GenerateQRResponse(
        payment_id=result.payment.id,
        transaction_id=result.payment.transaction_id,
        status=PaymentStatusEnum(result.payment.status.value),
        payload=result.encoded.payload,
        crc=result.encoded.crc,
        bill_amount=result.encoded.bill_amount,
        unique_code=result.encoded.unique_code,
        final_amount=result.encoded.final_amount,
        qr_png_base64=result.qr_png_base64,
    )


@app.post("/v1/verify", response_model=VerifyResponse, tags=["qr"], dependencies=[Depends(require_api_key)])
async def verify_payload(payload: VerifyRequest) -> VerifyResponse:
    text = payload.payload
    if len(text) < 4:
        return VerifyResponse(valid=False, provided_crc=None, calculated_crc=None)
    return VerifyResponse(
        valid=verify_crc(text),
        provided_crc=text[-4:],
        calculated_crc=crc16_ccitt(text[:-4]),
    )


@app.get("/v1/payments", response_model=PaymentListResponse, tags=["payments"], dependencies=[Depends(require_api_key)])
async def list_pending_payments(
    final_amount: int = Query(ge=1),
    session: AsyncSession = Depends(get_session),
) -> PaymentListResponse:
    payments = await ReconcileService(session).find_pending(final_amount)
    return PaymentListResponse(items=[_payment_response(payment) for payment in payments])


@app.get(
    "/v1/payments/{payment_id}",
    response_model=PaymentResponse,
    tags=["payments"],
    dependencies=[Depends(require_api_key)],
)
async def get_payment(payment_id: str, session: AsyncSession = Depends(get_session)) -> PaymentResponse:
    payment = await ReconcileService(session).get(payment_id)
    return _payment_response(payment)


@app.post(
    "/v1/payments/{payment_id}/confirm",
    response_model=ConfirmResponse,
    tags=["payments"],
    dependencies=[Depends(require_api_key)],
)
async def confirm_payment(
    payment_id: str,
    payload: ConfirmRequest,
    session: AsyncSession = Depends(get_session),
) -> ConfirmResponse:
    payment = await ReconcileService(session).confirm(payment_id, payload.action)
    return ConfirmResponse(
        payment_id=payment.id,
        transaction_id=payment.transaction_id,
        status=PaymentStatusEnum(payment.status.value),
    )
