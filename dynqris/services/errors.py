"""Shared service error definitions."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class ServiceError(Exception):
    code: str
    message: str
    status_code: int = 400

    def __str__(self) -> str:  # noqa: D401 override
        return f"{self.code}: {self.message}"


def err_bad_payload(message: str | None = None) -> ServiceError:
    return ServiceError(code="ERR_BAD_PAYLOAD", message=message or "Payload is not a recognised QRIS payload", status_code=422)


def err_amount_range(message: str | None = None) -> ServiceError:
    return ServiceError(code="ERR_AMOUNT_RANGE", message=message or "Amount cannot be encoded", status_code=422)


def err_merchant_not_found(merchant_id: str) -> ServiceError:
    return ServiceError(code="ERR_MERCHANT_NOT_FOUND", message=f"Merchant {merchant_id} is not registered", status_code=404)


def err_payment_not_found(payment_id: str) -> ServiceError:
    return ServiceError(code="ERR_PAYMENT_NOT_FOUND", message=f"Payment {payment_id} not found", status_code=404)


def err_payment_closed(message: str | None = None) -> ServiceError:
    return ServiceError(code="ERR_PAYMENT_CLOSED", message=message or "Payment is no longer pending", status_code=409)
