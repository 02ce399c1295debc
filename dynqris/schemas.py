"""Pydantic schemas for API contracts."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, model_validator

MAX_BILL_AMOUNT = 999_999_999_999


class PaymentStatusEnum(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class MerchantRequest(BaseModel):
    static_payload: str = Field(min_length=4, description="Static QRIS payload as decoded from the merchant QR")


class MerchantResponse(BaseModel):
    merchant_id: str
    static_payload: str
    crc_valid: bool
    updated_at: datetime


class GenerateQRRequest(BaseModel):
    merchant_id: str | None = Field(default=None, min_length=1, max_length=64)
    static_payload: str | None = Field(default=None, description="Inline static payload, bypasses the merchant cache")
    amount: int = Field(ge=1, le=MAX_BILL_AMOUNT, description="Bill amount in rupiah, no decimals")

    @model_validator(mode="after")
    def _one_source(self) -> "GenerateQRRequest":
        if (self.merchant_id is None) == (self.static_payload is None):
            raise ValueError("provide exactly one of merchant_id or static_payload")
        return self


class GenerateQRResponse(BaseModel):
    payment_id: str
    transaction_id: str
    status: PaymentStatusEnum
    payload: str
    crc: str
    bill_amount: int
    unique_code: str
    final_amount: int
    qr_png_base64: str | None = None


class VerifyRequest(BaseModel):
    payload: str


class VerifyResponse(BaseModel):
    valid: bool
    provided_crc: str | None
    calculated_crc: str | None


class PaymentResponse(BaseModel):
    payment_id: str
    transaction_id: str
    merchant_id: str | None
    status: PaymentStatusEnum
    bill_amount: int
    unique_code: str
    final_amount: int
    payload: str
    created_at: datetime


class PaymentListResponse(BaseModel):
    items: list[PaymentResponse]


class ConfirmRequest(BaseModel):
    action: Literal["PAID", "CANCELLED"]


class ConfirmResponse(BaseModel):
    payment_id: str
    transaction_id: str
    status: PaymentStatusEnum
