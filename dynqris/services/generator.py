"""Dynamic payment QR generation services."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..identifiers import generate_transaction_id, generate_unique_code
from ..models import PaymentRequest
from ..monitoring import record_payload_generated
from ..qris_encoder import AmountError, EncodedPayload, to_dynamic
from ..renderer import render_qr_payload
from ..tlv import FormatError
from .errors import err_amount_range, err_bad_payload
from .merchants import MerchantRegistry

logger = logging.getLogger("dynqris.services")


@dataclass(slots=True)
class GenerateResult:
    payment: PaymentRequest
    encoded: EncodedPayload
    qr_png_base64: str | None


class PaymentGenerator:
    def __init__(
        self,
        session: AsyncSession,
        *,
        code_source: Callable[[], str] | None = None,
        id_source: Callable[[], str] | None = None,
    ):
        self.session = session
        self.code_source = code_source or generate_unique_code
        self.id_source = id_source or generate_transaction_id

    async def create_payment(
        self,
        *,
        amount: int,
        merchant_id: str | None = None,
        static_payload: str | None = None,
    ) -> GenerateResult:
        if merchant_id is not None:
            merchant = await MerchantRegistry(self.session).get(merchant_id)
            static_payload = merchant.static_payload
            source = "merchant"
        elif static_payload is not None:
            source = "inline"
        else:
            raise err_bad_payload("No static payload supplied")

        try:
            encoded = to_dynamic(static_payload, amount, code_source=self.code_source)
        except FormatError as exc:
            raise err_bad_payload(str(exc)) from exc
        except AmountError as exc:
            raise err_amount_range(str(exc)) from exc

        record_payload_generated(source, encoded.initiation_marked)

        qr_png_base64 = None
        if settings.render_qr:
            qr_png_base64 = render_qr_payload(encoded.payload, title=settings.qr_title).png_base64

        payment = PaymentRequest(
            transaction_id=self.id_source(),
            merchant_id=merchant_id,
            bill_amount=encoded.bill_amount,
            unique_code=encoded.unique_code,
            final_amount=encoded.final_amount,
            payload=encoded.payload,
            crc=encoded.crc,
        )
        self.session.add(payment)
        await self.session.commit()
        await self.session.refresh(payment)

        logger.info(
            "dynamic payload generated",
            extra={
                "transaction_id": payment.transaction_id,
                "merchant_id": merchant_id,
                "final_amount": encoded.final_amount,
            },
        )
        return GenerateResult(payment=payment, encoded=encoded, qr_png_base64=qr_png_base64)
