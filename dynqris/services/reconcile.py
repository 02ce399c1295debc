"""Matching received amounts back to issued payment requests."""
from __future__ import annotations

import logging
from typing import Literal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import PaymentRequest, PaymentStatus
from .errors import err_payment_closed, err_payment_not_found

logger = logging.getLogger("dynqris.services")


class ReconcileService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_pending(self, final_amount: int) -> list[PaymentRequest]:
        """Return pending requests whose amount (bill plus unique code) matches."""

        stmt = (
            select(PaymentRequest)
            .where(PaymentRequest.final_amount == final_amount)
            .where(PaymentRequest.status == PaymentStatus.PENDING)
            .order_by(PaymentRequest.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get(self, payment_id: str) -> PaymentRequest:
        payment = await self.session.get(PaymentRequest, payment_id)
        if payment is None:
            raise err_payment_not_found(payment_id)
        return payment

    async def confirm(self, payment_id: str, action: Literal["PAID", "CANCELLED"]) -> PaymentRequest:
        payment = await self.get(payment_id)
        if payment.status != PaymentStatus.PENDING:
            raise err_payment_closed()

        payment.status = PaymentStatus(action)
        await self.session.commit()
        await self.session.refresh(payment)
        logger.info("payment confirmed", extra={"payment_id": payment_id, "transaction_id": payment.transaction_id, "status": payment.status.value})
        return payment
