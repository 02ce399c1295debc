"""Merchant static payload cache."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from ..crc import verify_crc
from ..models import Merchant
from ..qris_encoder import strip_crc
from ..tlv import FormatError, split_at_country_code
from .errors import err_bad_payload, err_merchant_not_found

logger = logging.getLogger("dynqris.services")


@dataclass(slots=True)
class MerchantResult:
    merchant: Merchant
    crc_valid: bool


class MerchantRegistry:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def register(self, *, merchant_id: str, static_payload: str) -> MerchantResult:
        """Store (or replace) the static payload used for a merchant's bills."""

        try:
            split_at_country_code(strip_crc(static_payload))
        except FormatError as exc:
            raise err_bad_payload(str(exc)) from exc

        crc_valid = verify_crc(static_payload)
        if not crc_valid:
            logger.warning("static payload crc mismatch", extra={"merchant_id": merchant_id})

        merchant = await self.session.get(Merchant, merchant_id)
        if merchant is None:
            merchant = Merchant(merchant_id=merchant_id, static_payload=static_payload)
            self.session.add(merchant)
        else:
            merchant.static_payload = static_payload

        await self.session.commit()
        await self.session.refresh(merchant)
        logger.info("merchant registered", extra={"merchant_id": merchant_id, "crc_valid": crc_valid})
        return MerchantResult(merchant=merchant, crc_valid=crc_valid)

    async def get(self, merchant_id: str) -> Merchant:
        merchant = await self.session.get(Merchant, merchant_id)
        if merchant is None:
            raise err_merchant_not_found(merchant_id)
        return merchant
