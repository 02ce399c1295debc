"""Static to dynamic QRIS payload conversion."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from .crc import CRC_TAG_HEADER, crc16_ccitt
from .identifiers import generate_unique_code
from .tlv import (
    MAX_VALUE_LENGTH,
    TAG_AMOUNT,
    TAG_CRC,
    FormatError,
    TLVItem,
    build_tlv,
    mark_dynamic,
    parse_tlv,
    split_at_country_code,
)

logger = logging.getLogger("dynqris.encoder")

MIN_PAYLOAD_LENGTH = 4


class AmountError(ValueError):
    """Raised when the final amount cannot be encoded in tag 54."""


@dataclass(frozen=True)
class EncodedPayload:
    payload: str
    crc: str
    bill_amount: int
    unique_code: str
    final_amount: int
    initiation_marked: bool


def strip_crc(base_payload: str) -> list[TLVItem]:
    """Parse an EMV payload and drop Tag 63 (CRC) if present."""

    if len(base_payload) < MIN_PAYLOAD_LENGTH:
        raise FormatError("payload too short")
    return [item for item in parse_tlv(base_payload) if item.tag != TAG_CRC]


def build_amount_item(amount: int) -> TLVItem:
    """Build the Tag 54 transaction amount field."""

    amount_str = str(amount)
    if amount <= 0 or len(amount_str) > MAX_VALUE_LENGTH:
        raise AmountError(f"amount {amount_str} is out of the representable range")
    return TLVItem(tag=TAG_AMOUNT, value=amount_str)


def to_dynamic(
    static_payload: str,
    bill_amount: int,
    *,
    code_source: Callable[[], str] = generate_unique_code,
) -> EncodedPayload:
    """Turn a static merchant payload into a single-use payload for ``bill_amount``.

    The point-of-initiation field is switched to dynamic, a Tag 54 amount of
    ``bill_amount`` plus a 3-digit reconciliation code is placed right before
    the ``5802ID`` country field, and the CRC is recomputed.
    """

    if isinstance(bill_amount, bool) or not isinstance(bill_amount, int):
        raise TypeError("bill_amount must be an integer")

    items = [item for item in strip_crc(static_payload) if item.tag != TAG_AMOUNT]

    items, marked = mark_dynamic(items)
    if not marked:
        logger.warning(
            "point of initiation field not static, passing through",
            extra={"payload_length": len(static_payload)},
        )

    prefix, anchor, suffix = split_at_country_code(items)

    unique_code = code_source()
    final_amount = bill_amount + int(unique_code)
    amount_item = build_amount_item(final_amount)

    body = build_tlv([*prefix, amount_item, anchor, *suffix])
    crc_input = f"{body}{CRC_TAG_HEADER}"
    crc = crc16_ccitt(crc_input)
    return EncodedPayload(
        payload=f"{crc_input}{crc}",
        crc=crc,
        bill_amount=bill_amount,
        unique_code=unique_code,
        final_amount=final_amount,
        initiation_marked=marked,
    )
