"""Utility helpers to build, parse and locate fields in EMV-style TLV payloads."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

TAG_INITIATION = "01"
TAG_AMOUNT = "54"
TAG_COUNTRY = "58"
TAG_CRC = "63"

INITIATION_STATIC = "11"
INITIATION_DYNAMIC = "12"
COUNTRY_ID = "ID"

MAX_VALUE_LENGTH = 99


class FormatError(ValueError):
    """Raised when a payload does not have the expected QRIS structure."""


@dataclass(frozen=True)
class TLVItem:
    tag: str
    value: str

    def serialize(self) -> str:
        if len(self.value) > MAX_VALUE_LENGTH:
            raise ValueError(f"Tag {self.tag} value exceeds {MAX_VALUE_LENGTH} characters")
        length = f"{len(self.value):02d}"
        return f"{self.tag}{length}{self.value}"


def build_tlv(items: Iterable[TLVItem]) -> str:
    """Serialize iterable of TLV items into EMV string."""

    return "".join(item.serialize() for item in items)


def parse_tlv(payload: str) -> Iterator[TLVItem]:
    """Parse TLV payload string into TLV items."""

    idx = 0
    total = len(payload)
    while idx + 4 <= total:
        tag = payload[idx : idx + 2]
        raw_length = payload[idx + 2 : idx + 4]
        if not (raw_length.isascii() and raw_length.isdigit()):
            raise FormatError(f"Invalid TLV length {raw_length!r} for tag {tag!r}")
        length = int(raw_length)
        value_start = idx + 4
        value_end = value_start + length
        if value_end > total:
            raise FormatError("Invalid TLV length exceeds payload")
        value = payload[value_start:value_end]
        yield TLVItem(tag=tag, value=value)
        idx = value_end
    if idx != total:
        raise FormatError("Dangling TLV data detected")


def mark_dynamic(items: Sequence[TLVItem]) -> tuple[list[TLVItem], bool]:
    """Switch the point-of-initiation field from static (11) to dynamic (12).

    Payloads without a static initiation field are returned unchanged and the
    flag is False.
    """

    result = list(items)
    for idx, item in enumerate(result):
        if item.tag != TAG_INITIATION:
            continue
        if item.value == INITIATION_STATIC:
            result[idx] = TLVItem(tag=TAG_INITIATION, value=INITIATION_DYNAMIC)
            return result, True
        break
    return result, False


def split_at_country_code(items: Sequence[TLVItem]) -> tuple[list[TLVItem], TLVItem, list[TLVItem]]:
    """Split items around the single ``5802ID`` country-code field."""

    positions = [idx for idx, item in enumerate(items) if item.tag == TAG_COUNTRY]
    if len(positions) != 1 or items[positions[0]].value != COUNTRY_ID:
        raise FormatError("missing or ambiguous country-code anchor")
    pos = positions[0]
    return list(items[:pos]), items[pos], list(items[pos + 1 :])
