"""CRC16-CCITT implementation."""
from __future__ import annotations

CRC16_POLY = 0x1021
CRC16_INIT = 0xFFFF
CRC_TAG_HEADER = "6304"


def crc16_ccitt(data: str) -> str:
    """Compute CRC16-CCITT (0x1021) for EMV payload strings.

    Each character contributes its code point truncated to 8 bits, which is
    what QRIS readers do when they revalidate the trailing tag 63.
    """

    checksum = CRC16_INIT
    for ch in data:
        checksum ^= (ord(ch) & 0xFF) << 8
        for _ in range(8):
            if checksum & 0x8000:
                checksum = (checksum << 1) ^ CRC16_POLY
            else:
                checksum <<= 1
            checksum &= 0xFFFF
    return f"{checksum:04X}"


def verify_crc(payload: str) -> bool:
    """Return True when the payload ends with a matching ``6304`` CRC field."""

    if len(payload) < len(CRC_TAG_HEADER) + 4:
        return False
    if payload[-8:-4] != CRC_TAG_HEADER:
        return False
    return crc16_ccitt(payload[:-4]) == payload[-4:].upper()
