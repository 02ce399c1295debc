"""Shared pytest fixtures and payload builders for dynqris tests."""

from __future__ import annotations

import os
import tempfile
from typing import Callable, Iterable, Iterator

import pytest

_DB_DIR = tempfile.mkdtemp(prefix="dynqris-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/dynqris.db"
os.environ["API_KEY"] = "test-key"
os.environ["ENVIRONMENT"] = "development"
os.environ["RENDER_QR"] = "true"

from fastapi.testclient import TestClient  # noqa: E402

from dynqris.crc import crc16_ccitt  # noqa: E402
from dynqris.tlv import TLVItem, build_tlv  # noqa: E402

API_KEY = "test-key"

MERCHANT_ACCOUNT = build_tlv(
    [
        TLVItem("00", "ID.CO.QRIS.WWW"),
        TLVItem("02", "ID1020012345678"),
        TLVItem("03", "UMI"),
    ]
)

DEFAULT_FIELDS: tuple[tuple[str, str], ...] = (
    ("00", "01"),
    ("01", "11"),
    ("51", MERCHANT_ACCOUNT),
    ("52", "5411"),
    ("53", "360"),
    ("58", "ID"),
    ("59", "TOKO MAJU JAYA"),
    ("60", "JAKARTA"),
    ("61", "10110"),
)


def build_static_payload(fields: Iterable[tuple[str, str]] = DEFAULT_FIELDS, *, with_crc: bool = True) -> str:
    """Serialize fields and append a valid ``6304`` CRC trailer."""
    body = build_tlv(TLVItem(tag, value) for tag, value in fields)
    if not with_crc:
        return body
    return f"{body}6304{crc16_ccitt(body + '6304')}"


@pytest.fixture
def static_payload() -> str:
    """A well-formed static QRIS payload with a valid CRC."""
    return build_static_payload()


@pytest.fixture
def default_fields() -> list[tuple[str, str]]:
    """Top-level (tag, value) pairs of the default static payload, without CRC."""
    return list(DEFAULT_FIELDS)


@pytest.fixture
def payload_builder() -> Callable[..., str]:
    """Factory for static payloads with custom field lists."""
    return build_static_payload


@pytest.fixture(scope="session")
def client() -> Iterator[TestClient]:
    """API client against a temporary SQLite database, authenticated."""
    from dynqris.api import app

    with TestClient(app, headers={"X-API-Key": API_KEY}) as test_client:
        yield test_client
