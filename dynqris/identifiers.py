"""Reconciliation code and transaction identifier generators."""
from __future__ import annotations

import random
import string
import time
from typing import Callable

UNIQUE_CODE_MAX = 999
TXN_PREFIX = "TXN"
TXN_SUFFIX_LENGTH = 9
_TXN_ALPHABET = string.digits + string.ascii_lowercase

_system_random = random.SystemRandom()


def generate_unique_code(rng: random.Random | None = None) -> str:
    """Return a 3-digit code added to a bill so identical bills stay distinguishable."""

    source = rng or _system_random
    return f"{source.randint(0, UNIQUE_CODE_MAX):03d}"


def generate_transaction_id(
    *,
    clock: Callable[[], float] | None = None,
    rng: random.Random | None = None,
) -> str:
    """Return a display-only correlation id such as ``TXN-1760000000000-k3x9a0b2c``."""

    now_ms = int((clock or time.time)() * 1000)
    source = rng or _system_random
    suffix = "".join(source.choice(_TXN_ALPHABET) for _ in range(TXN_SUFFIX_LENGTH))
    return f"{TXN_PREFIX}-{now_ms}-{suffix}"
