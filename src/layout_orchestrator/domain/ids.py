"""
Prefixed ULID identifiers for layout entities.

Every generated id has the shape ``<prefix>-<ULID>``, e.g. ``cmp-01JAB...``. The
ULID part is 26 Crockford Base32 characters: a 48-bit millisecond timestamp
followed by 80 random bits, so ids sort roughly by creation time.
"""

from __future__ import annotations

import secrets
import time
from collections.abc import Callable
from typing import Final

CROCKFORD_BASE32_ALPHABET: Final[str] = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
ULID_LENGTH: Final[int] = 26
ULID_MAX_TIMESTAMP_MS: Final[int] = 2**48 - 1

COMPONENT_ID_PREFIX: Final[str] = "cmp"
COMMAND_ID_PREFIX: Final[str] = "cmd"
PLAN_ID_PREFIX: Final[str] = "plan"
TRANSACTION_ID_PREFIX: Final[str] = "txn"
CHECKPOINT_ID_PREFIX: Final[str] = "ckpt"
TURN_ID_PREFIX: Final[str] = "turn"

_ENTROPY_BYTES: Final[int] = 10
_ULID_BITS: Final[int] = 128


def generate_ulid(
    *,
    timestamp_ms: int | None = None,
    randbytes: Callable[[int], bytes] | None = None,
) -> str:
    millis = time.time_ns() // 1_000_000 if timestamp_ms is None else timestamp_ms
    if not 0 <= millis <= ULID_MAX_TIMESTAMP_MS:
        raise ValueError(f"timestamp_ms out of range 0..{ULID_MAX_TIMESTAMP_MS}: {millis}")
    entropy = (randbytes or secrets.token_bytes)(_ENTROPY_BYTES)
    if len(entropy) != _ENTROPY_BYTES:
        raise ValueError(f"randbytes must return exactly {_ENTROPY_BYTES} bytes")

    value = millis << 80 | int.from_bytes(entropy, "big")
    digits: list[str] = []
    for _ in range(ULID_LENGTH):
        value, digit = divmod(value, 32)
        digits.append(CROCKFORD_BASE32_ALPHABET[digit])
    return "".join(reversed(digits))


def validate_ulid(value: str) -> None:
    _ulid_to_int(value)


def parse_ulid_timestamp_ms(value: str) -> int:
    return _ulid_to_int(value) >> 80


def generate_prefixed_id(
    prefix: str,
    *,
    timestamp_ms: int | None = None,
    randbytes: Callable[[int], bytes] | None = None,
) -> str:
    _check_prefix(prefix)
    return f"{prefix}-{generate_ulid(timestamp_ms=timestamp_ms, randbytes=randbytes)}"


def validate_prefixed_id(value: str, expected_prefix: str) -> None:
    _check_prefix(expected_prefix)
    lead = f"{expected_prefix}-"
    if not isinstance(value, str) or not value.startswith(lead):
        raise ValueError(f"expected prefix '{lead}'")
    try:
        _ulid_to_int(value.removeprefix(lead))
    except ValueError as exc:
        raise ValueError(f"invalid ULID part for prefix '{expected_prefix}': {exc}") from exc


def short_id(value: str) -> str:
    """Last eight characters, enough to tell ids apart in CLI output."""
    return value[-8:]


def generate_component_id() -> str:
    return generate_prefixed_id(COMPONENT_ID_PREFIX)


def generate_command_id() -> str:
    return generate_prefixed_id(COMMAND_ID_PREFIX)


def generate_plan_id() -> str:
    return generate_prefixed_id(PLAN_ID_PREFIX)


def generate_transaction_id() -> str:
    return generate_prefixed_id(TRANSACTION_ID_PREFIX)


def generate_checkpoint_id() -> str:
    return generate_prefixed_id(CHECKPOINT_ID_PREFIX)


def generate_turn_id() -> str:
    return generate_prefixed_id(TURN_ID_PREFIX)


def _ulid_to_int(text: str) -> int:
    if not isinstance(text, str):
        raise ValueError(f"ulid must be a string, got {type(text).__name__}")
    if len(text) != ULID_LENGTH:
        raise ValueError(f"ulid length must be {ULID_LENGTH}, got {len(text)}")
    value = 0
    for position, char in enumerate(text.upper()):
        digit = CROCKFORD_BASE32_ALPHABET.find(char)
        if digit < 0:
            raise ValueError(f"invalid ULID character {char!r} at index {position}")
        value = value * 32 + digit
    if value >> _ULID_BITS:
        raise ValueError("ulid overflow: value exceeds 128 bits")
    return value


def _check_prefix(prefix: str) -> None:
    if not isinstance(prefix, str) or not prefix:
        raise ValueError("prefix must be a non-empty string")
    if "-" in prefix:
        raise ValueError("prefix must not contain '-'")


__all__ = [
    "CHECKPOINT_ID_PREFIX",
    "COMMAND_ID_PREFIX",
    "COMPONENT_ID_PREFIX",
    "CROCKFORD_BASE32_ALPHABET",
    "PLAN_ID_PREFIX",
    "TRANSACTION_ID_PREFIX",
    "TURN_ID_PREFIX",
    "ULID_LENGTH",
    "ULID_MAX_TIMESTAMP_MS",
    "generate_checkpoint_id",
    "generate_command_id",
    "generate_component_id",
    "generate_plan_id",
    "generate_prefixed_id",
    "generate_transaction_id",
    "generate_turn_id",
    "generate_ulid",
    "parse_ulid_timestamp_ms",
    "short_id",
    "validate_prefixed_id",
    "validate_ulid",
]
