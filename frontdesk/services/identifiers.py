"""Serial/entry number generation and guest identity formats."""

import re
import secrets
import time

MOBILE_PATTERN = re.compile(r"^[0-9]{10}$")
NATIONAL_ID_PATTERN = re.compile(r"^[0-9]{4}-[0-9]{4}-[0-9]{4}$")


def _stamped_number(prefix: str) -> str:
    """``<prefix><last 6 digits of epoch millis><3-digit random>``."""
    millis = str(time.time_ns() // 1_000_000)
    return f"{prefix}{millis[-6:]}{secrets.randbelow(1000):03d}"


def generate_serial_no() -> str:
    return _stamped_number("S")


def generate_entry_no() -> str:
    return _stamped_number("E")


def format_national_id(value: str) -> str:
    """Normalise 12 bare digits to ``NNNN-NNNN-NNNN``; anything else is returned as-is."""
    digits = re.sub(r"\D", "", value)
    if len(digits) == 12:
        return f"{digits[:4]}-{digits[4:8]}-{digits[8:]}"
    return value


def is_valid_national_id(value: str) -> bool:
    return bool(NATIONAL_ID_PATTERN.match(value))


def is_valid_mobile(value: str) -> bool:
    return bool(MOBILE_PATTERN.match(value))
