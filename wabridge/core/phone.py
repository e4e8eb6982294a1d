"""Recipient address normalization.

WhatsApp expects international numbers as bare digits (country code, no
leading +). The normalized form doubles as the local thread key and the
account id of the counterpart, so sends and stored rows always agree.
"""

from __future__ import annotations

import re

from wabridge.exceptions import RecipientValidationError

_NON_DIGITS = re.compile(r"\D")
_VALID_PHONE = re.compile(r"^\d{10,15}$")


def normalize_phone(raw: str) -> str:
    """Strip whitespace and every non-digit, including a leading +."""
    return _NON_DIGITS.sub("", raw or "")


def is_valid_phone(phone: str) -> bool:
    """True for 10 to 15 digits with nothing else."""
    return bool(_VALID_PHONE.match(phone or ""))


def validate_recipient(raw: str) -> str:
    """Normalize and validate; raise RecipientValidationError on bad input."""
    phone = normalize_phone(raw)
    if not is_valid_phone(phone):
        raise RecipientValidationError(
            f"Invalid phone number format: {raw!r}. "
            "Phone number must contain 10-15 digits (e.g., 918097296453)"
        )
    return phone
