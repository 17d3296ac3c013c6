"""Sender identity normalization."""

from __future__ import annotations

import re

_NON_DIGIT = re.compile(r"\D")


def normalize_e164(phone: str) -> str:
    """Normalize North American numbers to E.164; others keep their digits."""
    digits = _NON_DIGIT.sub("", phone)
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    if len(digits) == 10:
        return f"+1{digits}"
    return phone if phone.startswith("+") else f"+{digits}"
