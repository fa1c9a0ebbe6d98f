"""Phone number validation and normalization.

The staff directory stores numbers as 11 digits starting with 7
(``79991234567``). Users may type or share the number with a leading
``+``; nothing else is accepted.
"""

from __future__ import annotations

import re

_PHONE_RE = re.compile(r"\+?(7\d{10})", re.ASCII)


def normalize_phone(raw: str | None) -> str | None:
    """Return the canonical directory form of *raw*, or None if it is not a valid number."""
    if not raw:
        return None
    match = _PHONE_RE.fullmatch(raw.strip())
    if match is None:
        return None
    return match.group(1)


def is_valid_phone(raw: str | None) -> bool:
    return normalize_phone(raw) is not None
