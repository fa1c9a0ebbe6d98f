"""One-time verification codes."""

from __future__ import annotations

import re
import secrets

_CODE_RE = re.compile(r"\d{4}", re.ASCII)


def generate_code() -> int:
    """Random 4-digit code in [1000, 9999]."""
    return 1000 + secrets.randbelow(9000)


def is_valid_code_input(text: str | None) -> bool:
    """True when *text* is exactly four ASCII digits."""
    return text is not None and _CODE_RE.fullmatch(text) is not None
