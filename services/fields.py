"""Input cleaning shared by the record services."""

from __future__ import annotations

import math
import re
from typing import Any, Optional


def normalize_ws(value: Any) -> str:
    return re.sub(r"\s+", " ", str(value or "")).strip()


def clean_text(value: Any, limit: int = 500, name: str = "Value") -> str:
    """Strip surrounding whitespace; text longer than ``limit`` is rejected, never cut."""
    text = str(value if value is not None else "").strip()
    if len(text) > limit:
        raise ValueError(f"{name} must be at most {limit} characters")
    return text


def clean_optional(value: Any, limit: int = 2000, name: str = "Value") -> Optional[str]:
    text = clean_text(value, limit, name)
    return text or None


def parse_number(value: Any, default: float = 0.0) -> float:
    """Parse a user-supplied number; blank or unparseable input gives ``default``."""
    if value in (None, "", False):
        return default
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return number


def require_non_negative(name: str, value: float) -> float:
    if math.isinf(value) or value < 0:
        raise ValueError(f"{name} must be a non-negative number")
    return value


def as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)
