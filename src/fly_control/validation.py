"""Required-argument checks shared by the resource APIs and workflows.

A failed check is a programmer error: it raises ``ValueError`` before any
request is sent.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def require_str(value: Any, field_name: str) -> str:
    if value is None or value == "":
        raise ValueError(f"{field_name} is required")
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a non-empty string")
    return value


def require_config(value: Any, field_name: str = "config") -> Mapping[str, Any]:
    if value is None:
        raise ValueError(f"{field_name} is required")
    if not isinstance(value, Mapping) or not value:
        raise ValueError(f"{field_name} must be a non-empty mapping")
    return value


def require_positive_int(value: Any, field_name: str) -> int:
    if value is None:
        raise ValueError(f"{field_name} is required")
    # bool is an int subclass; True is not a size.
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{field_name} must be a positive integer")
    return value
