"""Input validation for memory records."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

MAX_MEMORY_CONTENT = 50_000
MAX_NAME_LENGTH = 200
MAX_TOPIC_LENGTH = 500
MAX_OPINION_LENGTH = 10_000
MAX_TAGS = 50
MAX_TAG_LENGTH = 100
MAX_MEMORIES = 100_000
MAX_OPINIONS = 5_000


class MemoryValidationError(ValueError):
    """Raised when caller input violates a record constraint."""

    def __init__(self, field: str, constraint: str) -> None:
        super().__init__(f"Validation failed: {field} - {constraint}")
        self.field = field
        self.constraint = constraint


class CapacityExceededError(MemoryValidationError):
    """Raised when a bounded collection is full and nothing can be evicted."""


def validate_string(
    value: Any,
    field: str,
    *,
    max_length: int | None = None,
    required: bool = True,
) -> str:
    """Return the stripped string or raise."""
    if value is None:
        if required:
            raise MemoryValidationError(field, "is required")
        return ""
    if not isinstance(value, str):
        raise MemoryValidationError(field, "must be a string")
    trimmed = value.strip()
    if required and not trimmed:
        raise MemoryValidationError(field, "must be at least 1 character(s), got 0")
    if max_length is not None and len(trimmed) > max_length:
        raise MemoryValidationError(
            field, f"must be at most {max_length} characters, got {len(trimmed)}"
        )
    return trimmed


def validate_number(
    value: Any,
    field: str,
    *,
    minimum: float = -math.inf,
    maximum: float = math.inf,
) -> float:
    """Return a finite number within range or raise."""
    if value is None:
        raise MemoryValidationError(field, "is required")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MemoryValidationError(field, "must be a finite number")
    if math.isnan(value) or math.isinf(value):
        raise MemoryValidationError(field, "must be a finite number")
    if value < minimum or value > maximum:
        raise MemoryValidationError(field, f"must be between {minimum} and {maximum}, got {value}")
    return float(value)


def validate_confidence(value: Any, field: str = "confidence") -> float:
    """Scores, weights and confidences all live in [0, 1]."""
    return validate_number(value, field, minimum=0.0, maximum=1.0)


def validate_string_list(
    value: Iterable[Any] | None,
    field: str,
    *,
    max_items: int = 100,
    max_item_length: int = 500,
) -> list[str]:
    """Validate a list of strings with per-item and total limits."""
    if value is None:
        return []
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise MemoryValidationError(field, "must be a list")
    if not isinstance(value, Sequence):
        value = list(value)
    if len(value) > max_items:
        raise MemoryValidationError(field, f"must have at most {max_items} items, got {len(value)}")
    items: list[str] = []
    for index, item in enumerate(value):
        if not isinstance(item, str):
            raise MemoryValidationError(f"{field}[{index}]", "must be a string")
        if len(item) > max_item_length:
            raise MemoryValidationError(
                f"{field}[{index}]", f"must be at most {max_item_length} characters"
            )
        items.append(item)
    return items


def validate_choice(value: Any, field: str, allowed: Sequence[str], default: str | None = None) -> str:
    """Validate enum-like string input."""
    if value is None:
        if default is not None:
            return default
        raise MemoryValidationError(field, f"is required, must be one of: {', '.join(allowed)}")
    if value not in allowed:
        raise MemoryValidationError(field, f"must be one of: {', '.join(allowed)}, got {value!r}")
    return str(value)


def validate_storage_path(storage_path: str | Path) -> Path:
    """Resolve the storage root, rejecting empty paths and null bytes."""
    raw = str(storage_path) if storage_path is not None else ""
    if not raw.strip():
        raise MemoryValidationError("storage_path", "is required and must be a non-empty path")
    if "\0" in raw:
        raise MemoryValidationError("storage_path", "must not contain null bytes")
    return Path(raw).expanduser().resolve()
