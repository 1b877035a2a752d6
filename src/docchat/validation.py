"""Synchronous input checks run before any work is scheduled."""

from __future__ import annotations

import hmac
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from docchat.config import settings
from docchat.exceptions import AuthenticationError, ValidationError

_MB = 1024 * 1024


def validate_required(data: Mapping[str, Any], fields: Iterable[str]) -> None:
    """Raise if any of *fields* is missing or a blank string in *data*."""
    missing = []
    for name in fields:
        value = data.get(name)
        if not value or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}", details={"fields": missing}
        )


def validate_pagination(page: Any, page_size: Any, max_page_size: int = 100) -> tuple[int, int]:
    """Clamp *page* to >= 1 and *page_size* to ``[1, max_page_size]``.

    Unparseable values fall back to page 1 and the configured page size.
    """
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    try:
        page_size = int(page_size)
    except (TypeError, ValueError):
        page_size = settings.history_page_size
    return max(1, page), min(max_page_size, max(1, page_size))


def validate_password(password: str | None, expected: str | None = None) -> None:
    expected = settings.upload_password if expected is None else expected
    if not hmac.compare_digest((password or "").encode(), expected.encode()):
        raise AuthenticationError()


def validate_file_size(size: int, max_size: int | None = None) -> None:
    max_size = max_size or settings.max_file_size
    if size > max_size:
        raise ValidationError(
            f"File size ({size / _MB:.2f}MB) exceeds maximum allowed size ({max_size / _MB:.2f}MB)",
            field="file",
        )


def validate_file_extension(filename: str, allowed: Iterable[str] | None = None) -> None:
    allowed = list(allowed or settings.allowed_extensions)
    ext = Path(filename).suffix.lower()
    if ext not in allowed:
        raise ValidationError(
            f"File extension '{ext}' is not allowed. Allowed: {', '.join(allowed)}",
            field="file",
        )


def sanitize_input(value: Any) -> Any:
    """Strip whitespace and angle brackets from string input."""
    if not isinstance(value, str):
        return value
    return value.strip().replace("<", "").replace(">", "")
