"""Byte-size parsing and formatting helpers.

Sizes in configuration may be given as plain byte counts or as strings such
as ``"50MB"``, ``"2 gb"`` or ``"500B"``.  Units are 1024-based and
case-insensitive; a missing unit means bytes.
"""

from __future__ import annotations

import math
import re

_SIZE_PATTERN = re.compile(r"^(\d+(\.\d+)?)\s*(B|KB|MB|GB|TB)?$")

_MULTIPLIERS: dict[str, int] = {
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
}

_DISPLAY_UNITS = ("B", "KB", "MB", "GB", "TB")


def parse_size(value: int | float | str) -> int:
    """Convert *value* into a byte count.

    Raises
    ------
    InvalidSizeFormatError
        If *value* is negative, not a number, or a string that does not match
        ``<number>[ ]<unit>``.
    """
    # Imported lazily: errors.py formats byte counts with this module.
    from docvault.utils.errors import InvalidSizeFormatError

    if isinstance(value, bool):
        raise InvalidSizeFormatError(value)
    if isinstance(value, (int, float)):
        if (isinstance(value, float) and not math.isfinite(value)) or value < 0:
            raise InvalidSizeFormatError(value)
        return round(value)
    if not isinstance(value, str):
        raise InvalidSizeFormatError(value)

    match = _SIZE_PATTERN.match(value.strip().upper())
    if match is None:
        raise InvalidSizeFormatError(value)

    number = float(match.group(1)) * _MULTIPLIERS[match.group(3) or "B"]
    if not math.isfinite(number):
        raise InvalidSizeFormatError(value)
    return round(number)


def format_bytes(num_bytes: int | float) -> str:
    """Render a byte count for humans, e.g. ``1536 -> "1.50 KB"``."""
    size = float(num_bytes)
    if abs(size) < 1024:
        return f"{int(size)} B"
    for unit in _DISPLAY_UNITS[1:]:
        size /= 1024
        if abs(size) < 1024 or unit == _DISPLAY_UNITS[-1]:
            return f"{size:.2f} {unit}"
    return f"{size:.2f} TB"


def to_megabytes(num_bytes: int | float) -> float:
    """Return *num_bytes* in MB rounded to two decimals."""
    return round(num_bytes / 1024 / 1024, 2)
