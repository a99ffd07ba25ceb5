"""Common helper functions for the Sinopé integration.

This module provides the conversions between the identifiers typed by
the user (hexadecimal strings, optionally grouped with spaces, dashes
or colons) and the raw byte identifiers used on the wire.  Both
functions are pure and safe to use from tests without a gateway.
"""

from __future__ import annotations

import re

_SEPARATORS = re.compile(r"[\s\-:]")


def parse_hex_id(value: str | None, length: int) -> bytes | None:
    """Convert a hexadecimal identifier into bytes.

    Parameters
    ----------
    value: str or None
        The identifier as typed by the user, e.g. ``"0123 4567 89AB CDEF"``.
        Spaces, dashes and colons are ignored.
    length: int
        The expected number of bytes.

    Returns
    -------
    bytes or None
        The decoded identifier, or ``None`` when ``value`` is missing,
        is not valid hexadecimal or does not decode to ``length`` bytes.
    """
    if value is None:
        return None
    cleaned = _SEPARATORS.sub("", str(value))
    if len(cleaned) != length * 2:
        return None
    try:
        return bytes.fromhex(cleaned)
    except ValueError:
        return None


def format_hex_id(value: bytes) -> str:
    """Render a byte identifier as an upper case hex string."""
    return value.hex().upper()
