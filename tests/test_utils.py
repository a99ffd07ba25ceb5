"""Tests for the identifier helpers in :mod:`custom_components.sinope.utils`."""

from __future__ import annotations

import pytest

from custom_components.sinope.utils import format_hex_id, parse_hex_id


@pytest.mark.parametrize(
    "value",
    [
        "0123456789abcdef",
        "0123456789ABCDEF",
        "0123 4567 89AB CDEF",
        "01-23-45-67-89-ab-cd-ef",
        "01:23:45:67:89:AB:CD:EF",
    ],
)
def test_parse_hex_id_accepts_common_notations(value: str) -> None:
    assert parse_hex_id(value, 8) == bytes.fromhex("0123456789ABCDEF")


@pytest.mark.parametrize("value", [None, "", "0123", "0123456789ABCDEF00", "0123456789ABCDEG"])
def test_parse_hex_id_rejects_invalid_values(value) -> None:
    assert parse_hex_id(value, 8) is None


def test_format_hex_id() -> None:
    assert format_hex_id(b"\x00\x00\x0f\xb1") == "00000FB1"
    assert parse_hex_id(format_hex_id(b"\x00\x00\x0f\xb1"), 4) == b"\x00\x00\x0f\xb1"
