"""Tests for verification code generation."""

import re

import pytest

from coursetrack.certificates.codes import (
    VERIFICATION_ALPHABET,
    generate_verification_code,
    normalize_verification_code,
)


def test_default_format() -> None:
    code = generate_verification_code()

    assert re.fullmatch(r"[A-Z2-9]{4}(-[A-Z2-9]{4}){3}", code)
    assert all(ch in VERIFICATION_ALPHABET for ch in code.replace("-", ""))


def test_group_count() -> None:
    assert len(generate_verification_code(2).split("-")) == 2
    assert len(generate_verification_code(6).split("-")) == 6


def test_rejects_zero_groups() -> None:
    with pytest.raises(ValueError):
        generate_verification_code(0)


def test_alphabet_has_no_look_alikes() -> None:
    for ch in "01ILO":
        assert ch not in VERIFICATION_ALPHABET


def test_codes_do_not_repeat() -> None:
    codes = {generate_verification_code() for _ in range(500)}
    assert len(codes) == 500


@pytest.mark.parametrize(
    "typed,expected",
    [
        ("k7qm-2hxr-pa9d-wz4t", "K7QM-2HXR-PA9D-WZ4T"),
        ("K7QM2HXRPA9DWZ4T", "K7QM-2HXR-PA9D-WZ4T"),
        (" k7qm 2hxr-pa9d wz4t ", "K7QM-2HXR-PA9D-WZ4T"),
    ],
)
def test_normalize(typed: str, expected: str) -> None:
    assert normalize_verification_code(typed) == expected
