"""Tests for the password policy and the temporary-password generator."""

import pytest

from tracker.core.passwords import (FULL_CHARSETS, SYMBOLS,
                                    UNAMBIGUOUS_CHARSETS,
                                    generate_temporary_password,
                                    is_valid_password, validate_password)


def test_policy_accepts_basic_password():
    assert validate_password("Password123") == []


@pytest.mark.parametrize(
    "password, failed",
    [
        ("Pass12", ["min_length"]),
        ("password123", ["uppercase"]),
        ("PASSWORD123", ["lowercase"]),
        ("Passwordabc", ["digit"]),
        ("", ["min_length", "uppercase", "lowercase", "digit"]),
    ],
)
def test_policy_reports_each_failed_rule(password, failed):
    assert validate_password(password) == failed


def test_strict_policy_requires_symbol():
    assert validate_password("Password123", require_symbol=True) == ["symbol"]
    assert is_valid_password("Password123!", require_symbol=True)


@pytest.mark.parametrize("length", [14, 15, 16])
def test_generated_password_has_exact_length_and_every_class(length):
    for _ in range(200):
        password = generate_temporary_password(length)
        assert len(password) == length
        for cls in UNAMBIGUOUS_CHARSETS.classes:
            assert any(c in cls for c in password), (cls, password)


def test_generated_password_skips_ambiguous_characters():
    for _ in range(200):
        password = generate_temporary_password(16)
        assert not set(password) & set("IOlo01")


def test_full_charset_variant_draws_from_full_alphabet():
    password = generate_temporary_password(14, FULL_CHARSETS)
    assert set(password) <= set(FULL_CHARSETS.alphabet)
    assert any(c in SYMBOLS for c in password)


def test_generated_password_passes_strict_policy():
    assert is_valid_password(generate_temporary_password(14), require_symbol=True)


def test_generated_passwords_differ():
    assert len({generate_temporary_password(14) for _ in range(50)}) == 50


def test_generator_rejects_length_below_class_count():
    with pytest.raises(ValueError):
        generate_temporary_password(3)
