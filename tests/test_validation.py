"""
Unit tests for the profile validation rules.
"""

import pytest

from errors import ValidationFailed
import validation
from validation import (
    check,
    ensure_profile,
    first_failure,
    validate_address,
    validate_email,
    validate_name,
    validate_password,
)

GOOD_NAME = "A" * 20
GOOD_EMAIL = "someone@example.com"
GOOD_PASSWORD = "Abc12345!"
GOOD_ADDRESS = "1 Main Street"


def test_name_length_bounds():
    assert not validate_name("John Doe").ok
    assert validate_name("J" * 20).ok
    assert validate_name("J" * 60).ok
    assert not validate_name("J" * 61).ok
    assert validate_name("John Doe").message == validation.NAME_MESSAGE


def test_email_shape():
    assert validate_email("user@example.com").ok
    assert not validate_email("user@example").ok
    assert not validate_email("userexample.com").ok
    assert not validate_email("user @example.com").ok
    assert not validate_email("").ok


def test_password_rules():
    assert not validate_password("abc12345").ok  # no uppercase, no special
    assert not validate_password("Abc12345").ok  # no special
    assert not validate_password("abc12345!").ok  # no uppercase
    assert validate_password("Abc12345!").ok
    assert not validate_password("Ab!1").ok  # too short
    assert not validate_password("Abcdefgh12345678!").ok  # 17 chars


def test_address_max_length():
    assert validate_address("").ok
    assert validate_address("x" * 400).ok
    assert not validate_address("x" * 401).ok


def test_unknown_rule_is_a_key_error():
    with pytest.raises(KeyError):
        check("phone", "123")


def test_first_failure_wins():
    message = first_failure([("name", "short"), ("email", "bad"), ("password", "bad")])
    assert message == validation.NAME_MESSAGE

    assert first_failure([("name", GOOD_NAME), ("email", GOOD_EMAIL)]) is None


def test_ensure_profile_reports_first_failing_rule():
    with pytest.raises(ValidationFailed) as exc:
        ensure_profile(GOOD_NAME, "not-an-email", "weak", "x" * 500)
    assert exc.value.message == validation.EMAIL_MESSAGE

    with pytest.raises(ValidationFailed) as exc:
        ensure_profile(GOOD_NAME, GOOD_EMAIL, GOOD_PASSWORD, "x" * 401)
    assert exc.value.message == validation.ADDRESS_MESSAGE

    ensure_profile(GOOD_NAME, GOOD_EMAIL, GOOD_PASSWORD, GOOD_ADDRESS)
