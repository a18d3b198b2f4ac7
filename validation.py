"""
Field validation rules for user profiles.

Each rule is a pure check returning a `ValidationResult`. Profile validation
stops at the first failing rule and reports only that message.
"""

import re
from typing import Callable, Dict, Iterable, NamedTuple, Optional, Tuple

from errors import ValidationFailed

NAME_MIN = 20
NAME_MAX = 60
PASSWORD_MIN = 8
PASSWORD_MAX = 16
ADDRESS_MAX = 400

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
SPECIAL_CHARACTERS = "!@#$%^&*(),.?\":{}|<>_-+=[]\\/;'~`"

NAME_MESSAGE = f"Name must be between {NAME_MIN} and {NAME_MAX} characters."
EMAIL_MESSAGE = "Please enter a valid email address."
PASSWORD_MESSAGE = (
    f"Password must be {PASSWORD_MIN}-{PASSWORD_MAX} characters and include "
    "at least one uppercase letter and one special character."
)
ADDRESS_MESSAGE = f"Address must not exceed {ADDRESS_MAX} characters."


class ValidationResult(NamedTuple):
    ok: bool
    message: str


def _name_ok(value: str) -> bool:
    return NAME_MIN <= len(value) <= NAME_MAX


def _email_ok(value: str) -> bool:
    return EMAIL_PATTERN.match(value) is not None


def _password_ok(value: str) -> bool:
    if not (PASSWORD_MIN <= len(value) <= PASSWORD_MAX):
        return False
    has_upper = any(ch.isupper() for ch in value)
    has_special = any(ch in SPECIAL_CHARACTERS for ch in value)
    return has_upper and has_special


def _address_ok(value: str) -> bool:
    return len(value) <= ADDRESS_MAX


RULES: Dict[str, Tuple[Callable[[str], bool], str]] = {
    "name": (_name_ok, NAME_MESSAGE),
    "email": (_email_ok, EMAIL_MESSAGE),
    "password": (_password_ok, PASSWORD_MESSAGE),
    "address": (_address_ok, ADDRESS_MESSAGE),
}


def check(rule: str, value: str) -> ValidationResult:
    """Run a named rule; raises KeyError for an unknown rule name."""
    predicate, message = RULES[rule]
    if predicate(value or ""):
        return ValidationResult(True, "")
    return ValidationResult(False, message)


def validate_name(value: str) -> ValidationResult:
    return check("name", value)


def validate_email(value: str) -> ValidationResult:
    return check("email", value)


def validate_password(value: str) -> ValidationResult:
    return check("password", value)


def validate_address(value: str) -> ValidationResult:
    return check("address", value)


def first_failure(pairs: Iterable[Tuple[str, str]]) -> Optional[str]:
    """Return the message of the first failing (rule, value) pair, or None."""
    for rule, value in pairs:
        result = check(rule, value)
        if not result.ok:
            return result.message
    return None


def ensure(pairs: Iterable[Tuple[str, str]]) -> None:
    message = first_failure(pairs)
    if message:
        raise ValidationFailed(message)


def ensure_profile(name: str, email: str, password: str, address: str) -> None:
    """Validate a full profile in the order name, email, password, address."""
    ensure([("name", name), ("email", email), ("password", password), ("address", address)])


def ensure_password(password: str) -> None:
    ensure([("password", password)])
