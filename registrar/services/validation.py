"""
Field validation for user registration and profile updates.
"""

import re
from typing import Optional

from ..core import credentials
from ..core.credentials import PasswordHasher
from ..core.entities import User
from ..core.enums import PASSWORD_SYMBOLS
from ..core.exceptions import ValidationError

PHONE_PATTERN = re.compile(r"^\+?[0-9]{2}[-. ]?[0-9]{4}[-. ]?[0-9]{4}$")

PASSWORD_RULES = (
    "The password does not meet the following criteria: "
    "at least 8 characters, one uppercase letter, one lowercase letter, "
    f"one number and one special character ({', '.join(PASSWORD_SYMBOLS)})"
)


class AccountValidator:
    """Checks usernames, institutional emails, phone numbers and password strength."""

    def __init__(self, email_domain: str = "inst.edu"):
        self._email_domain = email_domain.lower()
        self._email_pattern = re.compile(
            r"^([a-z0-9_+]([a-z0-9_+.]*[a-z0-9_+])?)@" + re.escape(self._email_domain) + r"$"
        )

    @property
    def email_domain(self) -> str:
        return self._email_domain

    def validate_username(self, username: str) -> None:
        if not username.strip():
            raise ValidationError("Account name cannot be empty.", details={"field": "username"})

    def validate_email(self, email: str) -> None:
        if not self._email_pattern.match(email.strip().lower()):
            raise ValidationError(
                f"Must be a valid {self._email_domain} email.", details={"field": "email"}
            )

    def validate_phone(self, phone: str) -> None:
        if phone and not PHONE_PATTERN.match(phone):
            raise ValidationError("Invalid phone number.", details={"field": "phone"})

    def validate_password(self, password: str) -> None:
        strong = (
            len(password) >= 8
            and any(c.islower() and c.isascii() for c in password)
            and any(c.isupper() and c.isascii() for c in password)
            and any(c.isdigit() and c.isascii() for c in password)
            and any(c in PASSWORD_SYMBOLS for c in password)
        )
        if not strong:
            raise ValidationError(PASSWORD_RULES, details={"field": "password"})

    def validate_user(self, user: User, check_password: bool = True) -> None:
        """Run every field check that applies to ``user``."""
        self.validate_username(user.username)
        self.validate_email(user.email)
        self.validate_phone(user.phone)
        if check_password:
            self.validate_password(user.password)


def resolve_password(hasher: PasswordHasher, stored_hash: str, candidate: Optional[str]) -> str:
    """
    Return the hash to store for an update carrying ``candidate``.

    An empty candidate, or one that is already a hash, keeps ``stored_hash``
    verbatim; anything else is a new plaintext secret and gets a fresh salt.
    """
    if not candidate or credentials.is_hashed(candidate):
        return stored_hash
    return hasher.hash(candidate, hasher.generate_salt())
