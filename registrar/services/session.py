"""
Session context and authentication.

A ``SessionContext`` is an explicit, immutable value passed into every
gated operation; nothing about the current session is stored on a
connection or service object.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..core.credentials import PasswordHasher
from ..core.entities import User
from ..core.enums import Role
from ..core.exceptions import (
    ForbiddenError, InvalidCredentialError, MustChangePasswordError,
    NotFoundError, SuspendedError, UnauthenticatedError,
)
from ..core.filters import UserFilter
from ..persistence.dispatcher import QueryDispatcher
from .validation import AccountValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionContext:
    """Either anonymous or bound to one authenticated user."""
    user: Optional[User] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def role(self) -> Optional[Role]:
        return self.user.role_enum if self.user is not None else None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_teacher(self) -> bool:
        return self.role is Role.TEACHER

    @property
    def is_student(self) -> bool:
        return self.role is Role.STUDENT

    @property
    def identity(self) -> int:
        """Id of the signed-in user."""
        return self.require_authenticated().id

    def require_authenticated(self) -> User:
        if self.user is None:
            raise UnauthenticatedError("Must be signed in.")
        return self.user

    def require_anonymous(self) -> None:
        if self.user is not None:
            raise ForbiddenError("Must be signed out.")

    def require_role(self, *roles: Role) -> User:
        """Return the session user if their role is one of ``roles``."""
        user = self.require_authenticated()
        if user.role_enum not in roles:
            logger.info("Denied %s (user %s) an operation limited to %s",
                        user.role, user.id, ", ".join(r.value for r in roles))
            raise ForbiddenError(
                "You do not have permission to perform this operation.",
                details={"role": user.role},
            )
        return user


ANONYMOUS = SessionContext()


class AuthService:
    """Login, logout and pre-session password changes."""

    def __init__(self, dispatcher: QueryDispatcher, hasher: PasswordHasher,
                 validator: AccountValidator):
        self._dispatcher = dispatcher
        self._hasher = hasher
        self._validator = validator

    def login(self, identifier: str, secret: str) -> SessionContext:
        """
        Authenticate by email and password.

        Raises ``NotFoundError`` for an unknown email, ``SuspendedError``,
        ``MustChangePasswordError`` or ``InvalidCredentialError``.
        """
        user = self._lookup(identifier)
        if user.suspended:
            logger.info("Login refused for suspended user %s", user.id)
            raise SuspendedError("User is suspended.")
        if user.forcenewpw:
            logger.info("Login refused for user %s pending a password change", user.id)
            raise MustChangePasswordError("User must change password.")
        if not self._hasher.verify(user.password, secret):
            logger.info("Invalid credentials for user %s", user.id)
            raise InvalidCredentialError("Invalid username or password.")
        logger.debug("User %s signed in", user.id)
        return SessionContext(user)

    def logout(self, context: SessionContext) -> bool:
        """Sessions are values; logging out only acknowledges it."""
        if context.is_authenticated:
            logger.debug("User %s signed out", context.identity)
        return True

    def change_password(self, identifier: str, old_secret: str, new_secret: str) -> User:
        """Replace a password before signing in; clears the forced-change flag."""
        user = self._lookup(identifier)
        if user.suspended:
            raise SuspendedError("User is suspended.")
        if not self._hasher.verify(user.password, old_secret):
            raise InvalidCredentialError("Invalid username or password.")
        self._validator.validate_password(new_secret)
        updated = user.replace(
            password=self._hasher.hash(new_secret, self._hasher.generate_salt()),
            forcenewpw=False,
        )
        self._dispatcher.update([updated])
        logger.info("User %s changed their password", user.id)
        return updated

    def is_admin(self, context: SessionContext) -> bool:
        return context.is_admin

    def is_teacher(self, context: SessionContext) -> bool:
        return context.is_teacher

    def is_student(self, context: SessionContext) -> bool:
        return context.is_student

    def _lookup(self, identifier: str) -> User:
        found = self._dispatcher.find(User, [UserFilter("email", identifier)])
        if not found:
            raise NotFoundError("User not found.")
        return found[0]
