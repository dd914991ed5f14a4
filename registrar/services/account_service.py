"""
User registration, profile updates and user listings.
"""

import hmac
import logging
from typing import List, Sequence

from ..core import credentials
from ..core.credentials import PasswordHasher
from ..core.entities import User
from ..core.enums import Associativity, Role
from ..core.exceptions import ConflictError, ForbiddenError
from ..core.filters import Filter, UserFilter
from ..persistence.dispatcher import QueryDispatcher
from .session import SessionContext
from .validation import AccountValidator, resolve_password

logger = logging.getLogger(__name__)

# Fields only an administrator may change
ADMIN_ONLY_FIELDS = ("role", "verified", "suspended")


class AccountService:
    """Service for registering and maintaining users."""

    def __init__(self, dispatcher: QueryDispatcher, hasher: PasswordHasher,
                 validator: AccountValidator, admin_access_code: str = ""):
        self._dispatcher = dispatcher
        self._hasher = hasher
        self._validator = validator
        self._admin_access_code = admin_access_code

    def register_user(self, context: SessionContext, user: User) -> User:
        """Register a student. Must be called before signing in."""
        context.require_anonymous()
        return self._register(user.replace(role=Role.STUDENT.value))

    def register_admin(self, context: SessionContext, user: User, access_code: str) -> User:
        """Register an administrator, authorised by the configured access code."""
        context.require_anonymous()
        if not self._admin_access_code or not hmac.compare_digest(
            access_code.encode("utf-8"), self._admin_access_code.encode("utf-8")
        ):
            logger.info("Rejected admin registration with an invalid access code")
            raise ForbiddenError("Invalid access code.")
        return self._register(user.replace(role=Role.ADMIN.value))

    def _register(self, user: User) -> User:
        self._validator.validate_user(user)
        self._ensure_email_free(user.email)
        hashed = user.replace(
            id=0,
            password=self._hasher.hash(user.password, self._hasher.generate_salt()),
            verified=False,
            suspended=False,
            forcenewpw=False,
        )
        stored = self._dispatcher.insert([hashed])[0]
        logger.info("Registered %s %s", stored.role, stored.id)
        return stored

    def update_user(self, context: SessionContext, user: User) -> User:
        """
        Update a user.

        Administrators may change any user and any field. Everyone else may
        change only their own record and none of the administrative flags.
        """
        actor = context.require_authenticated()
        stored = self._dispatcher.find_one(User, [UserFilter("id", user.id)])

        if not context.is_admin:
            if user.id != actor.id:
                logger.info("User %s denied update of user %s", actor.id, user.id)
                raise ForbiddenError("You do not have permission to update this user.")
            changed = [f for f in ADMIN_ONLY_FIELDS if getattr(user, f) != getattr(stored, f)]
            if changed:
                logger.info("User %s denied change of %s", actor.id, ", ".join(changed))
                raise ForbiddenError(
                    "Only administrators may change these fields.", details={"fields": changed}
                )

        self._validator.validate_user(user, check_password=False)
        if user.email != stored.email:
            self._ensure_email_free(user.email)

        if user.password and not credentials.is_hashed(user.password):
            self._validator.validate_password(user.password)
        password = resolve_password(self._hasher, stored.password, user.password)

        updated = self._dispatcher.update([user.replace(password=password)])[0]
        logger.info("User %s updated user %s", actor.id, updated.id)
        return updated

    def delete_user(self, context: SessionContext, user_id: int) -> User:
        """Administrators delete anyone but themselves; everyone else only themselves."""
        actor = context.require_authenticated()
        if context.is_admin and user_id == actor.id:
            raise ForbiddenError("You cannot delete your own account as an administrator.")
        if not context.is_admin and user_id != actor.id:
            logger.info("User %s denied deletion of user %s", actor.id, user_id)
            raise ForbiddenError("You do not have permission to delete this user.")
        stored = self._dispatcher.find_one(User, [UserFilter("id", user_id)])
        deleted = self._dispatcher.delete([stored])[0]
        logger.info("User %s deleted user %s", actor.id, user_id)
        return deleted

    def get_user(self, context: SessionContext, user_id: int) -> User:
        context.require_authenticated()
        return self._dispatcher.find_one(User, [UserFilter("id", user_id)])

    def list_users(self, context: SessionContext, filters: Sequence[Filter] = (),
                   associativity: Associativity = Associativity.AND) -> List[User]:
        context.require_authenticated()
        return self._dispatcher.find(User, filters, associativity)

    def list_students(self, context: SessionContext) -> List[User]:
        return self.list_users(context, [UserFilter("role", Role.STUDENT.value)])

    def list_teachers(self, context: SessionContext) -> List[User]:
        return self.list_users(context, [UserFilter("role", Role.TEACHER.value)])

    def _ensure_email_free(self, email: str) -> None:
        if self._dispatcher.count(User, [UserFilter("email", email)]):
            raise ConflictError("A user with this email already exists.", details={"field": "email"})
