"""Use-case services for registration, login and teacher management."""

from __future__ import annotations

import logging
from functools import partial

from hod_tasks.access import Action, authorize
from hod_tasks.accounts.models import (
    TEACHER_ROLES,
    Identity,
    NewUser,
    Role,
    TeacherPatch,
    UserView,
)
from hod_tasks.accounts.passwords import hash_password, verify_password
from hod_tasks.accounts.repository import UserRepository
from hod_tasks.errors import (
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_INVALID_CREDENTIALS = "Invalid credentials"


class AccountService:
    """Self-service registration and credential checks."""

    def __init__(self, *, repository: UserRepository) -> None:
        self.repository = repository

    def register(  # noqa: PLR0913
        self,
        *,
        name: str,
        email: str,
        password: str,
        role: Role | str | None = None,
        actor: Identity | None = None,
    ) -> UserView:
        """Create an account.

        Anyone may register as TEACHER. Other roles are open only while the
        store holds no users (bootstrapping the first ADMIN); afterwards they
        require an ADMIN actor.
        """

        name, email = _require_account_fields(name=name, email=email, password=password)
        user_role = _parse_role(role) if role else Role.TEACHER
        guard = None
        if user_role is not Role.TEACHER:
            guard = partial(_require_bootstrap_or_admin, actor)
        return self.repository.create_user(
            NewUser(name=name, email=email, password_hash=hash_password(password), role=user_role),
            guard=guard,
        )

    def login(self, *, email: str, password: str) -> UserView:
        if not (email or "").strip() or not password:
            raise ValidationError("Email and password are required")
        found = self.repository.find_credentials(email=email.strip())
        if found is None:
            raise UnauthenticatedError(_INVALID_CREDENTIALS)
        user, password_hash = found
        if not verify_password(password, password_hash):
            logger.info("Failed login for user_id=%s", user.id)
            raise UnauthenticatedError(_INVALID_CREDENTIALS)
        return user

    def me(self, identity: Identity) -> UserView:
        user = self.repository.get_user(user_id=identity.id)
        if user is None:
            raise NotFoundError("User not found")
        return user


class TeacherService:
    """Admin management of TEACHER and HOD accounts."""

    def __init__(self, *, repository: UserRepository) -> None:
        self.repository = repository

    def list_teachers(self, actor: Identity, *, exclude_hod: bool = False) -> list[UserView]:
        authorize(actor, Action.LIST_TEACHERS)
        roles = (Role.TEACHER,) if exclude_hod else TEACHER_ROLES
        return self.repository.list_users(roles=roles)

    def get_teacher(self, actor: Identity, teacher_id: int) -> UserView:
        authorize(actor, Action.MANAGE_TEACHERS)
        teacher = self.repository.get_user(user_id=teacher_id, roles=TEACHER_ROLES)
        if teacher is None:
            raise NotFoundError(f"Teacher not found: {teacher_id}")
        return teacher

    def create_teacher(  # noqa: PLR0913
        self,
        actor: Identity,
        *,
        name: str,
        email: str,
        password: str,
        is_hod: bool = False,
    ) -> UserView:
        authorize(actor, Action.MANAGE_TEACHERS)
        name, email = _require_account_fields(name=name, email=email, password=password)
        return self.repository.create_user(
            NewUser(
                name=name,
                email=email,
                password_hash=hash_password(password),
                role=Role.HOD if is_hod else Role.TEACHER,
            ),
        )

    def update_teacher(self, actor: Identity, teacher_id: int, patch: TeacherPatch) -> UserView:
        authorize(actor, Action.MANAGE_TEACHERS)
        name = patch.name.strip() if patch.name is not None else None
        email = patch.email.strip() if patch.email is not None else None
        if name is not None and not name:
            raise ValidationError("Name cannot be empty")
        if email is not None and not email:
            raise ValidationError("Email cannot be empty")
        role = None
        if patch.is_hod is not None:
            role = Role.HOD if patch.is_hod else Role.TEACHER
        return self.repository.update_user(
            user_id=teacher_id,
            roles=TEACHER_ROLES,
            name=name,
            email=email,
            role=role,
        )

    def delete_teacher(self, actor: Identity, teacher_id: int) -> None:
        authorize(actor, Action.MANAGE_TEACHERS)
        self.repository.delete_user(user_id=teacher_id, roles=TEACHER_ROLES)


def _require_account_fields(*, name: str, email: str, password: str) -> tuple[str, str]:
    name = (name or "").strip()
    email = (email or "").strip()
    if not name or not email or not password:
        raise ValidationError("Name, email and password are required")
    return name, email


def _parse_role(value: Role | str) -> Role:
    if isinstance(value, Role):
        return value
    try:
        return Role(value.strip().upper())
    except ValueError as error:
        allowed = ", ".join(role.value for role in Role)
        raise ValidationError(f"Invalid role: {value!r}, expected one of {allowed}") from error


def _require_bootstrap_or_admin(actor: Identity | None, user_count: int) -> None:
    if user_count == 0:
        return
    if actor is None or actor.role is not Role.ADMIN:
        raise ForbiddenError("Only admin can create users with this role")
