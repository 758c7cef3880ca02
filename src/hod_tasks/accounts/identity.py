"""Identity resolution: turns an inbound actor reference into an ``Identity``."""

from __future__ import annotations

from hod_tasks.accounts.models import Identity
from hod_tasks.accounts.repository import UserRepository
from hod_tasks.errors import UnauthenticatedError


class IdentityResolver:
    """Resolve the acting user id to ``(id, role)`` from the user store."""

    def __init__(self, *, repository: UserRepository) -> None:
        self.repository = repository

    def resolve(self, user_id: int | None) -> Identity:
        if user_id is None:
            raise UnauthenticatedError(
                "Authentication required: pass --actor-id or set HOD_TASKS_ACTOR_ID.",
            )
        user = self.repository.get_user(user_id=user_id)
        if user is None:
            raise UnauthenticatedError(f"Unknown actor: {user_id}")
        return user.identity
