"""Domain models for users and the identities acting on tasks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Account roles; at most one user holds HOD at any time."""

    ADMIN = "ADMIN"
    HOD = "HOD"
    TEACHER = "TEACHER"


TEACHER_ROLES = (Role.TEACHER, Role.HOD)


@dataclass(frozen=True, slots=True)
class Identity:
    """Resolved actor of one request, passed explicitly into every core call."""

    id: int
    role: Role


@dataclass(slots=True)
class UserView:
    """User as exposed outside the store, without credentials."""

    id: int
    name: str
    email: str
    role: Role
    created_at: datetime
    updated_at: datetime

    @property
    def identity(self) -> Identity:
        return Identity(id=self.id, role=self.role)


@dataclass(slots=True)
class UserSummary:
    """Creator or assignee joined into a task view."""

    id: int
    name: str
    email: str
    role: Role


@dataclass(slots=True)
class ActorSummary:
    """Author of one status history entry."""

    id: int
    name: str
    role: Role


@dataclass(slots=True)
class NewUser:
    """Validated input for inserting one user row."""

    name: str
    email: str
    password_hash: str
    role: Role


@dataclass(slots=True)
class TeacherPatch:
    """Teacher account changes; ``None`` leaves the attribute unchanged."""

    name: str | None = None
    email: str | None = None
    is_hod: bool | None = None
