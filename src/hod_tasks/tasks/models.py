"""Domain models for tasks and their status history."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from hod_tasks.accounts.models import ActorSummary, UserSummary


class TaskStatus(str, Enum):
    """Task lifecycle states; any state may follow any other."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


TASK_CREATED_COMMENT = "Task created"


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(slots=True)
class TaskCreate:
    """Input payload for creating a task.

    ``due_date`` accepts a datetime or an ISO-8601 string; naive values are
    read as UTC.
    """

    title: str
    assigned_to_id: int | None
    description: str | None = None
    due_date: datetime | str | None = None


@dataclass(slots=True)
class TaskPatch:
    """Field changes for an existing task.

    Every slot defaults to ``UNSET``, meaning "leave as is". ``description``
    and ``due_date`` may be set to ``None`` to clear them; ``title`` and
    ``assigned_to_id`` may not. The creator is not patchable.
    """

    title: str = UNSET
    description: str | None = UNSET
    due_date: datetime | str | None = UNSET
    assigned_to_id: int = UNSET


@dataclass(slots=True)
class TaskView:
    """Task row as seen by the access predicate and callers."""

    id: int
    title: str
    description: str | None
    status: TaskStatus
    due_date: datetime | None
    created_by_id: int
    assigned_to_id: int
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class StatusUpdateView:
    """One immutable status history entry."""

    id: int
    task_id: int
    status: TaskStatus
    comment: str | None
    created_at: datetime
    author: ActorSummary


@dataclass(slots=True)
class TaskDetails:
    """Task with its creator, assignee and history, newest entry first."""

    task: TaskView
    created_by: UserSummary
    assigned_to: UserSummary
    status_updates: list[StatusUpdateView] = field(default_factory=list)


@dataclass(slots=True)
class TaskSummary:
    """Per-status counters over the tasks visible to one identity."""

    total: int
    by_status: dict[TaskStatus, int]
