"""Use-case services for the task lifecycle and role-scoped task views."""

from __future__ import annotations

from datetime import datetime
from functools import partial

from hod_tasks.access import Action, authorize, listing_scope, task_not_found_message
from hod_tasks.accounts.models import Identity
from hod_tasks.errors import NotFoundError, ValidationError
from hod_tasks.storage.common import from_iso
from hod_tasks.tasks.models import (
    UNSET,
    TaskCreate,
    TaskDetails,
    TaskPatch,
    TaskStatus,
    TaskSummary,
)
from hod_tasks.tasks.repository import TaskRepository


class TaskService:
    """Gates every task operation through the access predicate, then mutates.

    Status transitions are unrestricted among the three states. Two concurrent
    status changes on one task are applied in commit order, the later one
    winning; no version check is made.
    """

    def __init__(self, *, repository: TaskRepository) -> None:
        self.repository = repository

    def create_task(self, creator: Identity, payload: TaskCreate) -> TaskDetails:
        authorize(creator, Action.CREATE_TASK)
        title = _require_title(payload.title)
        if payload.assigned_to_id is None:
            raise ValidationError("Title and assignedToId are required")
        assignee_id = _parse_user_id(payload.assigned_to_id)
        task_id = self.repository.create_task(
            creator_id=creator.id,
            title=title,
            description=payload.description,
            due_date=parse_due_date(payload.due_date),
            assigned_to_id=assignee_id,
        )
        return self._details(task_id)

    def update_fields(self, actor: Identity, task_id: int, patch: TaskPatch) -> TaskDetails:
        """Apply a field patch; absence and permission are checked before the patch is."""

        current = self.repository.get_task_details(task_id=task_id)
        if current is None:
            raise _not_found(task_id)
        authorize(actor, Action.UPDATE_TASK_FIELDS, current.task)

        changes: dict[str, object] = {}
        if patch.title is not UNSET:
            changes["title"] = _require_title(patch.title)
        if patch.description is not UNSET:
            changes["description"] = patch.description
        if patch.due_date is not UNSET:
            changes["due_date"] = parse_due_date(patch.due_date)
        if patch.assigned_to_id is not UNSET:
            if patch.assigned_to_id is None:
                raise ValidationError("assignedToId cannot be cleared")
            changes["assigned_to_id"] = _parse_user_id(patch.assigned_to_id)

        self.repository.update_task_fields(
            task_id=task_id,
            actor_id=actor.id,
            changes=changes,
            guard=partial(authorize, actor, Action.UPDATE_TASK_FIELDS),
        )
        return self._details(task_id)

    def update_status(
        self,
        actor: Identity,
        task_id: int,
        new_status: TaskStatus | str,
        comment: str | None = None,
    ) -> TaskDetails:
        """Record a transition; an unknown status is rejected before the task is looked up."""

        status = parse_status(new_status)
        self.repository.update_task_status(
            task_id=task_id,
            actor_id=actor.id,
            status=status,
            comment=comment or None,
            guard=partial(authorize, actor, Action.UPDATE_TASK_STATUS),
        )
        return self._details(task_id)

    def delete_task(self, actor: Identity, task_id: int) -> None:
        self.repository.delete_task(
            task_id=task_id,
            guard=partial(authorize, actor, Action.DELETE_TASK),
        )

    def list_tasks(self, identity: Identity) -> list[TaskDetails]:
        authorize(identity, Action.LIST_TASKS)
        return self.repository.list_task_details(assigned_to_id=listing_scope(identity))

    def get_task(self, identity: Identity, task_id: int) -> TaskDetails:
        details = self.repository.get_task_details(task_id=task_id)
        if details is None:
            raise _not_found(task_id)
        authorize(identity, Action.VIEW_TASK, details.task)
        return details

    def task_summary(self, identity: Identity) -> TaskSummary:
        """Dashboard counters over the tasks the identity may list."""

        authorize(identity, Action.LIST_TASKS)
        counts = self.repository.count_tasks_by_status(assigned_to_id=listing_scope(identity))
        return TaskSummary(total=sum(counts.values()), by_status=counts)

    def _details(self, task_id: int) -> TaskDetails:
        details = self.repository.get_task_details(task_id=task_id)
        if details is None:
            raise _not_found(task_id)
        return details


def parse_status(value: TaskStatus | str) -> TaskStatus:
    if isinstance(value, TaskStatus):
        return value
    try:
        return TaskStatus(str(value).strip().upper())
    except ValueError as error:
        allowed = ", ".join(status.value for status in TaskStatus)
        raise ValidationError(
            f"Valid status is required: got {value!r}, expected one of {allowed}",
        ) from error


def parse_due_date(value: datetime | str | None) -> datetime | None:
    """Parse an optional due date; naive values are taken as UTC."""

    if value is None:
        return None
    if isinstance(value, datetime):
        return from_iso(value.isoformat())
    text = value.strip()
    if not text:
        return None
    try:
        return from_iso(text.replace("Z", "+00:00") if text.endswith("Z") else text)
    except ValueError as error:
        raise ValidationError(f"Invalid due date format: {value!r}") from error


def _require_title(value: str | None) -> str:
    title = (value or "").strip()
    if not title:
        raise ValidationError("Title is required")
    return title


def _parse_user_id(value: object) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Invalid assignedToId: {value!r}")
    try:
        return int(str(value).strip())
    except ValueError as error:
        raise ValidationError(f"Invalid assignedToId: {value!r}") from error


def _not_found(task_id: int) -> NotFoundError:
    return NotFoundError(task_not_found_message(task_id))
