"""Controllers for task CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from hod_tasks.accounts.identity import IdentityResolver
from hod_tasks.accounts.models import Identity, UserSummary
from hod_tasks.accounts.repository import UserRepository
from hod_tasks.config import Settings
from hod_tasks.tasks.models import UNSET, TaskCreate, TaskDetails, TaskPatch
from hod_tasks.tasks.repository import TaskRepository
from hod_tasks.tasks.services import TaskService, parse_status


@dataclass(slots=True)
class TaskListCommand:
    """CLI input for task listing."""

    db_path: Path | None
    actor_id: int | None
    status: str | None = None


@dataclass(slots=True)
class TaskShowCommand:
    """CLI input for one task with its history."""

    db_path: Path | None
    actor_id: int | None
    task_id: int


@dataclass(slots=True)
class TaskCreateCommand:
    """CLI input for task creation."""

    db_path: Path | None
    actor_id: int | None
    title: str
    assigned_to_id: int | None
    description: str | None = None
    due_date: str | None = None


@dataclass(slots=True)
class TaskUpdateCommand:
    """CLI input for task field changes; ``None`` options are left untouched."""

    db_path: Path | None
    actor_id: int | None
    task_id: int
    title: str | None = None
    description: str | None = None
    clear_description: bool = False
    due_date: str | None = None
    clear_due_date: bool = False
    assigned_to_id: int | None = None


@dataclass(slots=True)
class TaskStatusCommand:
    """CLI input for a status transition."""

    db_path: Path | None
    actor_id: int | None
    task_id: int
    status: str
    comment: str | None = None


@dataclass(slots=True)
class TaskDeleteCommand:
    """CLI input for task deletion."""

    db_path: Path | None
    actor_id: int | None
    task_id: int


@dataclass(slots=True)
class TaskSummaryCommand:
    """CLI input for dashboard counters."""

    db_path: Path | None
    actor_id: int | None


class TaskCliController:
    """Coordinates identity resolution, task service calls and rendering."""

    def list_tasks(self, command: TaskListCommand) -> list[str]:
        with _task_service(command.db_path, command.actor_id) as (service, identity):
            tasks = service.list_tasks(identity)
        if command.status:
            wanted = parse_status(command.status)
            tasks = [details for details in tasks if details.task.status is wanted]

        lines = [f"Tasks: {len(tasks)}"]
        for details in tasks:
            task = details.task
            due = task.due_date.isoformat() if task.due_date is not None else "-"
            lines.append(
                f"  {task.id} [{task.status.value}] {task.title} "
                f"assignee={details.assigned_to.name} due={due}",
            )
        return lines

    def show_task(self, command: TaskShowCommand) -> list[str]:
        with _task_service(command.db_path, command.actor_id) as (service, identity):
            details = service.get_task(identity, command.task_id)
        return render_task_details(details)

    def create_task(self, command: TaskCreateCommand) -> list[str]:
        with _task_service(command.db_path, command.actor_id) as (service, identity):
            details = service.create_task(
                identity,
                TaskCreate(
                    title=command.title,
                    assigned_to_id=command.assigned_to_id,
                    description=command.description,
                    due_date=command.due_date,
                ),
            )
        return [f"Task created: task_id={details.task.id}", *render_task_details(details)]

    def update_task(self, command: TaskUpdateCommand) -> list[str]:
        patch = TaskPatch(
            title=command.title if command.title is not None else UNSET,
            description=(
                None
                if command.clear_description
                else command.description
                if command.description is not None
                else UNSET
            ),
            due_date=(
                None
                if command.clear_due_date
                else command.due_date
                if command.due_date is not None
                else UNSET
            ),
            assigned_to_id=command.assigned_to_id if command.assigned_to_id is not None else UNSET,
        )
        with _task_service(command.db_path, command.actor_id) as (service, identity):
            details = service.update_fields(identity, command.task_id, patch)
        return [f"Task updated: task_id={details.task.id}", *render_task_details(details)]

    def update_status(self, command: TaskStatusCommand) -> list[str]:
        with _task_service(command.db_path, command.actor_id) as (service, identity):
            details = service.update_status(
                identity,
                command.task_id,
                command.status,
                command.comment,
            )
        return [
            f"Task status updated: task_id={details.task.id} status={details.task.status.value}",
        ]

    def delete_task(self, command: TaskDeleteCommand) -> list[str]:
        with _task_service(command.db_path, command.actor_id) as (service, identity):
            service.delete_task(identity, command.task_id)
        return [f"Task deleted: task_id={command.task_id}"]

    def summary(self, command: TaskSummaryCommand) -> list[str]:
        with _task_service(command.db_path, command.actor_id) as (service, identity):
            summary = service.task_summary(identity)
        return [
            f"Total tasks: {summary.total}",
            *(f"  {status.value}: {count}" for status, count in summary.by_status.items()),
        ]


def render_task_details(details: TaskDetails) -> list[str]:
    task = details.task
    lines = [
        f"Task: {task.id}",
        f"Title: {task.title}",
        f"Status: {task.status.value}",
        f"Description: {task.description or '-'}",
        f"Due: {task.due_date.isoformat() if task.due_date is not None else '-'}",
        f"Created by: {_render_user(details.created_by)}",
        f"Assigned to: {_render_user(details.assigned_to)}",
        f"Created at: {task.created_at.isoformat()}",
        f"Updated at: {task.updated_at.isoformat()}",
        f"History: {len(details.status_updates)}",
    ]
    for update in details.status_updates:
        lines.append(
            f"  {update.created_at.isoformat()} {update.status.value} "
            f"by {update.author.name} ({update.author.role.value}): {update.comment or '-'}",
        )
    return lines


def _render_user(user: UserSummary) -> str:
    return f"{user.name} <{user.email}> id={user.id} role={user.role.value}"


@contextmanager
def _task_service(
    db_path: Path | None,
    actor_id: int | None,
) -> Iterator[tuple[TaskService, Identity]]:
    settings = Settings.from_env(db_path=db_path)
    settings.validate()
    users = UserRepository(
        settings.db_path,
        sqlite_busy_timeout_ms=settings.storage.busy_timeout_ms,
    )
    tasks = TaskRepository(
        settings.db_path,
        sqlite_busy_timeout_ms=settings.storage.busy_timeout_ms,
    )
    try:
        users.init_schema()
        identity = IdentityResolver(repository=users).resolve(
            actor_id if actor_id is not None else settings.actor_context.actor_id,
        )
        yield TaskService(repository=tasks), identity
    finally:
        tasks.close()
        users.close()
