"""Persistent task store and status history ledger."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path

from sqlalchemy import func
from sqlmodel import Session, col, delete, select

from hod_tasks.accounts.models import TEACHER_ROLES, ActorSummary, Role, UserSummary
from hod_tasks.errors import NotFoundError
from hod_tasks.storage.alembic_runner import upgrade_head
from hod_tasks.storage.common import (
    build_sqlite_engine,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
    write_session,
)
from hod_tasks.storage.sqlmodel_models import Task, TaskStatusUpdate, User
from hod_tasks.tasks.models import (
    TASK_CREATED_COMMENT,
    StatusUpdateView,
    TaskDetails,
    TaskStatus,
    TaskView,
)

logger = logging.getLogger(__name__)

TaskGuard = Callable[[TaskView], None]


class TaskRepository:
    """Task persistence facade backed by SQLModel + SQLite.

    Every write runs in one ``BEGIN IMMEDIATE`` transaction: the task row and
    the status history entry it implies commit together or not at all, so the
    newest ledger entry of a task always carries the task's current status.

    Guards passed to mutating methods run inside that transaction, against the
    row about to be changed, and abort the write by raising.
    """

    def __init__(self, db_path: Path, *, sqlite_busy_timeout_ms: int = 5_000) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(
            db_path=db_path,
            busy_timeout_ms=sqlite_busy_timeout_ms,
        )

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations."""

        upgrade_head(self.db_path)

    def create_task(  # noqa: PLR0913
        self,
        *,
        creator_id: int,
        title: str,
        description: str | None,
        due_date: datetime | None,
        assigned_to_id: int,
    ) -> int:
        """Insert a PENDING task together with its creation ledger entry."""

        now = utc_now()
        with write_session(self.engine) as session:
            self._get_assignee_row(session=session, user_id=assigned_to_id)
            row = Task(
                title=title,
                description=description,
                status=TaskStatus.PENDING.value,
                due_date=to_db_datetime(due_date) if due_date is not None else None,
                created_by_id=creator_id,
                assigned_to_id=assigned_to_id,
                created_at=to_db_datetime(now),
                updated_at=to_db_datetime(now),
            )
            session.add(row)
            session.flush()
            task_id = _require_id(row.id)
            self._add_status_update(
                session=session,
                task_id=task_id,
                user_id=creator_id,
                status=TaskStatus.PENDING,
                comment=TASK_CREATED_COMMENT,
            )
        logger.info(
            "Task created: task_id=%s creator_id=%s assignee_id=%s",
            task_id,
            creator_id,
            assigned_to_id,
        )
        return task_id

    def update_task_fields(  # noqa: PLR0913
        self,
        *,
        task_id: int,
        actor_id: int,
        changes: dict[str, object],
        guard: TaskGuard,
    ) -> None:
        """Apply validated field changes; a new assignee is recorded in the ledger.

        ``changes`` maps attribute names (``title``, ``description``,
        ``due_date``, ``assigned_to_id``) to already validated values.
        """

        now = utc_now()
        with write_session(self.engine) as session:
            row = self._get_task_row(session=session, task_id=task_id)
            guard(_to_task_view(row))

            new_assignee: User | None = None
            assignee_id = changes.get("assigned_to_id")
            if assignee_id is not None and assignee_id != row.assigned_to_id:
                new_assignee = self._get_assignee_row(session=session, user_id=int(assignee_id))

            if "title" in changes:
                row.title = str(changes["title"])
            if "description" in changes:
                row.description = changes["description"]  # type: ignore[assignment]
            if "due_date" in changes:
                due_date = changes["due_date"]
                row.due_date = (
                    to_db_datetime(due_date) if isinstance(due_date, datetime) else None
                )
            if new_assignee is not None:
                row.assigned_to_id = _require_id(new_assignee.id)
            row.updated_at = to_db_datetime(now)
            session.add(row)

            if new_assignee is not None:
                self._add_status_update(
                    session=session,
                    task_id=task_id,
                    user_id=actor_id,
                    status=TaskStatus(row.status),
                    comment=f"Task reassigned to {new_assignee.name}",
                )
        logger.info(
            "Task updated: task_id=%s actor_id=%s fields=%s reassigned=%s",
            task_id,
            actor_id,
            ",".join(sorted(changes)) or "-",
            new_assignee is not None,
        )

    def update_task_status(
        self,
        *,
        task_id: int,
        actor_id: int,
        status: TaskStatus,
        comment: str | None,
        guard: TaskGuard,
    ) -> None:
        """Set task status and append the matching ledger entry."""

        now = utc_now()
        with write_session(self.engine) as session:
            row = self._get_task_row(session=session, task_id=task_id)
            guard(_to_task_view(row))
            previous = row.status
            row.status = status.value
            row.updated_at = to_db_datetime(now)
            session.add(row)
            self._add_status_update(
                session=session,
                task_id=task_id,
                user_id=actor_id,
                status=status,
                comment=comment,
            )
        logger.info(
            "Task status changed: task_id=%s actor_id=%s %s -> %s",
            task_id,
            actor_id,
            previous,
            status.value,
        )

    def delete_task(self, *, task_id: int, guard: TaskGuard) -> None:
        """Delete the task's ledger entries, then the task."""

        with write_session(self.engine) as session:
            row = self._get_task_row(session=session, task_id=task_id)
            guard(_to_task_view(row))
            session.exec(  # type: ignore[call-overload]
                delete(TaskStatusUpdate).where(col(TaskStatusUpdate.task_id) == task_id),
            )
            session.delete(row)
        logger.info("Task deleted: task_id=%s", task_id)

    def get_task_details(self, *, task_id: int) -> TaskDetails | None:
        """Return task with creator, assignee and history newest first."""

        with Session(self.engine) as session:
            row = session.exec(select(Task).where(Task.id == task_id)).one_or_none()
            if row is None:
                return None
            details = self._compose_details(session=session, rows=[row])
        return details[0]

    def list_task_details(self, *, assigned_to_id: int | None = None) -> list[TaskDetails]:
        """List tasks newest first, optionally restricted to one assignee."""

        with Session(self.engine) as session:
            statement = select(Task).order_by(col(Task.created_at).desc(), col(Task.id).desc())
            if assigned_to_id is not None:
                statement = statement.where(Task.assigned_to_id == assigned_to_id)
            rows = list(session.exec(statement).all())
            return self._compose_details(session=session, rows=rows)

    def count_tasks_by_status(self, *, assigned_to_id: int | None = None) -> dict[TaskStatus, int]:
        with Session(self.engine) as session:
            statement = select(Task.status, func.count()).group_by(Task.status)
            if assigned_to_id is not None:
                statement = statement.where(Task.assigned_to_id == assigned_to_id)
            rows = session.exec(statement).all()
        counts = {status: 0 for status in TaskStatus}
        for status, count in rows:
            counts[TaskStatus(status)] = int(count)
        return counts

    def count_status_updates(self, *, task_id: int) -> int:
        """Count ledger entries for a task id, including ones of deleted tasks."""

        with Session(self.engine) as session:
            return int(
                session.exec(
                    select(func.count()).where(TaskStatusUpdate.task_id == task_id),
                ).one(),
            )

    def _compose_details(self, *, session: Session, rows: list[Task]) -> list[TaskDetails]:
        if not rows:
            return []
        task_ids = [_require_id(row.id) for row in rows]
        update_rows = session.exec(
            select(TaskStatusUpdate)
            .where(col(TaskStatusUpdate.task_id).in_(task_ids))
            .order_by(col(TaskStatusUpdate.id).desc()),
        ).all()
        user_ids = {row.created_by_id for row in rows} | {row.assigned_to_id for row in rows}
        user_ids |= {update.user_id for update in update_rows}
        users = self._load_users(session=session, user_ids=user_ids)

        updates_by_task: dict[int, list[StatusUpdateView]] = defaultdict(list)
        for update in update_rows:
            author = users[update.user_id]
            updates_by_task[update.task_id].append(
                StatusUpdateView(
                    id=_require_id(update.id),
                    task_id=update.task_id,
                    status=TaskStatus(update.status),
                    comment=update.comment,
                    created_at=to_utc_aware_datetime(update.created_at),
                    author=ActorSummary(id=author.id, name=author.name, role=author.role),
                ),
            )

        return [
            TaskDetails(
                task=_to_task_view(row),
                created_by=users[row.created_by_id],
                assigned_to=users[row.assigned_to_id],
                status_updates=updates_by_task.get(_require_id(row.id), []),
            )
            for row in rows
        ]

    def _load_users(self, *, session: Session, user_ids: Iterable[int]) -> dict[int, UserSummary]:
        rows = session.exec(select(User).where(col(User.id).in_(list(user_ids)))).all()
        return {
            _require_id(row.id): UserSummary(
                id=_require_id(row.id),
                name=row.name,
                email=row.email,
                role=Role(row.role),
            )
            for row in rows
        }

    def _get_task_row(self, *, session: Session, task_id: int) -> Task:
        row = session.exec(select(Task).where(Task.id == task_id)).one_or_none()
        if row is None:
            raise NotFoundError(f"Task not found: {task_id}")
        return row

    def _get_assignee_row(self, *, session: Session, user_id: int) -> User:
        row = session.exec(
            select(User).where(
                User.id == user_id,
                col(User.role).in_([role.value for role in TEACHER_ROLES]),
            ),
        ).one_or_none()
        if row is None:
            raise NotFoundError(f"Assigned teacher not found: {user_id}")
        return row

    def _add_status_update(  # noqa: PLR0913
        self,
        *,
        session: Session,
        task_id: int,
        user_id: int,
        status: TaskStatus,
        comment: str | None,
    ) -> None:
        session.add(
            TaskStatusUpdate(
                task_id=task_id,
                user_id=user_id,
                status=status.value,
                comment=comment,
                created_at=to_db_datetime(utc_now()),
            ),
        )


def _require_id(value: int | None) -> int:
    if value is None:
        raise RuntimeError("Row has no primary key; flush before reading ids.")
    return value


def _to_task_view(row: Task) -> TaskView:
    return TaskView(
        id=_require_id(row.id),
        title=row.title,
        description=row.description,
        status=TaskStatus(row.status),
        due_date=to_utc_aware_datetime(row.due_date) if row.due_date is not None else None,
        created_by_id=row.created_by_id,
        assigned_to_id=row.assigned_to_id,
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )
