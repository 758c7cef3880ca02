"""Persistent user store with the single-HOD invariant."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from hod_tasks.accounts.models import NewUser, Role, UserView
from hod_tasks.errors import ConflictError, HodAlreadyAssignedError, NotFoundError
from hod_tasks.storage.alembic_runner import upgrade_head
from hod_tasks.storage.common import (
    build_sqlite_engine,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
    write_session,
)
from hod_tasks.storage.sqlmodel_models import Task, TaskStatusUpdate, User

logger = logging.getLogger(__name__)

UserCountGuard = Callable[[int], None]


class UserRepository:
    """User persistence facade backed by SQLModel + SQLite.

    Uniqueness of the email and of the HOD role are checked with a read
    followed by the write inside one ``BEGIN IMMEDIATE`` transaction, so two
    near-simultaneous promotions cannot both succeed.
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

    def create_user(self, user: NewUser, *, guard: UserCountGuard | None = None) -> UserView:
        """Insert a user; ``guard`` sees the current user count before the write."""

        now = utc_now()
        with write_session(self.engine) as session:
            if guard is not None:
                guard(self._count_users(session=session))
            self._ensure_email_free(session=session, email=user.email)
            if user.role is Role.HOD:
                self._ensure_no_other_hod(session=session, exclude_user_id=None)
            row = User(
                name=user.name,
                email=user.email,
                password_hash=user.password_hash,
                role=user.role.value,
                created_at=to_db_datetime(now),
                updated_at=to_db_datetime(now),
            )
            session.add(row)
            session.flush()
            view = _to_user_view(row)
        logger.info("User created: user_id=%s role=%s", view.id, view.role.value)
        return view

    def update_user(
        self,
        *,
        user_id: int,
        roles: Sequence[Role],
        name: str | None = None,
        email: str | None = None,
        role: Role | None = None,
    ) -> UserView:
        """Update a user holding one of ``roles``; ``None`` keeps an attribute."""

        with write_session(self.engine) as session:
            row = self._get_user_row(session=session, user_id=user_id, roles=roles)
            if role is Role.HOD and row.role != Role.HOD.value:
                self._ensure_no_other_hod(session=session, exclude_user_id=user_id)
            if email is not None and email != row.email:
                self._ensure_email_free(session=session, email=email)
                row.email = email
            if name is not None:
                row.name = name
            if role is not None:
                row.role = role.value
            row.updated_at = to_db_datetime(utc_now())
            session.add(row)
            session.flush()
            view = _to_user_view(row)
        logger.info("User updated: user_id=%s role=%s", view.id, view.role.value)
        return view

    def delete_user(self, *, user_id: int, roles: Sequence[Role]) -> None:
        """Delete a user nothing in the task store refers to."""

        with write_session(self.engine) as session:
            row = self._get_user_row(session=session, user_id=user_id, roles=roles)
            task_count = int(
                session.exec(
                    select(func.count()).where(
                        or_(Task.assigned_to_id == user_id, Task.created_by_id == user_id),
                    ),
                ).one(),
            )
            if task_count > 0:
                raise ConflictError(
                    "Cannot delete teacher with assigned tasks. "
                    "Please reassign or delete the tasks first.",
                    details={"task_count": task_count},
                )
            history_count = int(
                session.exec(
                    select(func.count()).where(TaskStatusUpdate.user_id == user_id),
                ).one(),
            )
            if history_count > 0:
                raise ConflictError(
                    "Cannot delete teacher referenced by task status history.",
                    details={"status_update_count": history_count},
                )
            session.delete(row)
        logger.info("User deleted: user_id=%s", user_id)

    def get_user(self, *, user_id: int, roles: Sequence[Role] | None = None) -> UserView | None:
        with Session(self.engine) as session:
            statement = select(User).where(User.id == user_id)
            if roles is not None:
                statement = statement.where(col(User.role).in_([role.value for role in roles]))
            row = session.exec(statement).one_or_none()
            return _to_user_view(row) if row is not None else None

    def find_credentials(self, *, email: str) -> tuple[UserView, str] | None:
        """Return the user and stored password hash for an email."""

        with Session(self.engine) as session:
            row = session.exec(select(User).where(User.email == email)).one_or_none()
            if row is None:
                return None
            return _to_user_view(row), row.password_hash

    def list_users(self, *, roles: Sequence[Role]) -> list[UserView]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(User)
                .where(col(User.role).in_([role.value for role in roles]))
                .order_by(col(User.id).asc()),
            ).all()
            return [_to_user_view(row) for row in rows]

    def count_users(self, *, role: Role | None = None) -> int:
        with Session(self.engine) as session:
            statement = select(func.count()).select_from(User)
            if role is not None:
                statement = statement.where(User.role == role.value)
            return int(session.exec(statement).one())

    def _count_users(self, *, session: Session) -> int:
        return int(session.exec(select(func.count()).select_from(User)).one())

    def _get_user_row(self, *, session: Session, user_id: int, roles: Sequence[Role]) -> User:
        row = session.exec(
            select(User).where(
                User.id == user_id,
                col(User.role).in_([role.value for role in roles]),
            ),
        ).one_or_none()
        if row is None:
            raise NotFoundError(f"Teacher not found: {user_id}")
        return row

    def _ensure_email_free(self, *, session: Session, email: str) -> None:
        existing = session.exec(select(User.id).where(User.email == email)).first()
        if existing is not None:
            raise ConflictError("Email already in use")

    def _ensure_no_other_hod(self, *, session: Session, exclude_user_id: int | None) -> None:
        statement = select(User).where(User.role == Role.HOD.value)
        if exclude_user_id is not None:
            statement = statement.where(User.id != exclude_user_id)
        current = session.exec(statement).first()
        if current is not None:
            raise HodAlreadyAssignedError(
                current_hod_id=current.id or 0,
                current_hod_name=current.name,
                current_hod_email=current.email,
            )


def _to_user_view(row: User) -> UserView:
    if row.id is None:
        raise RuntimeError("User row has no primary key; flush before reading ids.")
    return UserView(
        id=row.id,
        name=row.name,
        email=row.email,
        role=Role(row.role),
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )
