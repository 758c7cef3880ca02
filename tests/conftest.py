"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import pytest

from hod_tasks.accounts.models import NewUser, Role, UserView
from hod_tasks.accounts.passwords import hash_password
from hod_tasks.accounts.repository import UserRepository
from hod_tasks.accounts.services import AccountService, TeacherService
from hod_tasks.tasks.repository import TaskRepository
from hod_tasks.tasks.services import TaskService

PASSWORD = "s3cret-pass"


@dataclass(slots=True)
class Staff:
    admin: UserView
    hod: UserView
    teacher_a: UserView
    teacher_b: UserView


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "HOD_TASKS_DB_PATH",
        "HOD_TASKS_SQLITE_BUSY_TIMEOUT_MS",
        "HOD_TASKS_ACTOR_ID",
        "HOD_TASKS_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "hod_tasks.db"


@pytest.fixture()
def user_repository(db_path: Path) -> Iterator[UserRepository]:
    repository = UserRepository(db_path)
    repository.init_schema()
    yield repository
    repository.close()


@pytest.fixture()
def task_repository(user_repository: UserRepository, db_path: Path) -> Iterator[TaskRepository]:
    repository = TaskRepository(db_path)
    yield repository
    repository.close()


@pytest.fixture()
def staff(user_repository: UserRepository) -> Staff:
    """ADMIN, the HOD and two teachers, created directly in the store."""

    password_hash = hash_password(PASSWORD)

    def _create(name: str, email: str, role: Role) -> UserView:
        return user_repository.create_user(
            NewUser(name=name, email=email, password_hash=password_hash, role=role),
        )

    return Staff(
        admin=_create("Admin", "admin@school.test", Role.ADMIN),
        hod=_create("Head", "hod@school.test", Role.HOD),
        teacher_a=_create("Teacher A", "a@school.test", Role.TEACHER),
        teacher_b=_create("Teacher B", "b@school.test", Role.TEACHER),
    )


@pytest.fixture()
def task_service(task_repository: TaskRepository) -> TaskService:
    return TaskService(repository=task_repository)


@pytest.fixture()
def teacher_service(user_repository: UserRepository) -> TeacherService:
    return TeacherService(repository=user_repository)


@pytest.fixture()
def account_service(user_repository: UserRepository) -> AccountService:
    return AccountService(repository=user_repository)
