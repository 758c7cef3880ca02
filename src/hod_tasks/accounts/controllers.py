"""Controllers for auth and teacher management CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from hod_tasks.accounts.identity import IdentityResolver
from hod_tasks.accounts.models import Identity, TeacherPatch, UserView
from hod_tasks.accounts.repository import UserRepository
from hod_tasks.accounts.services import AccountService, TeacherService
from hod_tasks.config import Settings


@dataclass(slots=True)
class RegisterCommand:
    """CLI input for account registration."""

    db_path: Path | None
    name: str
    email: str
    password: str
    role: str | None
    actor_id: int | None


@dataclass(slots=True)
class LoginCommand:
    """CLI input for credential check."""

    db_path: Path | None
    email: str
    password: str


@dataclass(slots=True)
class WhoAmICommand:
    """CLI input for the current actor's profile."""

    db_path: Path | None
    actor_id: int | None


@dataclass(slots=True)
class TeacherListCommand:
    """CLI input for teacher listing."""

    db_path: Path | None
    actor_id: int | None
    exclude_hod: bool = False


@dataclass(slots=True)
class TeacherShowCommand:
    """CLI input for one teacher."""

    db_path: Path | None
    actor_id: int | None
    teacher_id: int


@dataclass(slots=True)
class TeacherCreateCommand:
    """CLI input for teacher creation."""

    db_path: Path | None
    actor_id: int | None
    name: str
    email: str
    password: str
    is_hod: bool = False


@dataclass(slots=True)
class TeacherUpdateCommand:
    """CLI input for teacher changes."""

    db_path: Path | None
    actor_id: int | None
    teacher_id: int
    name: str | None = None
    email: str | None = None
    is_hod: bool | None = None


@dataclass(slots=True)
class TeacherDeleteCommand:
    """CLI input for teacher deletion."""

    db_path: Path | None
    actor_id: int | None
    teacher_id: int


class AccountCliController:
    """Registration, login and profile commands."""

    def register(self, command: RegisterCommand) -> list[str]:
        with _user_repository(command.db_path) as (repository, settings):
            actor = None
            actor_id = (
                command.actor_id
                if command.actor_id is not None
                else settings.actor_context.actor_id
            )
            if actor_id is not None:
                actor = IdentityResolver(repository=repository).resolve(actor_id)
            user = AccountService(repository=repository).register(
                name=command.name,
                email=command.email,
                password=command.password,
                role=command.role,
                actor=actor,
            )
        return [f"User registered: {render_user(user)}"]

    def login(self, command: LoginCommand) -> list[str]:
        with _user_repository(command.db_path) as (repository, _):
            user = AccountService(repository=repository).login(
                email=command.email,
                password=command.password,
            )
        return [
            f"Logged in: {render_user(user)}",
            f"Use --actor-id {user.id} or HOD_TASKS_ACTOR_ID={user.id} for further commands.",
        ]

    def me(self, command: WhoAmICommand) -> list[str]:
        with _user_repository(command.db_path) as (repository, settings):
            identity = IdentityResolver(repository=repository).resolve(
                _actor_id(command.actor_id, settings),
            )
            user = AccountService(repository=repository).me(identity)
        return [render_user(user)]


class TeacherCliController:
    """Admin teacher management commands."""

    def list_teachers(self, command: TeacherListCommand) -> list[str]:
        with _teacher_service(command.db_path, command.actor_id) as (service, identity):
            teachers = service.list_teachers(identity, exclude_hod=command.exclude_hod)
        return [f"Teachers: {len(teachers)}", *(f"  {render_user(user)}" for user in teachers)]

    def show_teacher(self, command: TeacherShowCommand) -> list[str]:
        with _teacher_service(command.db_path, command.actor_id) as (service, identity):
            teacher = service.get_teacher(identity, command.teacher_id)
        return [render_user(teacher)]

    def create_teacher(self, command: TeacherCreateCommand) -> list[str]:
        with _teacher_service(command.db_path, command.actor_id) as (service, identity):
            teacher = service.create_teacher(
                identity,
                name=command.name,
                email=command.email,
                password=command.password,
                is_hod=command.is_hod,
            )
        return [f"Teacher created: {render_user(teacher)}"]

    def update_teacher(self, command: TeacherUpdateCommand) -> list[str]:
        with _teacher_service(command.db_path, command.actor_id) as (service, identity):
            teacher = service.update_teacher(
                identity,
                command.teacher_id,
                TeacherPatch(name=command.name, email=command.email, is_hod=command.is_hod),
            )
        return [f"Teacher updated: {render_user(teacher)}"]

    def delete_teacher(self, command: TeacherDeleteCommand) -> list[str]:
        with _teacher_service(command.db_path, command.actor_id) as (service, identity):
            service.delete_teacher(identity, command.teacher_id)
        return [f"Teacher deleted: id={command.teacher_id}"]


def render_user(user: UserView) -> str:
    return f"id={user.id} name={user.name} email={user.email} role={user.role.value}"


def _actor_id(actor_id: int | None, settings: Settings) -> int | None:
    return actor_id if actor_id is not None else settings.actor_context.actor_id


@contextmanager
def _user_repository(db_path: Path | None) -> Iterator[tuple[UserRepository, Settings]]:
    settings = Settings.from_env(db_path=db_path)
    settings.validate()
    repository = UserRepository(
        settings.db_path,
        sqlite_busy_timeout_ms=settings.storage.busy_timeout_ms,
    )
    try:
        repository.init_schema()
        yield repository, settings
    finally:
        repository.close()


@contextmanager
def _teacher_service(
    db_path: Path | None,
    actor_id: int | None,
) -> Iterator[tuple[TeacherService, Identity]]:
    with _user_repository(db_path) as (repository, settings):
        identity = IdentityResolver(repository=repository).resolve(
            _actor_id(actor_id, settings),
        )
        yield TeacherService(repository=repository), identity
