"""CLI entrypoint for hod-tasks."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import rich_click as click

from hod_tasks import __version__
from hod_tasks.accounts.controllers import (
    AccountCliController,
    LoginCommand,
    RegisterCommand,
    TeacherCliController,
    TeacherCreateCommand,
    TeacherDeleteCommand,
    TeacherListCommand,
    TeacherShowCommand,
    TeacherUpdateCommand,
    WhoAmICommand,
)
from hod_tasks.config import Settings
from hod_tasks.errors import HodTasksError
from hod_tasks.tasks.controllers import (
    TaskCliController,
    TaskCreateCommand,
    TaskDeleteCommand,
    TaskListCommand,
    TaskShowCommand,
    TaskStatusCommand,
    TaskSummaryCommand,
    TaskUpdateCommand,
)

click.rich_click.USE_MARKDOWN = True
ACCOUNT_CONTROLLER = AccountCliController()
TEACHER_CONTROLLER = TeacherCliController()
TASK_CONTROLLER = TaskCliController()

_STATUS_CHOICES = ("PENDING", "IN_PROGRESS", "COMPLETED")


class HodTasksCliError(click.ClickException):
    """Core error rendered by click with the error kind's exit code."""

    def __init__(self, error: HodTasksError) -> None:
        super().__init__(f"{error.kind}: {error.message}")
        self.exit_code = error.exit_code
        self.error = error


def _db_path_option(func):
    return click.option(
        "--db-path",
        type=click.Path(path_type=Path),
        default=None,
        help="SQLite DB path.",
    )(func)


def _actor_option(func):
    return click.option(
        "--actor-id",
        type=int,
        default=None,
        help="Acting user id (defaults to HOD_TASKS_ACTOR_ID).",
    )(func)


@click.group()
@click.version_option(version=__version__, prog_name="hod-tasks")
@click.option(
    "--log-level",
    type=click.Choice(["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"], case_sensitive=False),
    default=None,
    help="Logging level (defaults to HOD_TASKS_LOG_LEVEL or WARNING).",
)
def hod_tasks(log_level: str | None) -> None:
    """HOD task assignment CLI."""

    try:
        settings = Settings.from_env()
        if log_level:
            settings.log_level = log_level.upper()
        settings.validate()
    except ValueError as error:
        raise click.UsageError(str(error)) from error
    logging.basicConfig(
        level=settings.log_level_number,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@hod_tasks.group()
def auth() -> None:
    """Registration and login."""


@auth.command("register")
@_db_path_option
@_actor_option
@click.option("--name", required=True, help="Display name.")
@click.option("--email", required=True, help="Unique email.")
@click.password_option("--password", help="Account password.")
@click.option(
    "--role",
    type=click.Choice(["ADMIN", "HOD", "TEACHER"], case_sensitive=False),
    default=None,
    help="Role; anything but TEACHER needs an ADMIN actor once users exist.",
)
def auth_register(  # noqa: PLR0913
    db_path: Path | None,
    actor_id: int | None,
    name: str,
    email: str,
    password: str,
    role: str | None,
) -> None:
    """Register a user account."""

    with _core_errors():
        _emit_lines(
            ACCOUNT_CONTROLLER.register(
                RegisterCommand(
                    db_path=db_path,
                    name=name,
                    email=email,
                    password=password,
                    role=role,
                    actor_id=actor_id,
                ),
            ),
        )


@auth.command("login")
@_db_path_option
@click.option("--email", required=True, help="Account email.")
@click.option("--password", prompt=True, hide_input=True, help="Account password.")
def auth_login(db_path: Path | None, email: str, password: str) -> None:
    """Check credentials and print the actor id to use."""

    with _core_errors():
        _emit_lines(
            ACCOUNT_CONTROLLER.login(
                LoginCommand(db_path=db_path, email=email, password=password),
            ),
        )


@auth.command("me")
@_db_path_option
@_actor_option
def auth_me(db_path: Path | None, actor_id: int | None) -> None:
    """Show the acting user's profile."""

    with _core_errors():
        _emit_lines(ACCOUNT_CONTROLLER.me(WhoAmICommand(db_path=db_path, actor_id=actor_id)))


@hod_tasks.group()
def tasks() -> None:
    """Task assignment and status tracking."""


@tasks.command("list")
@_db_path_option
@_actor_option
@click.option(
    "--status",
    type=click.Choice(_STATUS_CHOICES, case_sensitive=False),
    default=None,
    help="Only show tasks in this status.",
)
def tasks_list(db_path: Path | None, actor_id: int | None, status: str | None) -> None:
    """List tasks visible to the actor, newest first."""

    with _core_errors():
        _emit_lines(
            TASK_CONTROLLER.list_tasks(
                TaskListCommand(db_path=db_path, actor_id=actor_id, status=status),
            ),
        )


@tasks.command("show")
@_db_path_option
@_actor_option
@click.argument("task_id", type=int)
def tasks_show(db_path: Path | None, actor_id: int | None, task_id: int) -> None:
    """Show one task with its status history."""

    with _core_errors():
        _emit_lines(
            TASK_CONTROLLER.show_task(
                TaskShowCommand(db_path=db_path, actor_id=actor_id, task_id=task_id),
            ),
        )


@tasks.command("create")
@_db_path_option
@_actor_option
@click.option("--title", required=True, help="Task title.")
@click.option("--assigned-to", "assigned_to_id", type=int, required=True, help="Teacher id.")
@click.option("--description", default=None, help="Optional description.")
@click.option("--due-date", default=None, help="ISO-8601 due date, e.g. 2026-11-01T12:00:00Z.")
def tasks_create(  # noqa: PLR0913
    db_path: Path | None,
    actor_id: int | None,
    title: str,
    assigned_to_id: int,
    description: str | None,
    due_date: str | None,
) -> None:
    """Create a task and assign it to a teacher (HOD only)."""

    with _core_errors():
        _emit_lines(
            TASK_CONTROLLER.create_task(
                TaskCreateCommand(
                    db_path=db_path,
                    actor_id=actor_id,
                    title=title,
                    assigned_to_id=assigned_to_id,
                    description=description,
                    due_date=due_date,
                ),
            ),
        )


@tasks.command("update")
@_db_path_option
@_actor_option
@click.argument("task_id", type=int)
@click.option("--title", default=None, help="New title.")
@click.option("--description", default=None, help="New description.")
@click.option("--clear-description", is_flag=True, help="Remove the description.")
@click.option("--due-date", default=None, help="New ISO-8601 due date.")
@click.option("--clear-due-date", is_flag=True, help="Remove the due date.")
@click.option("--assigned-to", "assigned_to_id", type=int, default=None, help="New teacher id.")
def tasks_update(  # noqa: PLR0913
    db_path: Path | None,
    actor_id: int | None,
    task_id: int,
    title: str | None,
    description: str | None,
    clear_description: bool,
    due_date: str | None,
    clear_due_date: bool,
    assigned_to_id: int | None,
) -> None:
    """Edit task fields or reassign it (creating HOD only)."""

    if clear_description and description is not None:
        raise click.UsageError("Use either --description or --clear-description.")
    if clear_due_date and due_date is not None:
        raise click.UsageError("Use either --due-date or --clear-due-date.")
    with _core_errors():
        _emit_lines(
            TASK_CONTROLLER.update_task(
                TaskUpdateCommand(
                    db_path=db_path,
                    actor_id=actor_id,
                    task_id=task_id,
                    title=title,
                    description=description,
                    clear_description=clear_description,
                    due_date=due_date,
                    clear_due_date=clear_due_date,
                    assigned_to_id=assigned_to_id,
                ),
            ),
        )


@tasks.command("status")
@_db_path_option
@_actor_option
@click.argument("task_id", type=int)
@click.argument("status")
@click.option("--comment", default=None, help="Optional note stored in the history.")
def tasks_status(
    db_path: Path | None,
    actor_id: int | None,
    task_id: int,
    status: str,
    comment: str | None,
) -> None:
    """Move a task to PENDING, IN_PROGRESS or COMPLETED."""

    with _core_errors():
        _emit_lines(
            TASK_CONTROLLER.update_status(
                TaskStatusCommand(
                    db_path=db_path,
                    actor_id=actor_id,
                    task_id=task_id,
                    status=status,
                    comment=comment,
                ),
            ),
        )


@tasks.command("delete")
@_db_path_option
@_actor_option
@click.argument("task_id", type=int)
def tasks_delete(db_path: Path | None, actor_id: int | None, task_id: int) -> None:
    """Delete a task and its history (creating HOD only)."""

    with _core_errors():
        _emit_lines(
            TASK_CONTROLLER.delete_task(
                TaskDeleteCommand(db_path=db_path, actor_id=actor_id, task_id=task_id),
            ),
        )


@tasks.command("summary")
@_db_path_option
@_actor_option
def tasks_summary(db_path: Path | None, actor_id: int | None) -> None:
    """Show task counts per status."""

    with _core_errors():
        _emit_lines(
            TASK_CONTROLLER.summary(TaskSummaryCommand(db_path=db_path, actor_id=actor_id)),
        )


@hod_tasks.group()
def teachers() -> None:
    """Teacher management."""


@teachers.command("list")
@_db_path_option
@_actor_option
@click.option("--exclude-hod", is_flag=True, help="Leave the HOD out of the list.")
def teachers_list(db_path: Path | None, actor_id: int | None, exclude_hod: bool) -> None:
    """List teachers (ADMIN or HOD)."""

    with _core_errors():
        _emit_lines(
            TEACHER_CONTROLLER.list_teachers(
                TeacherListCommand(db_path=db_path, actor_id=actor_id, exclude_hod=exclude_hod),
            ),
        )


@teachers.command("show")
@_db_path_option
@_actor_option
@click.argument("teacher_id", type=int)
def teachers_show(db_path: Path | None, actor_id: int | None, teacher_id: int) -> None:
    """Show one teacher (ADMIN only)."""

    with _core_errors():
        _emit_lines(
            TEACHER_CONTROLLER.show_teacher(
                TeacherShowCommand(db_path=db_path, actor_id=actor_id, teacher_id=teacher_id),
            ),
        )


@teachers.command("create")
@_db_path_option
@_actor_option
@click.option("--name", required=True, help="Display name.")
@click.option("--email", required=True, help="Unique email.")
@click.password_option("--password", help="Initial password.")
@click.option("--hod", "is_hod", is_flag=True, help="Create as the head of department.")
def teachers_create(  # noqa: PLR0913
    db_path: Path | None,
    actor_id: int | None,
    name: str,
    email: str,
    password: str,
    is_hod: bool,
) -> None:
    """Create a teacher account (ADMIN only)."""

    with _core_errors():
        _emit_lines(
            TEACHER_CONTROLLER.create_teacher(
                TeacherCreateCommand(
                    db_path=db_path,
                    actor_id=actor_id,
                    name=name,
                    email=email,
                    password=password,
                    is_hod=is_hod,
                ),
            ),
        )


@teachers.command("update")
@_db_path_option
@_actor_option
@click.argument("teacher_id", type=int)
@click.option("--name", default=None, help="New display name.")
@click.option("--email", default=None, help="New email.")
@click.option("--hod/--no-hod", "is_hod", default=None, help="Promote to or demote from HOD.")
def teachers_update(  # noqa: PLR0913
    db_path: Path | None,
    actor_id: int | None,
    teacher_id: int,
    name: str | None,
    email: str | None,
    is_hod: bool | None,
) -> None:
    """Update a teacher account (ADMIN only)."""

    with _core_errors():
        _emit_lines(
            TEACHER_CONTROLLER.update_teacher(
                TeacherUpdateCommand(
                    db_path=db_path,
                    actor_id=actor_id,
                    teacher_id=teacher_id,
                    name=name,
                    email=email,
                    is_hod=is_hod,
                ),
            ),
        )


@teachers.command("delete")
@_db_path_option
@_actor_option
@click.argument("teacher_id", type=int)
def teachers_delete(db_path: Path | None, actor_id: int | None, teacher_id: int) -> None:
    """Delete a teacher with no tasks or history (ADMIN only)."""

    with _core_errors():
        _emit_lines(
            TEACHER_CONTROLLER.delete_teacher(
                TeacherDeleteCommand(db_path=db_path, actor_id=actor_id, teacher_id=teacher_id),
            ),
        )


@contextmanager
def _core_errors() -> Iterator[None]:
    try:
        yield
    except HodTasksError as error:
        raise HodTasksCliError(error) from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    hod_tasks()
