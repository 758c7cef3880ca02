from __future__ import annotations

from pathlib import Path

import allure
import pytest
from click.testing import CliRunner, Result

from hod_tasks.main import hod_tasks

pytestmark = [
    allure.epic("Task Assignment"),
    allure.feature("CLI"),
]


def _run(db_path: Path, *args: str, env: dict[str, str] | None = None) -> Result:
    group, command, *rest = args
    runner = CliRunner()
    return runner.invoke(
        hod_tasks,
        [group, command, "--db-path", str(db_path), *rest],
        env=env,
    )


@pytest.fixture()
def school(tmp_path: Path) -> Path:
    """DB with ADMIN id=1, HOD id=2, Teacher A id=3 and Teacher B id=4."""

    db_path = tmp_path / "cli.db"
    result = _run(
        db_path,
        "auth",
        "register",
        "--name",
        "Admin",
        "--email",
        "admin@school.test",
        "--password",
        "pw",
        "--role",
        "ADMIN",
    )
    assert result.exit_code == 0, result.output
    assert "id=1" in result.output

    for name, email, extra in (
        ("Head", "hod@school.test", ["--hod"]),
        ("Teacher A", "a@school.test", []),
        ("Teacher B", "b@school.test", []),
    ):
        result = _run(
            db_path,
            "teachers",
            "create",
            "--actor-id",
            "1",
            "--name",
            name,
            "--email",
            email,
            "--password",
            "pw",
            *extra,
        )
        assert result.exit_code == 0, result.output
    return db_path


def test_task_flow_through_cli(school: Path) -> None:
    created = _run(
        school,
        "tasks",
        "create",
        "--actor-id",
        "2",
        "--title",
        "Grade exams",
        "--assigned-to",
        "3",
        "--due-date",
        "2026-11-01T12:00:00Z",
    )
    assert created.exit_code == 0, created.output
    assert "Task created: task_id=1" in created.output
    assert "Status: PENDING" in created.output

    started = _run(
        school,
        "tasks",
        "status",
        "--actor-id",
        "3",
        "1",
        "in_progress",
        "--comment",
        "Started marking",
    )
    assert started.exit_code == 0, started.output
    assert "status=IN_PROGRESS" in started.output

    shown = _run(school, "tasks", "show", "--actor-id", "3", "1")
    assert shown.exit_code == 0, shown.output
    assert "History: 2" in shown.output
    assert "Started marking" in shown.output

    listed = _run(school, "tasks", "list", "--actor-id", "4")
    assert listed.exit_code == 0, listed.output
    assert "Tasks: 0" in listed.output

    summary = _run(school, "tasks", "summary", env={"HOD_TASKS_ACTOR_ID": "2"})
    assert summary.exit_code == 0, summary.output
    assert "Total tasks: 1" in summary.output
    assert "IN_PROGRESS: 1" in summary.output


def test_errors_map_to_exit_codes(school: Path) -> None:
    created = _run(
        school, "tasks", "create", "--actor-id", "2", "--title", "Grade exams", "--assigned-to", "3"
    )
    assert created.exit_code == 0, created.output

    hidden = _run(school, "tasks", "show", "--actor-id", "4", "1")
    assert hidden.exit_code == 5
    assert "not_found: Task not found: 1" in hidden.output

    forbidden = _run(school, "tasks", "delete", "--actor-id", "3", "1")
    assert forbidden.exit_code == 4

    invalid = _run(school, "tasks", "status", "--actor-id", "3", "1", "DONE")
    assert invalid.exit_code == 2

    anonymous = _run(school, "tasks", "list")
    assert anonymous.exit_code == 3
    assert "Authentication required" in anonymous.output

    second_hod = _run(
        school,
        "teachers",
        "create",
        "--actor-id",
        "1",
        "--name",
        "Second Head",
        "--email",
        "head2@school.test",
        "--password",
        "pw",
        "--hod",
    )
    assert second_hod.exit_code == 6
    assert "There is already an HOD assigned" in second_hod.output


def test_teacher_listing_update_and_delete(school: Path) -> None:
    listed = _run(school, "teachers", "list", "--actor-id", "2", "--exclude-hod")
    assert listed.exit_code == 0, listed.output
    assert "Teachers: 2" in listed.output
    assert "hod@school.test" not in listed.output

    updated = _run(school, "teachers", "update", "--actor-id", "1", "4", "--name", "Teacher Beta")
    assert updated.exit_code == 0, updated.output
    assert "name=Teacher Beta" in updated.output

    deleted = _run(school, "teachers", "delete", "--actor-id", "1", "4")
    assert deleted.exit_code == 0, deleted.output
    missing = _run(school, "teachers", "show", "--actor-id", "1", "4")
    assert missing.exit_code == 5


def test_login_and_me(school: Path) -> None:
    ok = _run(school, "auth", "login", "--email", "a@school.test", "--password", "pw")
    assert ok.exit_code == 0, ok.output
    assert "--actor-id 3" in ok.output

    bad = _run(school, "auth", "login", "--email", "a@school.test", "--password", "nope")
    assert bad.exit_code == 3
    assert "Invalid credentials" in bad.output

    me = _run(school, "auth", "me", "--actor-id", "2")
    assert me.exit_code == 0, me.output
    assert "role=HOD" in me.output


def test_update_rejects_conflicting_clear_flags(school: Path) -> None:
    result = _run(
        school,
        "tasks",
        "update",
        "--actor-id",
        "2",
        "1",
        "--due-date",
        "2026-12-01",
        "--clear-due-date",
    )

    assert result.exit_code == 2
    assert "--clear-due-date" in result.output


def test_invalid_env_is_reported_as_usage_error(school: Path) -> None:
    result = _run(school, "tasks", "list", env={"HOD_TASKS_ACTOR_ID": "someone"})

    assert result.exit_code == 2
    assert "Invalid integer value for HOD_TASKS_ACTOR_ID" in result.output
