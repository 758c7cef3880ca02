from __future__ import annotations

from datetime import UTC, datetime

import allure
import pytest

from hod_tasks.accounts.models import TeacherPatch
from hod_tasks.accounts.services import TeacherService
from hod_tasks.errors import ForbiddenError, NotFoundError, ValidationError
from hod_tasks.tasks.models import TaskCreate, TaskDetails, TaskPatch, TaskStatus
from hod_tasks.tasks.repository import TaskRepository
from hod_tasks.tasks.services import TaskService

pytestmark = [
    allure.epic("Task Assignment"),
    allure.feature("Task Lifecycle & Status History"),
]


def _grade_exams(task_service: TaskService, staff, **overrides) -> TaskDetails:
    payload = {
        "title": "Grade exams",
        "assigned_to_id": staff.teacher_a.id,
        "description": "Year 10 mock exams",
        "due_date": "2026-11-01T12:00:00Z",
    }
    payload.update(overrides)
    return task_service.create_task(staff.hod.identity, TaskCreate(**payload))


def _assert_newest_entry_mirrors_status(details: TaskDetails) -> None:
    assert details.status_updates
    assert details.status_updates[0].status is details.task.status


def test_create_task_records_initial_history_entry(task_service: TaskService, staff) -> None:
    details = _grade_exams(task_service, staff)

    assert details.task.status is TaskStatus.PENDING
    assert details.task.title == "Grade exams"
    assert details.task.due_date == datetime(2026, 11, 1, 12, 0, tzinfo=UTC)
    assert details.created_by.id == staff.hod.id
    assert details.assigned_to.email == staff.teacher_a.email
    assert len(details.status_updates) == 1
    entry = details.status_updates[0]
    assert entry.status is TaskStatus.PENDING
    assert entry.comment == "Task created"
    assert entry.author.id == staff.hod.id
    assert entry.author.name == "Head"


def test_assignee_status_update_appends_history_newest_first(
    task_service: TaskService,
    staff,
) -> None:
    created = _grade_exams(task_service, staff)

    details = task_service.update_status(
        staff.teacher_a.identity,
        created.task.id,
        "IN_PROGRESS",
        "Started marking",
    )

    assert details.task.status is TaskStatus.IN_PROGRESS
    assert [entry.status for entry in details.status_updates] == [
        TaskStatus.IN_PROGRESS,
        TaskStatus.PENDING,
    ]
    assert details.status_updates[0].comment == "Started marking"
    assert details.status_updates[0].author.id == staff.teacher_a.id
    _assert_newest_entry_mirrors_status(details)


def test_other_teacher_cannot_see_or_update_foreign_task(task_service: TaskService, staff) -> None:
    created = _grade_exams(task_service, staff)

    with pytest.raises(NotFoundError):
        task_service.get_task(staff.teacher_b.identity, created.task.id)
    with pytest.raises(ForbiddenError):
        task_service.update_status(staff.teacher_b.identity, created.task.id, "COMPLETED")
    assert task_service.list_tasks(staff.teacher_b.identity) == []

    visible = task_service.list_tasks(staff.teacher_a.identity)
    assert [details.task.id for details in visible] == [created.task.id]


def test_reassignment_records_entry_with_unchanged_status(
    task_service: TaskService,
    staff,
) -> None:
    created = _grade_exams(task_service, staff)
    task_service.update_status(staff.teacher_a.identity, created.task.id, "IN_PROGRESS")

    details = task_service.update_fields(
        staff.hod.identity,
        created.task.id,
        TaskPatch(assigned_to_id=staff.teacher_b.id),
    )

    assert details.assigned_to.id == staff.teacher_b.id
    assert details.task.status is TaskStatus.IN_PROGRESS
    newest = details.status_updates[0]
    assert newest.comment == "Task reassigned to Teacher B"
    assert newest.status is TaskStatus.IN_PROGRESS
    assert newest.author.id == staff.hod.id
    assert len(details.status_updates) == 3
    _assert_newest_entry_mirrors_status(details)

    moved = task_service.get_task(staff.teacher_b.identity, created.task.id)
    assert moved.task.id == created.task.id
    with pytest.raises(NotFoundError):
        task_service.get_task(staff.teacher_a.identity, created.task.id)


def test_field_update_without_reassignment_leaves_history_alone(
    task_service: TaskService,
    staff,
) -> None:
    created = _grade_exams(task_service, staff)

    details = task_service.update_fields(
        staff.hod.identity,
        created.task.id,
        TaskPatch(title="Grade final exams", description=None, due_date=None),
    )

    assert details.task.title == "Grade final exams"
    assert details.task.description is None
    assert details.task.due_date is None
    assert len(details.status_updates) == 1


def test_update_with_same_assignee_is_not_a_reassignment(
    task_service: TaskService,
    staff,
) -> None:
    created = _grade_exams(task_service, staff)

    details = task_service.update_fields(
        staff.hod.identity,
        created.task.id,
        TaskPatch(assigned_to_id=staff.teacher_a.id),
    )

    assert len(details.status_updates) == 1


def test_blank_title_in_patch_is_rejected(task_service: TaskService, staff) -> None:
    created = _grade_exams(task_service, staff)

    with pytest.raises(ValidationError, match="Title is required"):
        task_service.update_fields(staff.hod.identity, created.task.id, TaskPatch(title="  "))


def test_non_creating_hod_is_forbidden_from_edit_and_delete(
    task_service: TaskService,
    teacher_service: TeacherService,
    staff,
) -> None:
    created = _grade_exams(task_service, staff)
    admin = staff.admin.identity
    teacher_service.update_teacher(admin, staff.hod.id, TeacherPatch(is_hod=False))
    new_hod = teacher_service.update_teacher(admin, staff.teacher_b.id, TeacherPatch(is_hod=True))

    with pytest.raises(ForbiddenError):
        task_service.update_fields(new_hod.identity, created.task.id, TaskPatch(title="Mine now"))
    with pytest.raises(ForbiddenError):
        task_service.delete_task(new_hod.identity, created.task.id)

    details = task_service.update_status(new_hod.identity, created.task.id, "COMPLETED")
    assert details.task.status is TaskStatus.COMPLETED


def test_delete_removes_task_and_its_history(
    task_service: TaskService,
    task_repository: TaskRepository,
    staff,
) -> None:
    created = _grade_exams(task_service, staff)
    task_service.update_status(staff.teacher_a.identity, created.task.id, "COMPLETED")
    assert task_repository.count_status_updates(task_id=created.task.id) == 2

    task_service.delete_task(staff.hod.identity, created.task.id)

    assert task_repository.count_status_updates(task_id=created.task.id) == 0
    with pytest.raises(NotFoundError):
        task_service.get_task(staff.hod.identity, created.task.id)
    with pytest.raises(NotFoundError):
        task_service.delete_task(staff.hod.identity, created.task.id)


def test_completed_task_can_be_reopened(task_service: TaskService, staff) -> None:
    created = _grade_exams(task_service, staff)
    task_service.update_status(staff.teacher_a.identity, created.task.id, TaskStatus.COMPLETED)

    details = task_service.update_status(staff.teacher_a.identity, created.task.id, "pending")

    assert details.task.status is TaskStatus.PENDING
    _assert_newest_entry_mirrors_status(details)


def test_create_task_validation_and_permission_errors(task_service: TaskService, staff) -> None:
    with pytest.raises(ForbiddenError):
        task_service.create_task(
            staff.teacher_a.identity,
            TaskCreate(title="Grade exams", assigned_to_id=staff.teacher_a.id),
        )
    with pytest.raises(ValidationError, match="Title is required"):
        _grade_exams(task_service, staff, title="   ")
    with pytest.raises(ValidationError):
        _grade_exams(task_service, staff, assigned_to_id=None)
    with pytest.raises(ValidationError, match="Invalid due date format"):
        _grade_exams(task_service, staff, due_date="next tuesday")
    with pytest.raises(NotFoundError, match="Assigned teacher not found"):
        _grade_exams(task_service, staff, assigned_to_id=9999)
    with pytest.raises(NotFoundError, match="Assigned teacher not found"):
        _grade_exams(task_service, staff, assigned_to_id=staff.admin.id)

    assert task_service.list_tasks(staff.hod.identity) == []


def test_status_update_errors(task_service: TaskService, staff) -> None:
    created = _grade_exams(task_service, staff)

    with pytest.raises(ValidationError, match="Valid status is required"):
        task_service.update_status(staff.teacher_a.identity, created.task.id, "DONE")
    with pytest.raises(NotFoundError):
        task_service.update_status(staff.teacher_a.identity, 9999, "COMPLETED")
    with pytest.raises(ForbiddenError):
        task_service.update_status(staff.admin.identity, created.task.id, "COMPLETED")

    details = task_service.get_task(staff.admin.identity, created.task.id)
    assert len(details.status_updates) == 1


def test_hod_can_assign_a_task_to_themselves(task_service: TaskService, staff) -> None:
    details = _grade_exams(task_service, staff, assigned_to_id=staff.hod.id)

    assert details.assigned_to.id == staff.hod.id


def test_listing_is_newest_first_and_scoped(task_service: TaskService, staff) -> None:
    first = _grade_exams(task_service, staff, title="Grade exams")
    second = _grade_exams(task_service, staff, title="Plan trip", assigned_to_id=staff.teacher_b.id)

    hod_view = [details.task.id for details in task_service.list_tasks(staff.hod.identity)]
    admin_view = [details.task.id for details in task_service.list_tasks(staff.admin.identity)]

    assert hod_view == [second.task.id, first.task.id]
    assert admin_view == hod_view
    assert [d.task.id for d in task_service.list_tasks(staff.teacher_b.identity)] == [
        second.task.id,
    ]


def test_task_summary_counts_visible_tasks(task_service: TaskService, staff) -> None:
    first = _grade_exams(task_service, staff)
    _grade_exams(task_service, staff, title="Plan trip", assigned_to_id=staff.teacher_b.id)
    task_service.update_status(staff.teacher_a.identity, first.task.id, "COMPLETED")

    overall = task_service.task_summary(staff.hod.identity)
    own = task_service.task_summary(staff.teacher_a.identity)

    assert overall.total == 2
    assert overall.by_status == {
        TaskStatus.PENDING: 1,
        TaskStatus.IN_PROGRESS: 0,
        TaskStatus.COMPLETED: 1,
    }
    assert own.total == 1
    assert own.by_status[TaskStatus.COMPLETED] == 1


def test_field_update_checks_existence_and_permission_before_the_patch(
    task_service: TaskService,
    staff,
) -> None:
    created = _grade_exams(task_service, staff)

    with pytest.raises(NotFoundError, match="Task not found: 9999"):
        task_service.update_fields(staff.hod.identity, 9999, TaskPatch(title=" "))
    with pytest.raises(ForbiddenError):
        task_service.update_fields(
            staff.teacher_b.identity,
            created.task.id,
            TaskPatch(due_date="garbage"),
        )
    with pytest.raises(ValidationError, match="Invalid due date format"):
        task_service.update_fields(
            staff.hod.identity,
            created.task.id,
            TaskPatch(due_date="garbage"),
        )


def test_started_then_done_keeps_three_entries_newest_first(
    task_service: TaskService,
    staff,
) -> None:
    created = _grade_exams(task_service, staff)
    teacher = staff.teacher_a.identity

    task_service.update_status(teacher, created.task.id, "IN_PROGRESS", "started")
    details = task_service.update_status(teacher, created.task.id, "COMPLETED", "done")

    assert details.task.status is TaskStatus.COMPLETED
    assert [(entry.status, entry.comment) for entry in details.status_updates] == [
        (TaskStatus.COMPLETED, "done"),
        (TaskStatus.IN_PROGRESS, "started"),
        (TaskStatus.PENDING, "Task created"),
    ]


def _failing_ledger_write(**_: object) -> None:
    raise RuntimeError("ledger write failed")


def test_failed_ledger_write_rolls_back_task_creation(
    task_service: TaskService,
    task_repository: TaskRepository,
    staff,
    monkeypatch,
) -> None:
    monkeypatch.setattr(task_repository, "_add_status_update", _failing_ledger_write)

    with pytest.raises(RuntimeError, match="ledger write failed"):
        _grade_exams(task_service, staff)

    assert task_service.list_tasks(staff.hod.identity) == []


def test_failed_ledger_write_leaves_status_unchanged(
    task_service: TaskService,
    task_repository: TaskRepository,
    staff,
    monkeypatch,
) -> None:
    created = _grade_exams(task_service, staff)
    monkeypatch.setattr(task_repository, "_add_status_update", _failing_ledger_write)

    with pytest.raises(RuntimeError, match="ledger write failed"):
        task_service.update_status(staff.teacher_a.identity, created.task.id, "IN_PROGRESS")

    monkeypatch.undo()
    details = task_service.get_task(staff.hod.identity, created.task.id)
    assert details.task.status is TaskStatus.PENDING
    assert len(details.status_updates) == 1
