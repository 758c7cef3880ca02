"""Access control predicate for task and teacher operations.

``can_perform`` is a pure decision over ``(identity, action, task)``. Rules are
evaluated in declaration order and the first matching rule decides.

``authorize`` turns a denial into the error the caller must see. A TEACHER
asking for a task assigned to someone else gets ``NotFoundError`` so the task's
existence is not disclosed; every other denial is ``ForbiddenError``, including
an HOD touching a task another HOD created.
"""

from __future__ import annotations

import logging
from enum import Enum

from hod_tasks.accounts.models import Identity, Role
from hod_tasks.errors import ForbiddenError, NotFoundError
from hod_tasks.tasks.models import TaskView

logger = logging.getLogger(__name__)


class Action(str, Enum):
    CREATE_TASK = "CREATE_TASK"
    VIEW_TASK = "VIEW_TASK"
    LIST_TASKS = "LIST_TASKS"
    UPDATE_TASK_FIELDS = "UPDATE_TASK_FIELDS"
    UPDATE_TASK_STATUS = "UPDATE_TASK_STATUS"
    DELETE_TASK = "DELETE_TASK"
    MANAGE_TEACHERS = "MANAGE_TEACHERS"
    LIST_TEACHERS = "LIST_TEACHERS"


_DENIAL_MESSAGES = {
    Action.CREATE_TASK: "Forbidden - HOD access required",
    Action.UPDATE_TASK_FIELDS: "You can only update tasks you created",
    Action.DELETE_TASK: "You can only delete tasks you created",
    Action.UPDATE_TASK_STATUS: "You can only update tasks assigned to you",
    Action.MANAGE_TEACHERS: "Forbidden - Admin access required",
    Action.LIST_TEACHERS: "Forbidden - HOD or Admin access required",
    Action.LIST_TASKS: "Forbidden - task listing not permitted",
}


def can_perform(identity: Identity, action: Action, task: TaskView | None = None) -> bool:
    """Decide whether ``identity`` may perform ``action`` on ``task``."""

    if action is Action.MANAGE_TEACHERS:
        return identity.role is Role.ADMIN
    if action is Action.LIST_TEACHERS:
        return identity.role in (Role.ADMIN, Role.HOD)
    if action is Action.CREATE_TASK:
        return identity.role is Role.HOD
    if action in (Action.UPDATE_TASK_FIELDS, Action.DELETE_TASK):
        return (
            identity.role is Role.HOD and task is not None and task.created_by_id == identity.id
        )
    if action is Action.UPDATE_TASK_STATUS:
        if task is None:
            return False
        return identity.role is Role.HOD or task.assigned_to_id == identity.id
    if action is Action.VIEW_TASK:
        if identity.role in (Role.ADMIN, Role.HOD):
            return True
        return task is not None and task.assigned_to_id == identity.id
    if action is Action.LIST_TASKS:
        return True
    return False


def listing_scope(identity: Identity) -> int | None:
    """Assignee id a task listing is restricted to, or ``None`` for all tasks.

    ADMIN and HOD see the full task set; a TEACHER sees what is assigned to them.
    """

    if identity.role in (Role.ADMIN, Role.HOD):
        return None
    return identity.id


def authorize(identity: Identity, action: Action, task: TaskView | None = None) -> None:
    """Raise the caller-facing error when ``can_perform`` denies."""

    if can_perform(identity, action, task):
        return
    logger.info(
        "Denied %s for user_id=%s role=%s task_id=%s",
        action.value,
        identity.id,
        identity.role.value,
        task.id if task is not None else "-",
    )
    if action is Action.VIEW_TASK:
        raise NotFoundError(task_not_found_message(task.id if task is not None else None))
    raise ForbiddenError(_DENIAL_MESSAGES[action])


def task_not_found_message(task_id: int | None) -> str:
    if task_id is None:
        return "Task not found"
    return f"Task not found: {task_id}"
