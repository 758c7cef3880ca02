"""Error taxonomy shared by the core and the CLI surface."""

from __future__ import annotations

from typing import Any


class HodTasksError(Exception):
    """Base error with a stable machine-checkable kind."""

    kind = "error"
    exit_code = 1

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class ValidationError(HodTasksError):
    """Malformed or missing input."""

    kind = "validation"
    exit_code = 2


class UnauthenticatedError(HodTasksError):
    """Missing, unknown or invalid credential."""

    kind = "unauthenticated"
    exit_code = 3


class ForbiddenError(HodTasksError):
    """Entity exists but the actor lacks rights on it."""

    kind = "forbidden"
    exit_code = 4


class NotFoundError(HodTasksError):
    """Entity absent, or hidden from the actor."""

    kind = "not_found"
    exit_code = 5


class ConflictError(HodTasksError):
    """Operation would break a uniqueness or reference invariant."""

    kind = "conflict"
    exit_code = 6

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload.update(self.details)
        return payload


class HodAlreadyAssignedError(ConflictError):
    """A second HOD was requested while one already exists."""

    def __init__(self, *, current_hod_id: int, current_hod_name: str, current_hod_email: str):
        super().__init__(
            "There is already an HOD assigned "
            f"({current_hod_name} <{current_hod_email}>, id={current_hod_id}). "
            "Please remove the current HOD first.",
            details={
                "current_hod": {
                    "id": current_hod_id,
                    "name": current_hod_name,
                    "email": current_hod_email,
                },
            },
        )
        self.current_hod_id = current_hod_id
        self.current_hod_name = current_hod_name
        self.current_hod_email = current_hod_email
