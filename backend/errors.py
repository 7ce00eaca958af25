# errors.py - Error taxonomy for the task manager core
# Services raise these; main.py maps them onto HTTP responses.

from typing import Optional


class TaskManagerError(Exception):
    """Base class for every domain error the core raises"""

    http_status = 400
    code = "task_manager_error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def __str__(self) -> str:
        return self.message


class AuthenticationError(TaskManagerError):
    http_status = 401
    code = "unauthenticated"


class AuthorizationError(TaskManagerError):
    http_status = 403
    code = "forbidden"


class NotFoundError(TaskManagerError):
    http_status = 404
    code = "not_found"


class ValidationError(TaskManagerError):
    http_status = 400
    code = "validation_error"


class InvariantViolation(TaskManagerError):
    """A mutation would break a data invariant (assignee floor, archived task)"""
    http_status = 409
    code = "invariant_violation"
