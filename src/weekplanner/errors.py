"""Error taxonomy for meal planning operations."""

from typing import Any


class PlannerError(Exception):
    """Base exception for meal planning errors."""

    status_code: int = 500

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(PlannerError):
    """Raised for malformed input: bad slot keys, servings < 1, missing metadata."""

    status_code = 422


class NotFoundError(PlannerError):
    """Raised when a meal plan or template id does not exist."""

    status_code = 404


class OrphanedReferenceError(PlannerError):
    """Raised when a meal plan points at a template that no longer exists."""

    status_code = 409

    def __init__(self, message: str, template_id: str, plan_id: str | None = None):
        super().__init__(message, details={"template_id": template_id, "plan_id": plan_id})
        self.template_id = template_id
        self.plan_id = plan_id


class ConflictError(PlannerError):
    """Raised when an operation would create a second plan for an occupied week."""

    status_code = 409


class StaleWriteError(ConflictError):
    """Raised when a write carries a plan version older than the stored one."""

    def __init__(self, plan_id: str, expected_version: int, actual_version: int):
        super().__init__(
            f"Meal plan {plan_id} is at version {actual_version}, "
            f"write was based on version {expected_version}",
            details={"expected_version": expected_version, "actual_version": actual_version},
        )
        self.plan_id = plan_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class TransientIOError(PlannerError):
    """Raised when network or storage fails during persistence or lookups."""

    status_code = 503
