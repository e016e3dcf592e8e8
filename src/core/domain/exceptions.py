from enum import Enum


class ActionErrorCode(Enum):
    """
    Categorizes why an action did not produce a successful result.
    Carried on every failed ExecutionResult.
    """
    NO_EXECUTOR_FOUND = "NO_EXECUTOR_FOUND"  # module/operation unresolved
    MISSING_PARAMETER = "MISSING_PARAMETER"  # reasoning-layer bug, not retried
    ACTION_REQUIRES_APPROVAL = "ACTION_REQUIRES_APPROVAL"  # control flow, not an error state
    APPROVAL_REJECTED = "APPROVAL_REJECTED"
    APPROVAL_EXPIRED = "APPROVAL_EXPIRED"
    EXECUTION_FAILED = "EXECUTION_FAILED"  # module-reported or executor crash
    EXECUTION_IN_PROGRESS = "EXECUTION_IN_PROGRESS"
    NO_ROLLBACK_PLAN_FOUND = "NO_ROLLBACK_PLAN_FOUND"


class InvalidActionError(ValueError):
    """Raised for a malformed action (programmer error). Aborts the whole batch."""
    pass


class ExecutorRegistrationError(ValueError):
    """Raised when an executor registration is rejected."""
    pass
