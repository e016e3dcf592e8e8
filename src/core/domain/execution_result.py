from dataclasses import dataclass, replace
from typing import Any, Optional, Tuple

from src.core.domain.exceptions import ActionErrorCode


@dataclass(frozen=True)
class ExecutionMetadata:
    module: str
    operation: str
    execution_time_ms: float = 0.0
    affected_users: Tuple[str, ...] = ()
    # True iff a rollback plan for the action is currently retained
    rollback_available: bool = False


@dataclass(frozen=True)
class ExecutionResult:
    """
    Uniform outcome of one execution attempt of one action,
    regardless of which executor ran it.
    """
    action_id: str
    success: bool
    metadata: ExecutionMetadata
    result: Any = None
    error: Optional[str] = None
    error_code: Optional[ActionErrorCode] = None

    @property
    def is_pending_approval(self) -> bool:
        return self.error_code == ActionErrorCode.ACTION_REQUIRES_APPROVAL

    def with_metadata(self, **changes: Any) -> "ExecutionResult":
        return replace(self, metadata=replace(self.metadata, **changes))
