from typing import Any, Optional

from src.core.domain.action import Action
from src.core.domain.exceptions import ActionErrorCode
from src.core.domain.execution_result import ExecutionMetadata, ExecutionResult
from src.core.interfaces.module_service import ModuleWriteResult


class ResultNormalizer:
    """
    Normalizes executor and module outcomes into canonical ExecutionResult objects.
    Timing and rollback availability are stamped later by the orchestrator.
    """

    @staticmethod
    def _metadata(action: Action) -> ExecutionMetadata:
        return ExecutionMetadata(
            module=action.module,
            operation=action.operation,
            affected_users=action.affected_users,
        )

    @staticmethod
    def success(action: Action, result: Any = None) -> ExecutionResult:
        return ExecutionResult(
            action_id=action.id,
            success=True,
            result=result,
            metadata=ResultNormalizer._metadata(action),
        )

    @staticmethod
    def failure(
            action: Action,
            error: str,
            error_code: ActionErrorCode = ActionErrorCode.EXECUTION_FAILED,
            result: Any = None,
    ) -> ExecutionResult:
        return ExecutionResult(
            action_id=action.id,
            success=False,
            result=result,
            error=error,
            error_code=error_code,
            metadata=ResultNormalizer._metadata(action),
        )

    @staticmethod
    def from_module(action: Action, write: ModuleWriteResult, captured: Optional[dict] = None) -> ExecutionResult:
        """
        Module-reported failures are surfaced verbatim.
        `captured` is pre-execution state the executor attached for compensation.
        """
        if not write.success:
            return ResultNormalizer.failure(
                action,
                write.error or f"{action.module}.{action.operation} failed",
                ActionErrorCode.EXECUTION_FAILED,
            )
        payload = dict(write.data or {})
        if captured:
            payload.update(captured)
        return ResultNormalizer.success(action, payload)
