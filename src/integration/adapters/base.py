import logging
from abc import ABC
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Tuple

from src.core.domain.action import Action
from src.core.domain.exceptions import ActionErrorCode
from src.core.domain.execution_result import ExecutionResult
from src.core.domain.user_context import UserContext
from src.core.interfaces.module_executor import ModuleExecutor
from src.core.interfaces.module_service import ModuleService
from src.integration.normalizer import ResultNormalizer

logger = logging.getLogger(__name__)


def _present(parameters: Mapping[str, Any], name: str) -> bool:
    value = parameters.get(name)
    return value is not None and value != ""


@dataclass(frozen=True)
class OperationSpec:
    required: Tuple[str, ...] = ()
    # At least one group must be fully present, e.g. (("taskId", "newPriority"), ("suggestions",))
    any_of: Tuple[Tuple[str, ...], ...] = ()

    def missing(self, parameters: Mapping[str, Any]) -> List[str]:
        missing = [name for name in self.required if not _present(parameters, name)]
        if self.any_of and not any(all(_present(parameters, n) for n in group) for group in self.any_of):
            missing.append(" or ".join("+".join(group) for group in self.any_of))
        return missing


class BuiltinModuleExecutor(ModuleExecutor, ABC):
    """
    Base class for in-process executors of the built-in business modules.
    Checks the operation and its required parameters, then delegates the
    write to the module's service.
    """

    module_key: str = ""
    operations: Dict[str, OperationSpec] = {}

    def __init__(self, service: ModuleService):
        self.service = service

    def supports(self, operation: str) -> bool:
        return operation in self.operations

    def execute(self, action: Action, user_context: UserContext) -> ExecutionResult:
        spec = self.operations.get(action.operation)
        if spec is None:
            return ResultNormalizer.failure(
                action,
                f"Unknown {self.module_key} operation: {action.operation}",
                ActionErrorCode.NO_EXECUTOR_FOUND,
            )

        missing = spec.missing(action.parameters)
        if missing:
            return ResultNormalizer.failure(
                action,
                f"Missing required parameter(s) for {self.module_key}.{action.operation}: {', '.join(missing)}",
                ActionErrorCode.MISSING_PARAMETER,
            )

        parameters = self.prepare(action, user_context)
        captured = self.capture(action.operation, parameters, user_context)
        write = self.service.execute(action.operation, parameters, user_context.user_id)
        return ResultNormalizer.from_module(action, write, captured)

    def prepare(self, action: Action, user_context: UserContext) -> Dict[str, Any]:
        """Hook for defaulting parameters from the acting user."""
        return dict(action.parameters)

    def capture(self, operation: str, parameters: Dict[str, Any], user_context: UserContext) -> Dict[str, Any]:
        """
        Hook for reading pre-execution state that compensation needs
        (previous parent folder, previous priority). Merged into the result payload.
        """
        return {}

    def _read(self, operation: str, parameters: Dict[str, Any], user_context: UserContext) -> Dict[str, Any]:
        read = self.service.execute(operation, parameters, user_context.user_id)
        if not read.success:
            logger.warning(
                "%s.%s could not capture prior state: %s", self.module_key, operation, read.error
            )
            return {}
        return dict(read.data or {})
