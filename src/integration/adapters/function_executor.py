from typing import Any, Callable

from src.core.domain.action import Action
from src.core.domain.execution_result import ExecutionResult
from src.core.domain.user_context import UserContext
from src.core.interfaces.module_executor import ModuleExecutor
from src.integration.normalizer import ResultNormalizer


class FunctionExecutor(ModuleExecutor):
    """
    Wraps a plain callable as an executor for in-process runtime registration.
    The callable may return a full ExecutionResult or just a payload, which
    is taken as a successful result.
    """

    def __init__(self, fn: Callable[[Action, UserContext], Any]):
        if not callable(fn):
            raise TypeError("FunctionExecutor requires a callable")
        self.fn = fn

    def execute(self, action: Action, user_context: UserContext) -> ExecutionResult:
        outcome = self.fn(action, user_context)
        if isinstance(outcome, ExecutionResult):
            return outcome
        return ResultNormalizer.success(action, outcome)
