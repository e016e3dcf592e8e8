from abc import ABC, abstractmethod

from src.core.domain.action import Action
from src.core.domain.execution_result import ExecutionResult
from src.core.domain.user_context import UserContext


class ModuleExecutor(ABC):
    """
    Strategy that knows how to perform an action's operation against its owning module.
    Registered per module key; third-party executors override built-ins.
    """
    @abstractmethod
    def execute(self, action: Action, user_context: UserContext) -> ExecutionResult:
        """
        Perform the action and return a normalized result.
        Exceptions are tolerated: the registry converts them into failed results.
        """
        pass
