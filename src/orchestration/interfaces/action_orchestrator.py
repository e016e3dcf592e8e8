from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from src.approval.domain.approval_request import ApprovalRequest, ResponseKind
from src.core.domain.action import Action
from src.core.domain.execution_result import ExecutionResult
from src.core.domain.user_context import UserContext


class ActionOrchestrator(ABC):
    """
    Entry point for the upstream reasoning layer.
    Execution calls always return results; they never raise for
    per-action failures.
    """

    @abstractmethod
    def execute_actions(self, actions: Sequence[Action], user_context: UserContext) -> List[ExecutionResult]:
        pass

    @abstractmethod
    def execute_action(self, action: Action, user_context: UserContext) -> ExecutionResult:
        pass

    @abstractmethod
    def rollback(self, action_id: str, user_context: UserContext) -> ExecutionResult:
        pass

    @abstractmethod
    def rollback_available(self, action_id: str) -> bool:
        pass

    @abstractmethod
    def pending_approvals(self, user_id: str) -> List[ApprovalRequest]:
        pass

    @abstractmethod
    def respond_to_approval(
            self,
            request_id: str,
            user_id: str,
            response: ResponseKind,
            reasoning: Optional[str] = None,
            modifications: Optional[Dict[str, Any]] = None,
    ) -> ApprovalRequest:
        pass

    @abstractmethod
    def purge_expired(self) -> int:
        """Housekeeping: drop lapsed rollback plans and execution records."""
        pass
