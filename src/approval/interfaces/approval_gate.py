from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from src.approval.domain.approval_request import ApprovalRequest, ResponseKind
from src.approval.domain.gate_decision import GateDecision
from src.core.domain.action import Action
from src.core.domain.user_context import UserContext


class ApprovalGate(ABC):
    """
    Decides whether an action may proceed now or must wait for human responses.
    """
    @abstractmethod
    def evaluate(self, action: Action, user_context: UserContext) -> GateDecision:
        pass

    @abstractmethod
    def respond(
            self,
            request_id: str,
            user_id: str,
            response: ResponseKind,
            reasoning: Optional[str] = None,
            modifications: Optional[Dict[str, Any]] = None,
    ) -> ApprovalRequest:
        pass

    @abstractmethod
    def get_request(self, request_id: str) -> Optional[ApprovalRequest]:
        pass

    @abstractmethod
    def find_for_action(self, action_id: str) -> Optional[ApprovalRequest]:
        pass

    @abstractmethod
    def list_pending(self, user_id: str) -> List[ApprovalRequest]:
        pass
