from dataclasses import dataclass
from typing import Optional

from src.approval.domain.approval_request import ApprovalRequest
from src.core.domain.action import Action
from src.core.domain.exceptions import ActionErrorCode


@dataclass(frozen=True)
class GateDecision:
    """
    Outcome of the approval gate for one action.
    When `proceed` is true, `action` is what must be dispatched
    (approved parameter overrides already merged).
    """
    proceed: bool
    action: Action
    approval_request: Optional[ApprovalRequest] = None
    error_code: Optional[ActionErrorCode] = None
    reason: str = ""

    @classmethod
    def allow(cls, action: Action, request: Optional[ApprovalRequest] = None) -> "GateDecision":
        return cls(proceed=True, action=action, approval_request=request)

    @classmethod
    def block(
            cls,
            action: Action,
            request: ApprovalRequest,
            error_code: ActionErrorCode,
            reason: str,
    ) -> "GateDecision":
        return cls(proceed=False, action=action, approval_request=request, error_code=error_code, reason=reason)
