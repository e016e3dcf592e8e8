from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from src.core.domain.action import Action


class ApprovalStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self != ApprovalStatus.PENDING


class ResponseKind(Enum):
    APPROVE = "approve"
    REJECT = "reject"
    MODIFY = "modify"  # implicit approve of the overridden parameters


@dataclass(frozen=True)
class ApprovalResponse:
    user_id: str
    response: ResponseKind
    timestamp: datetime
    reasoning: Optional[str] = None
    modifications: Dict[str, Any] = field(default_factory=dict)

    @property
    def approves(self) -> bool:
        return self.response in (ResponseKind.APPROVE, ResponseKind.MODIFY)


@dataclass
class ApprovalRequest:
    """
    Pending human decision over one action.
    Status moves one way only: pending -> approved | rejected | expired.
    Never deleted; terminal requests are kept for audit.
    """
    id: str
    user_id: str  # requester
    action: Action
    reasoning: str
    affected_users: Tuple[str, ...]
    created_at: datetime
    expires_at: datetime
    status: ApprovalStatus = ApprovalStatus.PENDING
    responses: List[ApprovalResponse] = field(default_factory=list)

    @property
    def required_approvers(self) -> Tuple[str, ...]:
        # "Affects only me" actions are confirmed by the requester alone
        return self.affected_users or (self.user_id,)

    def merged_modifications(self) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for response in self.responses:
            if response.response == ResponseKind.MODIFY:
                merged.update(response.modifications)
        return merged

    def effective_action(self) -> Action:
        """The action to dispatch once approved, with `modify` overrides applied in response order."""
        overrides = self.merged_modifications()
        if not overrides:
            return self.action
        return self.action.with_parameters(overrides)
