from datetime import datetime
from typing import Iterable, Sequence

from src.approval.domain.approval_request import ApprovalResponse, ApprovalStatus, ResponseKind


def decide(
        required_approvers: Sequence[str],
        expires_at: datetime,
        responses: Iterable[ApprovalResponse],
        now: datetime,
) -> ApprovalStatus:
    """
    Pure approval decision.

    Expiry wins over everything, including responses recorded before expiry.
    Any reject rejects. Approved once every required approver has approved
    (a modify counts as approve). Otherwise still pending.
    """
    if now > expires_at:
        return ApprovalStatus.EXPIRED

    approved_by = set()
    for response in responses:
        if response.response == ResponseKind.REJECT:
            return ApprovalStatus.REJECTED
        if response.approves:
            approved_by.add(response.user_id)

    if required_approvers and all(user in approved_by for user in required_approvers):
        return ApprovalStatus.APPROVED
    return ApprovalStatus.PENDING
