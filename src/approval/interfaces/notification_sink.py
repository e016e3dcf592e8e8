from abc import ABC, abstractmethod

from src.approval.domain.approval_request import ApprovalRequest


class NotificationSink(ABC):
    """
    Delivers an approval request to every required approver.
    Delivery failure must not abort approval-request creation.
    """
    @abstractmethod
    def notify(self, request: ApprovalRequest) -> None:
        pass
