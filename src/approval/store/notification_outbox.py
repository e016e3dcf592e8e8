from collections import defaultdict
from threading import Lock
from typing import Dict, List

from src.approval.domain.approval_request import ApprovalRequest
from src.approval.interfaces.notification_sink import NotificationSink


class InMemoryNotificationSink(NotificationSink):
    """
    Per-user outbox of approval requests awaiting a response.
    Each required approver receives one entry per request.
    """

    def __init__(self):
        self._outbox: Dict[str, List[ApprovalRequest]] = defaultdict(list)
        self._lock = Lock()

    def notify(self, request: ApprovalRequest) -> None:
        with self._lock:
            for user_id in request.required_approvers:
                self._outbox[user_id].append(request)

    def notifications_for(self, user_id: str) -> List[ApprovalRequest]:
        with self._lock:
            return list(self._outbox.get(user_id, []))

    def drain(self, user_id: str) -> List[ApprovalRequest]:
        with self._lock:
            return self._outbox.pop(user_id, [])
