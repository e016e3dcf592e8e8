import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from src.approval.domain.approval_request import (
    ApprovalRequest,
    ApprovalResponse,
    ApprovalStatus,
    ResponseKind,
)
from src.approval.domain.gate_decision import GateDecision
from src.approval.interfaces.approval_gate import ApprovalGate
from src.approval.interfaces.notification_sink import NotificationSink
from src.approval.store.approval_store import ApprovalStore
from src.core.domain.action import Action
from src.core.domain.exceptions import ActionErrorCode
from src.core.domain.user_context import UserContext
from src.core.logging.structured_runtime_logger import StructuredRuntimeLogger
from src.core.time.time_source import IdSource, TimeSource

logger = logging.getLogger(__name__)

DEFAULT_APPROVAL_TTL = timedelta(hours=24)

_BLOCKED_REASONS = {
    ApprovalStatus.PENDING: (ActionErrorCode.ACTION_REQUIRES_APPROVAL, "Action requires approval"),
    ApprovalStatus.REJECTED: (ActionErrorCode.APPROVAL_REJECTED, "Action approval was rejected"),
    ApprovalStatus.EXPIRED: (ActionErrorCode.APPROVAL_EXPIRED, "Action approval request expired"),
}


class StandardApprovalGate(ApprovalGate):
    """
    Approval state machine with lazy expiry.

    Expiry is computed from the injected clock whenever a request is read or
    decided; there is no background sweeper. Resubmitting an action with the
    same id resumes it: once its request is approved the gate lets it through
    with any `modify` overrides merged.
    """

    def __init__(
            self,
            store: ApprovalStore,
            notification_sink: NotificationSink,
            time_source: TimeSource,
            id_source: IdSource,
            ttl: timedelta = DEFAULT_APPROVAL_TTL,
            structured_logger: Optional[StructuredRuntimeLogger] = None,
    ):
        self.store = store
        self.notification_sink = notification_sink
        self.time_source = time_source
        self.id_source = id_source
        self.ttl = ttl
        self.structured_logger = structured_logger or StructuredRuntimeLogger()

    def evaluate(self, action: Action, user_context: UserContext) -> GateDecision:
        if not action.requires_approval:
            return GateDecision.allow(action)

        existing = self.store.find_by_action(action.id)
        if existing is None:
            request = self._open_request(action, user_context)
            code, reason = _BLOCKED_REASONS[ApprovalStatus.PENDING]
            return GateDecision.block(action, request, code, reason)

        request = self._refresh(existing)
        if request.status == ApprovalStatus.APPROVED:
            return GateDecision.allow(request.effective_action(), request)

        code, reason = _BLOCKED_REASONS[request.status]
        return GateDecision.block(action, request, code, reason)

    def respond(
            self,
            request_id: str,
            user_id: str,
            response: ResponseKind,
            reasoning: Optional[str] = None,
            modifications: Optional[Dict[str, Any]] = None,
    ) -> ApprovalRequest:
        now = self.time_source.now()
        # Read, append and decide happen atomically in the store
        request = self.store.append_response(
            request_id,
            ApprovalResponse(
                user_id=user_id,
                response=response,
                timestamp=now,
                reasoning=reasoning,
                modifications=dict(modifications or {}),
            ),
            now,
        )

        self.structured_logger.emit(
            "approval_responded",
            approval_request_id=request.id,
            action_id=request.action.id,
            user_id=user_id,
            response=response.value,
            status=request.status.value,
        )
        return request

    def get_request(self, request_id: str) -> Optional[ApprovalRequest]:
        request = self.store.get(request_id)
        return self._refresh(request) if request else None

    def find_for_action(self, action_id: str) -> Optional[ApprovalRequest]:
        request = self.store.find_by_action(action_id)
        return self._refresh(request) if request else None

    def list_pending(self, user_id: str) -> List[ApprovalRequest]:
        pending = []
        for request in self.store.list_pending_for_approver(user_id):
            request = self._refresh(request)
            if request.status == ApprovalStatus.PENDING:
                pending.append(request)
        return pending

    def _open_request(self, action: Action, user_context: UserContext) -> ApprovalRequest:
        now = self.time_source.now()
        request = ApprovalRequest(
            id=self.id_source.new_id("approval"),
            user_id=user_context.user_id,
            action=action,
            reasoning=action.reasoning,
            affected_users=action.affected_users,
            created_at=now,
            expires_at=now + self.ttl,
        )
        self.store.save(request)
        self.structured_logger.emit(
            "approval_requested",
            approval_request_id=request.id,
            action_id=action.id,
            module=action.module,
            operation=action.operation,
            approvers=list(request.required_approvers),
            expires_at=request.expires_at,
        )

        try:
            self.notification_sink.notify(request)
        except Exception as e:
            logger.exception("Notification delivery failed for approval request %s", request.id)
            self.structured_logger.alarm(
                "notification_sink_failure",
                approval_request_id=request.id,
                action_id=action.id,
                error=str(e),
            )
        return request

    def _refresh(self, request: ApprovalRequest) -> ApprovalRequest:
        """Apply lazy expiry / decision to a pending request. Terminal states are never left."""
        if request.status.is_terminal:
            return request
        return self.store.refresh_status(request.id, self.time_source.now()) or request
