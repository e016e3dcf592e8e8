from typing import Any, Dict, Optional

import requests

from src.core.domain.action import Action
from src.core.domain.execution_result import ExecutionResult
from src.core.domain.user_context import UserContext
from src.core.interfaces.module_executor import ModuleExecutor
from src.core.serialization import deserialize_result
from src.integration.adapters.webhook.webhook_client import WebhookClient, WebhookExecutorConfig
from src.integration.adapters.webhook.webhook_errors import WebhookResponseError


class WebhookModuleExecutor(ModuleExecutor):
    """
    Executor for third-party modules that run out of process.
    POSTs the action to the module's endpoint and expects a serialized
    ExecutionResult back. Transport failures are raised and turned into
    failed results by the registry.
    """

    def __init__(self, config: WebhookExecutorConfig, session: Optional[requests.Session] = None):
        self.client = WebhookClient(config, session=session)

    def execute(self, action: Action, user_context: UserContext) -> ExecutionResult:
        data = self.client.post(self._build_payload(action, user_context))

        if not isinstance(data.get("actionId"), str) or not isinstance(data.get("success"), bool):
            raise WebhookResponseError(0, "expected 'actionId' and boolean 'success'")
        return deserialize_result(data)

    @staticmethod
    def _build_payload(action: Action, user_context: UserContext) -> Dict[str, Any]:
        context: Dict[str, Any] = {"userId": user_context.user_id}
        if user_context.request_id:
            context["requestId"] = user_context.request_id
        if user_context.current_module:
            context["currentModule"] = user_context.current_module
        return {
            "action": action.operation,
            "parameters": dict(action.parameters),
            "userId": user_context.user_id,
            "context": context,
            "actionId": action.id,
            "requiresApproval": action.requires_approval,
            "reasoning": action.reasoning,
            "affectedUsers": list(action.affected_users),
        }
