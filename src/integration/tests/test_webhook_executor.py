import pytest
import requests

from src.core.domain.action import Action
from src.core.domain.exceptions import ActionErrorCode
from src.core.domain.user_context import UserContext
from src.integration.adapters.webhook.webhook_client import WebhookExecutorConfig
from src.integration.adapters.webhook.webhook_errors import (
    WebhookNetworkError,
    WebhookResponseError,
    WebhookTimeoutError,
)
from src.integration.adapters.webhook.webhook_executor import WebhookModuleExecutor
from src.integration.registry import ModuleExecutorRegistry

CONFIG = WebhookExecutorConfig(executor_url="https://crm.example.test/execute", api_key="k1", timeout_seconds=5)
ACTION = Action(
    id="a1",
    module="crm",
    operation="create_lead",
    parameters={"name": "ACME"},
    affected_users=("u2",),
    reasoning="new lead from inbox",
)


class _StubResponse:
    def __init__(self, status_code=200, body=None, reason="OK"):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self.reason = reason
        self._body = body

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class _StubSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.requests.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def _executor(session):
    return WebhookModuleExecutor(CONFIG, session=session)


def test_posts_action_and_parses_result():
    session = _StubSession(_StubResponse(body={
        "actionId": "a1",
        "success": True,
        "result": {"leadId": "L1"},
        "metadata": {"executionTime": 12, "module": "crm", "operation": "create_lead"},
    }))

    result = _executor(session).execute(ACTION, UserContext(user_id="u1", request_id="r1"))

    assert result.success is True
    assert result.result == {"leadId": "L1"}
    sent = session.requests[0]
    assert sent["url"] == CONFIG.executor_url
    assert sent["timeout"] == 5
    assert sent["headers"]["Authorization"] == "Bearer k1"
    assert sent["json"] == {
        "action": "create_lead",
        "parameters": {"name": "ACME"},
        "userId": "u1",
        "context": {"userId": "u1", "requestId": "r1"},
        "actionId": "a1",
        "requiresApproval": False,
        "reasoning": "new lead from inbox",
        "affectedUsers": ["u2"],
    }


def test_non_2xx_raises_response_error():
    session = _StubSession(_StubResponse(status_code=500, body={}, reason="Internal Server Error"))

    with pytest.raises(WebhookResponseError) as exc:
        _executor(session).execute(ACTION, UserContext(user_id="u1"))
    assert str(exc.value) == "Webhook executor returned 500: Internal Server Error"


def test_malformed_body_raises_response_error():
    for body in ({"success": True}, {"actionId": "a1", "success": "yes"}, ValueError("not json"), ["a"]):
        with pytest.raises(WebhookResponseError):
            _executor(_StubSession(_StubResponse(body=body))).execute(ACTION, UserContext(user_id="u1"))


def test_timeout_and_network_errors_are_normalized():
    with pytest.raises(WebhookTimeoutError) as exc:
        _executor(_StubSession(error=requests.Timeout())).execute(ACTION, UserContext(user_id="u1"))
    assert str(exc.value) == "Webhook executor timeout after 5s"

    with pytest.raises(WebhookNetworkError):
        _executor(_StubSession(error=requests.ConnectionError("refused"))).execute(
            ACTION, UserContext(user_id="u1")
        )


def test_registry_turns_webhook_failure_into_failed_result():
    registry = ModuleExecutorRegistry()
    registry.register("crm", _executor(_StubSession(error=requests.Timeout())))

    result = registry.execute(ACTION, UserContext(user_id="u1"))

    assert result.success is False
    assert result.error == "Webhook executor timeout after 5s"


def test_config_requires_url():
    with pytest.raises(ValueError):
        WebhookModuleExecutor(WebhookExecutorConfig(executor_url=""))


def test_unrecognised_error_code_does_not_fail_a_successful_call():
    registry = ModuleExecutorRegistry()
    registry.register("crm", _executor(_StubSession(_StubResponse(body={
        "actionId": "a1",
        "success": True,
        "result": {"leadId": "L1"},
        "errorCode": "WARN_DUPLICATE",
    }))))

    result = registry.execute(ACTION, UserContext(user_id="u1"))

    assert result.success is True
    assert result.error_code is None
    assert result.result == {"leadId": "L1"}


def test_remote_failure_without_code_gets_execution_failed():
    registry = ModuleExecutorRegistry()
    registry.register("crm", _executor(_StubSession(_StubResponse(body={
        "actionId": "a1",
        "success": False,
        "error": "lead exists",
    }))))

    result = registry.execute(ACTION, UserContext(user_id="u1"))

    assert result.success is False
    assert result.error == "lead exists"
    assert result.error_code == ActionErrorCode.EXECUTION_FAILED
