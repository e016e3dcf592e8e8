import pytest

from src.core.domain.exceptions import ActionErrorCode, InvalidActionError
from src.core.domain.execution_result import ExecutionMetadata, ExecutionResult
from src.core.serialization import (
    deserialize_action,
    deserialize_result,
    serialize_action,
    serialize_result,
)


def test_action_wire_payload_uses_camel_case():
    action = deserialize_action({
        "id": "a2",
        "type": "mutation",
        "module": "chat",
        "operation": "send_message",
        "parameters": {"conversationId": "c1", "content": "hi"},
        "requiresApproval": True,
        "affectedUsers": ["u2"],
        "reasoning": "team update",
    })

    assert action.requires_approval is True
    assert action.affected_users == ("u2",)
    assert serialize_action(action)["requiresApproval"] is True
    assert serialize_action(action)["parameters"] == {"conversationId": "c1", "content": "hi"}


def test_malformed_action_payloads_raise():
    with pytest.raises(InvalidActionError):
        deserialize_action(["not", "a", "mapping"])
    with pytest.raises(InvalidActionError):
        deserialize_action({"id": "a1", "module": "drive", "operation": "x", "parameters": "name=x"})
    with pytest.raises(InvalidActionError):
        deserialize_action({"id": "a1", "module": "drive"})


def test_failed_result_serialization():
    result = ExecutionResult(
        action_id="a3",
        success=False,
        error="No executor found for module: unknown_mod",
        error_code=ActionErrorCode.NO_EXECUTOR_FOUND,
        metadata=ExecutionMetadata(module="unknown_mod", operation="x", execution_time_ms=0.4),
    )

    payload = serialize_result(result)

    assert payload == {
        "actionId": "a3",
        "success": False,
        "error": "No executor found for module: unknown_mod",
        "errorCode": "NO_EXECUTOR_FOUND",
        "metadata": {
            "executionTime": 0.4,
            "module": "unknown_mod",
            "operation": "x",
            "affectedUsers": [],
            "rollbackAvailable": False,
        },
    }
    assert deserialize_result(payload) == result


@pytest.mark.parametrize("field, value", [
    ("requiresApproval", "false"),
    ("requiresApproval", 0),
    ("affectedUsers", "u2"),
    ("affectedUsers", {"u2": True}),
])
def test_loosely_typed_approval_fields_are_rejected(field, value):
    payload = {"id": "a1", "module": "chat", "operation": "send_message", field: value}

    with pytest.raises(InvalidActionError):
        deserialize_action(payload)


def test_unknown_error_code_never_overrides_success():
    result = deserialize_result({"actionId": "a1", "success": True, "result": {"id": "l1"}, "errorCode": "WARN_DUPLICATE"})

    assert result.success is True
    assert result.error_code is None
    assert result.result == {"id": "l1"}


def test_unknown_error_code_on_failure_maps_to_execution_failed():
    result = deserialize_result({"actionId": "a1", "success": False, "error": "boom", "errorCode": "CRM_DOWN"})

    assert result.success is False
    assert result.error_code == ActionErrorCode.EXECUTION_FAILED
    assert result.error == "boom"
