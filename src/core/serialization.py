from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from src.core.domain.action import Action
from src.core.domain.exceptions import ActionErrorCode, InvalidActionError
from src.core.domain.execution_result import ExecutionMetadata, ExecutionResult


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (dict, MappingProxyType)):
        return {str(k): _serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_serialize(v) for v in value]
    return value


def serialize_action(action: Action) -> Dict[str, Any]:
    """Upstream wire shape (camelCase keys)."""
    return {
        "id": action.id,
        "type": action.type,
        "module": action.module,
        "operation": action.operation,
        "parameters": _serialize(action.parameters),
        "requiresApproval": action.requires_approval,
        "affectedUsers": list(action.affected_users),
        "reasoning": action.reasoning,
    }


def deserialize_action(data: Mapping[str, Any]) -> Action:
    if not isinstance(data, Mapping):
        raise InvalidActionError(f"Action payload must be a mapping, got {type(data).__name__}")
    parameters = data.get("parameters") or {}
    if not isinstance(parameters, Mapping):
        raise InvalidActionError("Action.parameters must be a mapping")
    requires_approval = data.get("requiresApproval", False)
    if not isinstance(requires_approval, bool):
        raise InvalidActionError("Action.requiresApproval must be a boolean")
    affected_users = data.get("affectedUsers") or []
    if not isinstance(affected_users, (list, tuple)):
        raise InvalidActionError("Action.affectedUsers must be a list of user ids")
    return Action(
        id=data.get("id", ""),
        type=data.get("type", "mutation"),
        module=data.get("module", ""),
        operation=data.get("operation", ""),
        parameters=dict(parameters),
        requires_approval=requires_approval,
        affected_users=tuple(affected_users),
        reasoning=data.get("reasoning", ""),
    )


def serialize_result(result: ExecutionResult) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "actionId": result.action_id,
        "success": result.success,
        "metadata": {
            "executionTime": result.metadata.execution_time_ms,
            "module": result.metadata.module,
            "operation": result.metadata.operation,
            "affectedUsers": list(result.metadata.affected_users),
            "rollbackAvailable": result.metadata.rollback_available,
        },
    }
    if result.result is not None:
        payload["result"] = _serialize(result.result)
    if result.error is not None:
        payload["error"] = result.error
    if result.error_code is not None:
        payload["errorCode"] = result.error_code.value
    return payload


def _error_code(value: Any, success: bool) -> Optional[ActionErrorCode]:
    """
    Maps a wire error code. Codes outside the taxonomy never change the
    outcome: ignored on success, EXECUTION_FAILED on failure.
    """
    if success:
        return None
    try:
        return ActionErrorCode(value)
    except ValueError:
        return ActionErrorCode.EXECUTION_FAILED


def deserialize_result(data: Mapping[str, Any]) -> ExecutionResult:
    metadata = data.get("metadata") or {}
    success = bool(data["success"])
    return ExecutionResult(
        action_id=str(data["actionId"]),
        success=success,
        result=data.get("result"),
        error=data.get("error"),
        error_code=_error_code(data.get("errorCode"), success),
        metadata=ExecutionMetadata(
            module=metadata.get("module", ""),
            operation=metadata.get("operation", ""),
            execution_time_ms=float(metadata.get("executionTime", 0.0)),
            affected_users=tuple(metadata.get("affectedUsers") or ()),
            rollback_available=bool(metadata.get("rollbackAvailable", False)),
        ),
    )
