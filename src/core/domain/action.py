from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Tuple

from src.core.domain.exceptions import InvalidActionError


def _unique(users: Iterable[str]) -> Tuple[str, ...]:
    seen = []
    for user in users:
        if user not in seen:
            seen.append(user)
    return tuple(seen)


@dataclass(frozen=True)
class Action:
    """
    Immutable description of a proposed mutation against one business module.
    Produced by the upstream reasoning layer; never persisted directly,
    only its execution results are.
    """
    id: str
    module: str
    operation: str
    parameters: Mapping[str, Any] = field(default_factory=dict)
    type: str = "mutation"
    requires_approval: bool = False
    affected_users: Tuple[str, ...] = ()
    reasoning: str = ""

    def __post_init__(self):
        for name in ("id", "module", "operation"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise InvalidActionError(f"Action.{name} must be a non-empty string")
        if not isinstance(self.requires_approval, bool):
            raise InvalidActionError("Action.requires_approval must be a boolean")
        if isinstance(self.affected_users, (str, bytes)):
            raise InvalidActionError("Action.affected_users must be a sequence of user ids, not a string")
        try:
            users = tuple(self.affected_users or ())
        except TypeError:
            users = None
        if users is None or not all(isinstance(user, str) and user for user in users):
            raise InvalidActionError("Action.affected_users must be a sequence of user ids")
        # Read-only view so executors cannot mutate the caller's action
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters or {})))
        object.__setattr__(self, "affected_users", _unique(users))

    def with_parameters(self, overrides: Mapping[str, Any]) -> "Action":
        merged = dict(self.parameters)
        merged.update(overrides)
        return replace(self, parameters=merged)
