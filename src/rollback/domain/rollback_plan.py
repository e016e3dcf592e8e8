from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

DEFAULT_ROLLBACK_TIMEOUT_MINUTES = 60


@dataclass(frozen=True)
class ResultRef:
    """Placeholder for a value only known after the forward action succeeds."""
    key: str


@dataclass(frozen=True)
class RollbackStep:
    module: str
    operation: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    order: int = 0

    @property
    def unresolved(self) -> Tuple[str, ...]:
        return tuple(name for name, value in self.parameters.items() if isinstance(value, ResultRef))


@dataclass(frozen=True)
class RollbackPlan:
    """
    Compensating steps for one executed action.
    Steps run in descending `order`; an empty plan means nothing to undo.
    """
    steps: Tuple[RollbackStep, ...] = ()
    conditions: Tuple[str, ...] = ()
    timeout: int = DEFAULT_ROLLBACK_TIMEOUT_MINUTES  # minutes
    expires_at: Optional[datetime] = None

    @property
    def is_empty(self) -> bool:
        return not self.steps

    def ordered_steps(self) -> Tuple[RollbackStep, ...]:
        return tuple(sorted(self.steps, key=lambda step: step.order, reverse=True))

    def bind(self, result: Any) -> "RollbackPlan":
        """
        Resolve ResultRef placeholders from the forward result payload.
        Refs the payload cannot satisfy are dropped.
        """
        payload: Mapping[str, Any] = result if isinstance(result, Mapping) else {}
        bound = []
        for step in self.steps:
            parameters = {}
            for name, value in step.parameters.items():
                if isinstance(value, ResultRef):
                    if value.key not in payload:
                        continue
                    value = payload[value.key]
                parameters[name] = value
            bound.append(replace(step, parameters=parameters))
        return replace(self, steps=tuple(bound))

    def retained_until(self, expires_at: datetime) -> "RollbackPlan":
        return replace(self, expires_at=expires_at)
