from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class ModuleWriteResult:
    """
    What a module's write endpoint reports back.
    `data` is module specific; `error` is surfaced verbatim on failure.
    """
    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


class ModuleService(ABC):
    """
    Service-layer write path of one business module.
    The module owns validation, permissions and persistence; the engine
    only supplies the operation, raw parameters and the acting user.
    """
    @abstractmethod
    def execute(self, operation: str, parameters: Mapping[str, Any], acting_user_id: str) -> ModuleWriteResult:
        pass
