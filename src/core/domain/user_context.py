from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class UserContext:
    """
    Acting identity handed to executors.
    Modules translate it into their own permission checks.
    """
    user_id: str
    request_id: Optional[str] = None
    current_module: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
