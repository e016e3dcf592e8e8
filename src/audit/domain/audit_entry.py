from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class AuditEntry:
    """One recorded execution attempt, forward or rollback."""
    action_id: str
    user_id: str
    success: bool
    module: str
    operation: str
    execution_time_ms: float
    recorded_at: datetime
    request_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
