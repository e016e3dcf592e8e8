import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class StructuredRuntimeLogger:
    """
    JSON-lines logger for orchestration, approval and rollback paths.
    One object per line: timestamp, event_type and the supplied fields.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger("runtime")

    def emit(self, event_type: str, **fields: Any) -> None:
        self._logger.info(self._render(event_type, fields))

    def alarm(self, event_type: str, **fields: Any) -> None:
        """Same shape as `emit`, logged at ERROR so alerting can key on it."""
        self._logger.error(self._render(event_type, fields))

    @staticmethod
    def _render(event_type: str, fields: Dict[str, Any]) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
        }
        payload.update(fields)
        return json.dumps(payload, default=str, ensure_ascii=True)
