from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from threading import Lock
from typing import Dict, Optional

from src.core.domain.execution_result import ExecutionResult
from src.core.time.time_source import TimeSource

DEFAULT_RECORD_RETENTION = timedelta(hours=24)


class ExecutionState(Enum):
    NEW = "new"
    IN_PROGRESS = "in_progress"
    DONE = "done"


@dataclass(frozen=True)
class ExecutionRecord:
    action_id: str
    state: ExecutionState
    updated_at: datetime
    result: Optional[ExecutionResult] = None
    # Set once DONE; the record is forgotten from then on
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class ExecutionRecordStore(ABC):
    """
    Per-action-id dispatch record.
    `begin` claims the id atomically; only a NEW claim may dispatch.
    Completed records are kept for a retention window, after which the
    id counts as never seen.
    """

    @abstractmethod
    def begin(self, action_id: str) -> ExecutionState:
        pass

    @abstractmethod
    def complete(self, action_id: str, result: ExecutionResult) -> None:
        pass

    @abstractmethod
    def clear_in_progress(self, action_id: str) -> None:
        pass

    @abstractmethod
    def get(self, action_id: str) -> Optional[ExecutionRecord]:
        pass

    @abstractmethod
    def purge_expired(self) -> int:
        """Drop completed records past retention. Returns how many were removed."""
        pass


class InMemoryExecutionRecordStore(ExecutionRecordStore):
    def __init__(self, time_source: TimeSource, retention: timedelta = DEFAULT_RECORD_RETENTION):
        self.time_source = time_source
        self.retention = retention
        self._records: Dict[str, ExecutionRecord] = {}
        self._lock = Lock()

    def begin(self, action_id: str) -> ExecutionState:
        with self._lock:
            now = self.time_source.now()
            record = self._live(action_id, now)
            if not record:
                self._records[action_id] = ExecutionRecord(
                    action_id=action_id,
                    state=ExecutionState.IN_PROGRESS,
                    updated_at=now,
                )
                return ExecutionState.NEW
            return record.state

    def complete(self, action_id: str, result: ExecutionResult) -> None:
        with self._lock:
            now = self.time_source.now()
            self._records[action_id] = ExecutionRecord(
                action_id=action_id,
                state=ExecutionState.DONE,
                updated_at=now,
                result=result,
                expires_at=now + self.retention,
            )

    def clear_in_progress(self, action_id: str) -> None:
        with self._lock:
            record = self._records.get(action_id)
            if record and record.state == ExecutionState.IN_PROGRESS:
                del self._records[action_id]

    def get(self, action_id: str) -> Optional[ExecutionRecord]:
        with self._lock:
            return self._live(action_id, self.time_source.now())

    def purge_expired(self) -> int:
        with self._lock:
            now = self.time_source.now()
            expired = [key for key, record in self._records.items() if record.is_expired(now)]
            for key in expired:
                del self._records[key]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _live(self, action_id: str, now: datetime) -> Optional[ExecutionRecord]:
        record = self._records.get(action_id)
        if record and record.is_expired(now):
            del self._records[action_id]
            return None
        return record
