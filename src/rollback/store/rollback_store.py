from abc import ABC, abstractmethod
from datetime import datetime
from threading import Lock
from typing import Dict, Optional

from src.core.time.time_source import TimeSource
from src.rollback.domain.rollback_plan import RollbackPlan


class RollbackStore(ABC):
    """
    Rollback plans keyed by action id.

    A plan is `put` before dispatch without an expiry (not yet available),
    then either `retain`ed with an expiry after success or `discard`ed.
    Expired plans are invisible to `get` and `has`.
    """

    @abstractmethod
    def put(self, action_id: str, plan: RollbackPlan) -> None:
        pass

    @abstractmethod
    def retain(self, action_id: str, plan: RollbackPlan, expires_at: datetime) -> None:
        pass

    @abstractmethod
    def get(self, action_id: str) -> Optional[RollbackPlan]:
        pass

    @abstractmethod
    def has(self, action_id: str) -> bool:
        pass

    @abstractmethod
    def peek(self, action_id: str) -> Optional[RollbackPlan]:
        """Any stored plan, including one recorded before dispatch and not yet retained."""
        pass

    @abstractmethod
    def take(self, action_id: str) -> Optional[RollbackPlan]:
        """Atomically fetch and remove a retained plan."""
        pass

    @abstractmethod
    def discard(self, action_id: str) -> None:
        pass

    @abstractmethod
    def purge_expired(self) -> int:
        pass


class InMemoryRollbackStore(RollbackStore):
    def __init__(self, time_source: TimeSource):
        self.time_source = time_source
        self._plans: Dict[str, RollbackPlan] = {}
        self._lock = Lock()

    def put(self, action_id: str, plan: RollbackPlan) -> None:
        with self._lock:
            self._plans[action_id] = plan

    def retain(self, action_id: str, plan: RollbackPlan, expires_at: datetime) -> None:
        with self._lock:
            self._plans[action_id] = plan.retained_until(expires_at)

    def get(self, action_id: str) -> Optional[RollbackPlan]:
        with self._lock:
            return self._live(action_id)

    def has(self, action_id: str) -> bool:
        return self.get(action_id) is not None

    def peek(self, action_id: str) -> Optional[RollbackPlan]:
        with self._lock:
            return self._plans.get(action_id)

    def take(self, action_id: str) -> Optional[RollbackPlan]:
        with self._lock:
            plan = self._live(action_id)
            if plan is not None:
                del self._plans[action_id]
            return plan

    def discard(self, action_id: str) -> None:
        with self._lock:
            self._plans.pop(action_id, None)

    def purge_expired(self) -> int:
        now = self.time_source.now()
        with self._lock:
            expired = [k for k, p in self._plans.items() if p.expires_at is not None and now >= p.expires_at]
            for action_id in expired:
                del self._plans[action_id]
        return len(expired)

    def _live(self, action_id: str) -> Optional[RollbackPlan]:
        plan = self._plans.get(action_id)
        if plan is None or plan.expires_at is None:
            return None
        if self.time_source.now() >= plan.expires_at:
            del self._plans[action_id]
            return None
        return plan
