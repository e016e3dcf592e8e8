from abc import ABC, abstractmethod

from src.core.domain.execution_result import ExecutionResult
from src.core.domain.user_context import UserContext


class AuditSink(ABC):
    """
    Receives one record per execution attempt (forward or rollback).
    Callers treat it as fire-and-forget: failures are logged, never surfaced.
    """
    @abstractmethod
    def record(self, action_id: str, result: ExecutionResult, user_context: UserContext) -> None:
        pass
