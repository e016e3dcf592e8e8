from abc import ABC, abstractmethod
from datetime import datetime


class TimeSource(ABC):
    """
    Abstract source of time for approval expiry and rollback retention.
    Implementations must return timezone-aware UTC datetimes.
    """
    @abstractmethod
    def now(self) -> datetime:
        pass


class IdSource(ABC):
    """
    Abstract source of identifiers for approval requests.
    """
    @abstractmethod
    def new_id(self, prefix: str) -> str:
        pass
