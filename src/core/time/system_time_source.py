from datetime import datetime, timezone
from uuid import uuid4

from src.core.time.time_source import IdSource, TimeSource


class SystemTimeSource(TimeSource):
    """
    Production time source backed by the system clock (UTC).
    """
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class UuidIdSource(IdSource):
    """
    Production id source: `<prefix>_<uuid4 hex>`.
    """
    def new_id(self, prefix: str) -> str:
        return f"{prefix}_{uuid4().hex}"
