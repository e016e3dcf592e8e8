from datetime import datetime, timedelta

from src.core.time.time_source import IdSource, TimeSource


class FrozenTimeSource(TimeSource):
    """
    Test time source.
    Time only moves when `advance` or `set` is called.
    """
    def __init__(self, start_time: datetime):
        if start_time.tzinfo is None:
            raise ValueError("FrozenTimeSource requires timezone-aware datetime")
        self._current_time = start_time

    def now(self) -> datetime:
        return self._current_time

    def advance(self, delta: timedelta) -> None:
        self._current_time += delta

    def set(self, moment: datetime) -> None:
        if moment.tzinfo is None:
            raise ValueError("FrozenTimeSource requires timezone-aware datetime")
        self._current_time = moment


class SequentialIdSource(IdSource):
    """
    Deterministic id source for tests: `<prefix>_1`, `<prefix>_2`, ...
    """
    def __init__(self):
        self._counter = 0

    def new_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}_{self._counter}"
