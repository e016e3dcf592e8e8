from datetime import datetime, timedelta, timezone

from src.core.domain.execution_result import ExecutionMetadata, ExecutionResult
from src.core.time.frozen_time_source import FrozenTimeSource
from src.orchestration.store.execution_record_store import ExecutionState, InMemoryExecutionRecordStore

RESULT = ExecutionResult(action_id="a1", success=True, metadata=ExecutionMetadata(module="drive", operation="x"))


def _store():
    return InMemoryExecutionRecordStore(FrozenTimeSource(datetime(2026, 3, 1, tzinfo=timezone.utc)))


def test_first_claim_is_new_and_duplicates_see_in_progress():
    store = _store()

    assert store.begin("a1") == ExecutionState.NEW
    assert store.begin("a1") == ExecutionState.IN_PROGRESS


def test_completed_record_keeps_result():
    store = _store()
    store.begin("a1")
    store.complete("a1", RESULT)

    assert store.begin("a1") == ExecutionState.DONE
    assert store.get("a1").result == RESULT


def test_clear_in_progress_allows_retry_but_keeps_done():
    store = _store()
    store.begin("a1")
    store.clear_in_progress("a1")
    assert store.begin("a1") == ExecutionState.NEW

    store.complete("a1", RESULT)
    store.clear_in_progress("a1")
    assert store.get("a1").state == ExecutionState.DONE


def test_completed_record_is_forgotten_after_retention():
    clock = FrozenTimeSource(datetime(2026, 3, 1, tzinfo=timezone.utc))
    store = InMemoryExecutionRecordStore(clock, retention=timedelta(hours=1))
    store.begin("a1")
    store.complete("a1", RESULT)

    clock.advance(timedelta(minutes=59))
    assert store.get("a1").expires_at == datetime(2026, 3, 1, 1, tzinfo=timezone.utc)

    clock.advance(timedelta(minutes=1))
    assert store.get("a1") is None
    assert store.begin("a1") == ExecutionState.NEW


def test_purge_expired_drops_only_lapsed_done_records():
    clock = FrozenTimeSource(datetime(2026, 3, 1, tzinfo=timezone.utc))
    store = InMemoryExecutionRecordStore(clock, retention=timedelta(hours=1))
    store.begin("old")
    store.complete("old", RESULT)
    clock.advance(timedelta(hours=2))
    store.begin("fresh")
    store.complete("fresh", RESULT)
    store.begin("running")

    assert store.purge_expired() == 1
    assert store.get("old") is None
    assert store.get("fresh").state == ExecutionState.DONE
    assert store.get("running").state == ExecutionState.IN_PROGRESS
    assert len(store) == 2
