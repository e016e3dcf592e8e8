from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from src.approval.domain.approval_errors import (
    ApprovalClosedError,
    ApprovalNotFoundError,
    ApprovalNotPermittedError,
)
from src.approval.domain.approval_request import (
    ApprovalRequest,
    ApprovalResponse,
    ApprovalStatus,
    ResponseKind,
)
from src.approval.store.approval_store import InMemoryApprovalStore, SqlApprovalStore
from src.core.domain.action import Action

CREATED = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _request(request_id="approval_1", action_id="a1", created_at=CREATED):
    return ApprovalRequest(
        id=request_id,
        user_id="u1",
        action=Action(
            id=action_id,
            module="drive",
            operation="share_file",
            parameters={"fileId": "f1", "shareWith": ["u2"]},
            requires_approval=True,
            affected_users=("u2",),
        ),
        reasoning="share the report",
        affected_users=("u2",),
        created_at=created_at,
        expires_at=created_at + timedelta(hours=24),
    )


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        return InMemoryApprovalStore()
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        future=True,
    )
    return SqlApprovalStore(engine)


def test_save_and_lookup_by_id_and_action(store):
    store.save(_request())

    by_id = store.get("approval_1")
    by_action = store.find_by_action("a1")

    assert by_id.id == by_action.id == "approval_1"
    assert by_id.action.parameters["shareWith"] == ["u2"]
    assert by_id.expires_at == CREATED + timedelta(hours=24)
    assert store.get("missing") is None
    assert store.find_by_action("missing") is None


def test_save_overwrites_status_and_responses(store):
    request = _request()
    store.save(request)

    request.responses.append(
        ApprovalResponse(
            user_id="u2",
            response=ResponseKind.MODIFY,
            timestamp=CREATED + timedelta(minutes=5),
            modifications={"shareWith": ["u2", "u3"]},
        )
    )
    request.status = ApprovalStatus.APPROVED
    store.save(request)

    loaded = store.get("approval_1")
    assert loaded.status == ApprovalStatus.APPROVED
    assert loaded.responses[0].response == ResponseKind.MODIFY
    assert loaded.effective_action().parameters["shareWith"] == ["u2", "u3"]


def test_returned_requests_are_detached_copies(store):
    store.save(_request())

    loaded = store.get("approval_1")
    loaded.responses.append(
        ApprovalResponse(user_id="u2", response=ResponseKind.APPROVE, timestamp=CREATED)
    )

    assert store.get("approval_1").responses == []


def test_list_by_status_newest_first(store):
    store.save(_request("approval_1", "a1", CREATED))
    store.save(_request("approval_2", "a2", CREATED + timedelta(minutes=1)))
    rejected = _request("approval_3", "a3", CREATED + timedelta(minutes=2))
    rejected.status = ApprovalStatus.REJECTED
    store.save(rejected)

    pending = store.list_by_status(ApprovalStatus.PENDING)

    assert [r.id for r in pending] == ["approval_2", "approval_1"]
    assert [r.id for r in store.list_by_status(ApprovalStatus.REJECTED)] == ["approval_3"]
    assert store.list_by_status(ApprovalStatus.PENDING, limit=0) == []


def _approve(user_id, minutes=5):
    return ApprovalResponse(
        user_id=user_id,
        response=ResponseKind.APPROVE,
        timestamp=CREATED + timedelta(minutes=minutes),
    )


def test_append_response_records_and_decides(store):
    store.save(_request())

    updated = store.append_response("approval_1", _approve("u2"), CREATED + timedelta(minutes=5))

    assert updated.status == ApprovalStatus.APPROVED
    assert [r.user_id for r in updated.responses] == ["u2"]
    assert store.get("approval_1").status == ApprovalStatus.APPROVED


def test_append_response_keeps_earlier_responses(store):
    request = _request()
    request.affected_users = ("u2", "u3")
    store.save(request)

    first = store.append_response("approval_1", _approve("u2"), CREATED + timedelta(minutes=5))
    second = store.append_response("approval_1", _approve("u3", 6), CREATED + timedelta(minutes=6))

    assert first.status == ApprovalStatus.PENDING
    assert second.status == ApprovalStatus.APPROVED
    assert [r.user_id for r in store.get("approval_1").responses] == ["u2", "u3"]


def test_append_response_refusals(store):
    store.save(_request())

    with pytest.raises(ApprovalNotFoundError):
        store.append_response("missing", _approve("u2"), CREATED)
    with pytest.raises(ApprovalNotPermittedError):
        store.append_response("approval_1", _approve("u9"), CREATED)

    late = CREATED + timedelta(hours=25)
    with pytest.raises(ApprovalClosedError):
        store.append_response("approval_1", _approve("u2"), late)
    assert store.get("approval_1").status == ApprovalStatus.EXPIRED
    assert store.get("approval_1").responses == []


def test_refresh_status_expires_pending_only(store):
    store.save(_request("approval_1", "a1"))
    store.save(_request("approval_2", "a2"))
    store.append_response("approval_2", _approve("u2"), CREATED + timedelta(minutes=5))

    late = CREATED + timedelta(hours=25)
    assert store.refresh_status("approval_1", late).status == ApprovalStatus.EXPIRED
    assert store.refresh_status("approval_2", late).status == ApprovalStatus.APPROVED
    assert store.refresh_status("missing", late) is None
    assert store.get("approval_1").status == ApprovalStatus.EXPIRED


def test_refresh_after_response_keeps_the_response(store):
    store.save(_request())
    store.append_response("approval_1", _approve("u2"), CREATED + timedelta(minutes=5))

    refreshed = store.refresh_status("approval_1", CREATED + timedelta(minutes=6))

    assert [r.user_id for r in refreshed.responses] == ["u2"]


def test_list_pending_for_approver_has_no_cap(store):
    for n in range(150):
        store.save(_request(f"approval_{n}", f"a{n}", CREATED + timedelta(seconds=n)))
    other = _request("approval_other", "a_other")
    other.affected_users = ("u3",)
    store.save(other)
    closed = _request("approval_closed", "a_closed")
    closed.status = ApprovalStatus.REJECTED
    store.save(closed)

    pending = store.list_pending_for_approver("u2")

    assert len(pending) == 150
    assert pending[0].id == "approval_149"
    assert [r.id for r in store.list_pending_for_approver("u3")] == ["approval_other"]
    assert store.list_pending_for_approver("u9") == []
