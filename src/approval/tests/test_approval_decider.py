from datetime import datetime, timedelta, timezone

from src.approval.domain.approval_request import ApprovalResponse, ApprovalStatus, ResponseKind
from src.approval.services.approval_decider import decide

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
EXPIRES = NOW + timedelta(hours=24)


def _response(user_id, kind):
    return ApprovalResponse(user_id=user_id, response=kind, timestamp=NOW)


def test_no_responses_is_pending():
    assert decide(("u2",), EXPIRES, [], NOW) == ApprovalStatus.PENDING


def test_all_required_approvers_approve():
    responses = [_response("u2", ResponseKind.APPROVE), _response("u3", ResponseKind.MODIFY)]
    assert decide(("u2", "u3"), EXPIRES, responses, NOW) == ApprovalStatus.APPROVED


def test_partial_approval_stays_pending():
    responses = [_response("u2", ResponseKind.APPROVE)]
    assert decide(("u2", "u3"), EXPIRES, responses, NOW) == ApprovalStatus.PENDING


def test_any_reject_rejects():
    responses = [_response("u2", ResponseKind.APPROVE), _response("u3", ResponseKind.REJECT)]
    assert decide(("u2", "u3"), EXPIRES, responses, NOW) == ApprovalStatus.REJECTED


def test_expiry_wins_over_recorded_approvals():
    responses = [_response("u2", ResponseKind.APPROVE)]
    later = EXPIRES + timedelta(seconds=1)
    assert decide(("u2",), EXPIRES, responses, later) == ApprovalStatus.EXPIRED


def test_exact_expiry_instant_is_not_expired():
    assert decide(("u2",), EXPIRES, [], EXPIRES) == ApprovalStatus.PENDING
