import json
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from threading import Lock
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine

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
from src.approval.services.approval_decider import decide
from src.core.serialization import deserialize_action, serialize_action


class ApprovalStore(ABC):
    """
    Approval requests keyed by id and by action id.

    `append_response` and `refresh_status` are atomic read-decide-write
    operations; callers never save a request they read earlier.
    """

    @abstractmethod
    def save(self, request: ApprovalRequest) -> None:
        pass

    @abstractmethod
    def get(self, request_id: str) -> Optional[ApprovalRequest]:
        pass

    @abstractmethod
    def find_by_action(self, action_id: str) -> Optional[ApprovalRequest]:
        pass

    @abstractmethod
    def list_by_status(self, status: ApprovalStatus, limit: int = 100) -> List[ApprovalRequest]:
        """Newest first."""
        pass

    @abstractmethod
    def list_pending_for_approver(self, user_id: str) -> List[ApprovalRequest]:
        """All pending requests the user must respond to, newest first."""
        pass

    @abstractmethod
    def append_response(self, request_id: str, response: ApprovalResponse, now: datetime) -> ApprovalRequest:
        """
        Record a response and re-decide the request in one step.
        Raises ApprovalNotFoundError, ApprovalClosedError or ApprovalNotPermittedError.
        """
        pass

    @abstractmethod
    def refresh_status(self, request_id: str, now: datetime) -> Optional[ApprovalRequest]:
        """Re-decide a pending request against `now`; terminal requests are returned unchanged."""
        pass


def _redecide(request: ApprovalRequest, now: datetime) -> bool:
    if request.status.is_terminal:
        return False
    status = decide(request.required_approvers, request.expires_at, request.responses, now)
    if status == request.status:
        return False
    request.status = status
    return True


def _apply_response(request: ApprovalRequest, response: ApprovalResponse, now: datetime) -> None:
    _redecide(request, now)
    if request.status.is_terminal:
        raise ApprovalClosedError(request.id, request.status.value)
    if response.user_id not in request.required_approvers:
        raise ApprovalNotPermittedError(request.id, response.user_id)
    request.responses.append(response)
    _redecide(request, now)


def _copy(request: ApprovalRequest) -> ApprovalRequest:
    # Action and responses are immutable; only the list needs detaching
    return replace(request, responses=list(request.responses))


class InMemoryApprovalStore(ApprovalStore):
    def __init__(self):
        self._requests: Dict[str, ApprovalRequest] = {}
        self._by_action: Dict[str, str] = {}
        self._lock = Lock()

    def save(self, request: ApprovalRequest) -> None:
        with self._lock:
            self._requests[request.id] = _copy(request)
            self._by_action[request.action.id] = request.id

    def get(self, request_id: str) -> Optional[ApprovalRequest]:
        with self._lock:
            request = self._requests.get(request_id)
            return _copy(request) if request else None

    def find_by_action(self, action_id: str) -> Optional[ApprovalRequest]:
        with self._lock:
            request_id = self._by_action.get(action_id)
            if request_id is None:
                return None
            return _copy(self._requests[request_id])

    def list_by_status(self, status: ApprovalStatus, limit: int = 100) -> List[ApprovalRequest]:
        if limit <= 0:
            return []
        with self._lock:
            matching = [r for r in self._requests.values() if r.status == status]
        matching.sort(key=lambda r: r.created_at, reverse=True)
        return [_copy(r) for r in matching[:limit]]

    def list_pending_for_approver(self, user_id: str) -> List[ApprovalRequest]:
        with self._lock:
            matching = [
                _copy(r) for r in self._requests.values()
                if r.status == ApprovalStatus.PENDING and user_id in r.required_approvers
            ]
        matching.sort(key=lambda r: r.created_at, reverse=True)
        return matching

    def append_response(self, request_id: str, response: ApprovalResponse, now: datetime) -> ApprovalRequest:
        with self._lock:
            request = self._requests.get(request_id)
            if request is None:
                raise ApprovalNotFoundError(request_id)
            request = _copy(request)
            try:
                _apply_response(request, response, now)
            finally:
                # Lazy expiry found while checking is kept even when the response is refused
                self._requests[request_id] = request
            return _copy(request)

    def refresh_status(self, request_id: str, now: datetime) -> Optional[ApprovalRequest]:
        with self._lock:
            request = self._requests.get(request_id)
            if request is None:
                return None
            if _redecide(request, now):
                self._requests[request_id] = request
            return _copy(request)


def serialize_request(request: ApprovalRequest) -> Dict[str, Any]:
    return {
        "id": request.id,
        "userId": request.user_id,
        "action": serialize_action(request.action),
        "reasoning": request.reasoning,
        "affectedUsers": list(request.affected_users),
        "createdAt": request.created_at.isoformat(),
        "expiresAt": request.expires_at.isoformat(),
        "status": request.status.value,
        "responses": [
            {
                "userId": r.user_id,
                "response": r.response.value,
                "reasoning": r.reasoning,
                "modifications": r.modifications,
                "timestamp": r.timestamp.isoformat(),
            }
            for r in request.responses
        ],
    }


def deserialize_request(data: Dict[str, Any]) -> ApprovalRequest:
    return ApprovalRequest(
        id=data["id"],
        user_id=data["userId"],
        action=deserialize_action(data["action"]),
        reasoning=data.get("reasoning", ""),
        affected_users=tuple(data.get("affectedUsers") or ()),
        created_at=datetime.fromisoformat(data["createdAt"]),
        expires_at=datetime.fromisoformat(data["expiresAt"]),
        status=ApprovalStatus(data["status"]),
        responses=[
            ApprovalResponse(
                user_id=r["userId"],
                response=ResponseKind(r["response"]),
                reasoning=r.get("reasoning"),
                modifications=dict(r.get("modifications") or {}),
                timestamp=datetime.fromisoformat(r["timestamp"]),
            )
            for r in data.get("responses") or []
        ],
    )


class SqlApprovalStore(ApprovalStore):
    """
    SQLAlchemy Core store. Portable schema (JSON and timestamps as TEXT)
    so it runs on PostgreSQL in production and SQLite in tests.
    Read-decide-write operations lock the row (FOR UPDATE on PostgreSQL)
    and are serialized in-process.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._lock = Lock()
        self.ensure_schema()

    @classmethod
    def from_dsn(cls, dsn: str) -> "SqlApprovalStore":
        engine = create_engine(dsn, pool_pre_ping=True, future=True)
        return cls(engine)

    def ensure_schema(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    """
                    CREATE TABLE IF NOT EXISTS action_approval_requests (
                        id TEXT PRIMARY KEY,
                        action_id TEXT NOT NULL,
                        requester_id TEXT NOT NULL,
                        status TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        expires_at TEXT NOT NULL,
                        payload TEXT NOT NULL
                    )
                    """
                )
            )
            conn.execute(
                text(
                    """
                    CREATE UNIQUE INDEX IF NOT EXISTS ux_action_approval_requests_action
                    ON action_approval_requests (action_id)
                    """
                )
            )
            conn.execute(
                text(
                    """
                    CREATE INDEX IF NOT EXISTS ix_action_approval_requests_status
                    ON action_approval_requests (status, created_at)
                    """
                )
            )
            conn.execute(
                text(
                    """
                    CREATE TABLE IF NOT EXISTS action_approval_approvers (
                        request_id TEXT NOT NULL,
                        user_id TEXT NOT NULL,
                        PRIMARY KEY (user_id, request_id)
                    )
                    """
                )
            )

    def save(self, request: ApprovalRequest) -> None:
        with self._lock, self.engine.begin() as conn:
            self._write(conn, request)
            for user_id in request.required_approvers:
                conn.execute(
                    text(
                        """
                        INSERT INTO action_approval_approvers (request_id, user_id)
                        VALUES (:request_id, :user_id)
                        ON CONFLICT (user_id, request_id) DO NOTHING
                        """
                    ),
                    {"request_id": request.id, "user_id": user_id},
                )

    def get(self, request_id: str) -> Optional[ApprovalRequest]:
        return self._fetch_one("SELECT payload FROM action_approval_requests WHERE id=:key", request_id)

    def find_by_action(self, action_id: str) -> Optional[ApprovalRequest]:
        return self._fetch_one("SELECT payload FROM action_approval_requests WHERE action_id=:key", action_id)

    def list_by_status(self, status: ApprovalStatus, limit: int = 100) -> List[ApprovalRequest]:
        if limit <= 0:
            return []
        with self.engine.begin() as conn:
            rows = conn.execute(
                text(
                    """
                    SELECT payload
                    FROM action_approval_requests
                    WHERE status=:status
                    ORDER BY created_at DESC
                    LIMIT :limit
                    """
                ),
                {"status": status.value, "limit": int(limit)},
            ).fetchall()
        return [deserialize_request(json.loads(row.payload)) for row in rows]

    def list_pending_for_approver(self, user_id: str) -> List[ApprovalRequest]:
        with self.engine.begin() as conn:
            rows = conn.execute(
                text(
                    """
                    SELECT r.payload
                    FROM action_approval_requests r
                    JOIN action_approval_approvers a ON a.request_id = r.id
                    WHERE a.user_id=:user_id AND r.status=:status
                    ORDER BY r.created_at DESC
                    """
                ),
                {"user_id": user_id, "status": ApprovalStatus.PENDING.value},
            ).fetchall()
        return [deserialize_request(json.loads(row.payload)) for row in rows]

    def append_response(self, request_id: str, response: ApprovalResponse, now: datetime) -> ApprovalRequest:
        refused = None
        with self._lock, self.engine.begin() as conn:
            request = self._lock_row(conn, request_id)
            if request is None:
                raise ApprovalNotFoundError(request_id)
            try:
                _apply_response(request, response, now)
            except (ApprovalClosedError, ApprovalNotPermittedError) as e:
                refused = e
            # A lazy expiry found while checking is committed even when the response is refused
            self._write(conn, request)
        if refused is not None:
            raise refused
        return request

    def refresh_status(self, request_id: str, now: datetime) -> Optional[ApprovalRequest]:
        with self._lock, self.engine.begin() as conn:
            request = self._lock_row(conn, request_id)
            if request is None:
                return None
            if _redecide(request, now):
                self._write(conn, request)
            return request

    def _lock_row(self, conn: Connection, request_id: str) -> Optional[ApprovalRequest]:
        query = "SELECT payload FROM action_approval_requests WHERE id=:key"
        if self.engine.dialect.name == "postgresql":
            query += " FOR UPDATE"
        row = conn.execute(text(query), {"key": request_id}).first()
        if not row:
            return None
        return deserialize_request(json.loads(row.payload))

    @staticmethod
    def _write(conn: Connection, request: ApprovalRequest) -> None:
        conn.execute(
            text(
                """
                INSERT INTO action_approval_requests (
                    id, action_id, requester_id, status, created_at, expires_at, payload
                )
                VALUES (:id, :action_id, :requester_id, :status, :created_at, :expires_at, :payload)
                ON CONFLICT (id)
                DO UPDATE SET
                  status=excluded.status,
                  payload=excluded.payload
                """
            ),
            {
                "id": request.id,
                "action_id": request.action.id,
                "requester_id": request.user_id,
                "status": request.status.value,
                "created_at": request.created_at.isoformat(),
                "expires_at": request.expires_at.isoformat(),
                "payload": json.dumps(serialize_request(request), default=str),
            },
        )

    def _fetch_one(self, query: str, key: str) -> Optional[ApprovalRequest]:
        with self.engine.begin() as conn:
            row = conn.execute(text(query), {"key": key}).first()
        if not row:
            return None
        return deserialize_request(json.loads(row.payload))
