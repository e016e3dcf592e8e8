import json
from datetime import datetime
from threading import Lock
from typing import List

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from src.audit.domain.audit_entry import AuditEntry
from src.core.domain.execution_result import ExecutionResult
from src.core.domain.user_context import UserContext
from src.core.interfaces.audit_sink import AuditSink
from src.core.serialization import serialize_result
from src.core.time.time_source import TimeSource


def build_entry(action_id: str, result: ExecutionResult, user_context: UserContext, now: datetime) -> AuditEntry:
    return AuditEntry(
        action_id=action_id,
        user_id=user_context.user_id,
        request_id=user_context.request_id,
        success=result.success,
        module=result.metadata.module,
        operation=result.metadata.operation,
        execution_time_ms=result.metadata.execution_time_ms,
        recorded_at=now,
        error=result.error,
        error_code=result.error_code.value if result.error_code else None,
        result=serialize_result(result),
    )


class InMemoryAuditSink(AuditSink):
    """
    Append-only audit log of execution attempts.
    """

    def __init__(self, time_source: TimeSource):
        self.time_source = time_source
        self._entries: List[AuditEntry] = []
        self._lock = Lock()

    def record(self, action_id: str, result: ExecutionResult, user_context: UserContext) -> None:
        entry = build_entry(action_id, result, user_context, self.time_source.now())
        with self._lock:
            self._entries.append(entry)

    def list_recent(self, limit: int = 200) -> List[AuditEntry]:
        if limit <= 0:
            return []
        with self._lock:
            return self._entries[-limit:]

    def list_for_action(self, action_id: str) -> List[AuditEntry]:
        with self._lock:
            return [e for e in self._entries if e.action_id == action_id]


class SqlAuditSink(AuditSink):
    def __init__(self, engine: Engine, time_source: TimeSource):
        self.engine = engine
        self.time_source = time_source
        self.ensure_schema()

    @classmethod
    def from_dsn(cls, dsn: str, time_source: TimeSource) -> "SqlAuditSink":
        engine = create_engine(dsn, pool_pre_ping=True, future=True)
        return cls(engine, time_source)

    def ensure_schema(self) -> None:
        id_column = "BIGSERIAL PRIMARY KEY" if self.engine.dialect.name == "postgresql" else "INTEGER PRIMARY KEY AUTOINCREMENT"
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    f"""
                    CREATE TABLE IF NOT EXISTS action_audit_log (
                        id {id_column},
                        action_id TEXT NOT NULL,
                        user_id TEXT NOT NULL,
                        request_id TEXT,
                        success BOOLEAN NOT NULL,
                        module TEXT NOT NULL,
                        operation TEXT NOT NULL,
                        execution_time_ms DOUBLE PRECISION NOT NULL,
                        error TEXT,
                        error_code TEXT,
                        result TEXT,
                        recorded_at TEXT NOT NULL
                    )
                    """
                )
            )
            conn.execute(
                text(
                    """
                    CREATE INDEX IF NOT EXISTS ix_action_audit_log_action
                    ON action_audit_log (action_id)
                    """
                )
            )

    def record(self, action_id: str, result: ExecutionResult, user_context: UserContext) -> None:
        entry = build_entry(action_id, result, user_context, self.time_source.now())
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    """
                    INSERT INTO action_audit_log (
                        action_id, user_id, request_id, success, module, operation,
                        execution_time_ms, error, error_code, result, recorded_at
                    )
                    VALUES (
                        :action_id, :user_id, :request_id, :success, :module, :operation,
                        :execution_time_ms, :error, :error_code, :result, :recorded_at
                    )
                    """
                ),
                {
                    "action_id": entry.action_id,
                    "user_id": entry.user_id,
                    "request_id": entry.request_id,
                    "success": entry.success,
                    "module": entry.module,
                    "operation": entry.operation,
                    "execution_time_ms": entry.execution_time_ms,
                    "error": entry.error,
                    "error_code": entry.error_code,
                    "result": json.dumps(entry.result, default=str),
                    "recorded_at": entry.recorded_at.isoformat(),
                },
            )

    def list_recent(self, limit: int = 200) -> List[AuditEntry]:
        if limit <= 0:
            return []
        with self.engine.begin() as conn:
            rows = conn.execute(
                text("SELECT * FROM action_audit_log ORDER BY id DESC LIMIT :limit"),
                {"limit": int(limit)},
            ).fetchall()
        return [self._to_entry(row) for row in reversed(rows)]

    def list_for_action(self, action_id: str) -> List[AuditEntry]:
        with self.engine.begin() as conn:
            rows = conn.execute(
                text("SELECT * FROM action_audit_log WHERE action_id=:action_id ORDER BY id"),
                {"action_id": action_id},
            ).fetchall()
        return [self._to_entry(row) for row in rows]

    @staticmethod
    def _to_entry(row) -> AuditEntry:
        return AuditEntry(
            action_id=row.action_id,
            user_id=row.user_id,
            request_id=row.request_id,
            success=bool(row.success),
            module=row.module,
            operation=row.operation,
            execution_time_ms=float(row.execution_time_ms),
            recorded_at=datetime.fromisoformat(row.recorded_at),
            error=row.error,
            error_code=row.error_code,
            result=json.loads(row.result) if row.result else None,
        )
