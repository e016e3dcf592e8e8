import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional

from src.approval.interfaces.notification_sink import NotificationSink
from src.approval.services.approval_gate import StandardApprovalGate
from src.approval.store.approval_store import ApprovalStore, InMemoryApprovalStore, SqlApprovalStore
from src.approval.store.notification_outbox import InMemoryNotificationSink
from src.audit.store.audit_sink_store import InMemoryAuditSink, SqlAuditSink
from src.config.settings import Settings
from src.core.interfaces.audit_sink import AuditSink
from src.core.interfaces.module_service import ModuleService
from src.core.logging.structured_runtime_logger import StructuredRuntimeLogger
from src.core.time.system_time_source import SystemTimeSource, UuidIdSource
from src.core.time.time_source import IdSource, TimeSource
from src.integration.adapters.builtin.catalog import build_builtin_executors
from src.integration.adapters.webhook.webhook_client import WebhookExecutorConfig
from src.integration.adapters.webhook.webhook_executor import WebhookModuleExecutor
from src.integration.registry import ModuleExecutorRegistry
from src.orchestration.services.action_orchestrator import StandardActionOrchestrator
from src.orchestration.store.execution_record_store import InMemoryExecutionRecordStore
from src.rollback.services.rollback_planner import RollbackPlanner
from src.rollback.store.rollback_store import InMemoryRollbackStore

logger = logging.getLogger(__name__)


@dataclass
class EngineComponents:
    orchestrator: StandardActionOrchestrator
    registry: ModuleExecutorRegistry
    approval_gate: StandardApprovalGate
    planner: RollbackPlanner
    audit_sink: AuditSink
    notification_sink: NotificationSink


def build_orchestrator(
        settings: Settings,
        module_services: Mapping[str, ModuleService],
        time_source: Optional[TimeSource] = None,
        id_source: Optional[IdSource] = None,
        notification_sink: Optional[NotificationSink] = None,
) -> EngineComponents:
    """
    Wire the engine from settings. Built-in executors are created for every
    module that has a service; other modules are registered at runtime.
    """
    time_source = time_source or SystemTimeSource()
    id_source = id_source or UuidIdSource()
    notification_sink = notification_sink or InMemoryNotificationSink()
    structured_logger = StructuredRuntimeLogger()

    approval_store, audit_sink = _build_stores(settings, time_source)

    registry = ModuleExecutorRegistry(
        builtins=build_builtin_executors(module_services),
        structured_logger=structured_logger,
    )
    approval_gate = StandardApprovalGate(
        store=approval_store,
        notification_sink=notification_sink,
        time_source=time_source,
        id_source=id_source,
        ttl=timedelta(hours=settings.APPROVAL_TTL_HOURS),
        structured_logger=structured_logger,
    )
    planner = RollbackPlanner(timeout_minutes=settings.ROLLBACK_TIMEOUT_MINUTES)

    orchestrator = StandardActionOrchestrator(
        approval_gate=approval_gate,
        registry=registry,
        planner=planner,
        rollback_store=InMemoryRollbackStore(time_source),
        audit_sink=audit_sink,
        execution_records=InMemoryExecutionRecordStore(
            time_source, retention=timedelta(hours=settings.EXECUTION_RECORD_RETENTION_HOURS)
        ),
        time_source=time_source,
        structured_logger=structured_logger,
    )
    logger.info("Action engine wired: store_backend=%s modules=%s",
                settings.STORE_BACKEND, ", ".join(registry.list_modules()))
    return EngineComponents(
        orchestrator=orchestrator,
        registry=registry,
        approval_gate=approval_gate,
        planner=planner,
        audit_sink=audit_sink,
        notification_sink=notification_sink,
    )


def register_webhook_module(registry: ModuleExecutorRegistry, settings: Settings, module: str,
                            executor_url: str, api_key: Optional[str] = None, supported_operations=None) -> None:
    config = WebhookExecutorConfig(
        executor_url=executor_url,
        api_key=api_key,
        timeout_seconds=settings.WEBHOOK_TIMEOUT_SECONDS,
        max_retries=settings.WEBHOOK_MAX_RETRIES,
    )
    registry.register(module, WebhookModuleExecutor(config), supported_operations=supported_operations)


def _build_stores(settings: Settings, time_source: TimeSource):
    backend = settings.STORE_BACKEND.lower()
    if backend == "memory":
        approval_store: ApprovalStore = InMemoryApprovalStore()
        return approval_store, InMemoryAuditSink(time_source)
    if backend == "sql":
        approval_store = SqlApprovalStore.from_dsn(settings.DATABASE_URL)
        # One engine for both stores
        return approval_store, SqlAuditSink(approval_store.engine, time_source)
    raise ValueError(f"Unknown STORE_BACKEND: {settings.STORE_BACKEND}")
