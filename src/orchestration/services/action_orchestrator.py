import logging
import time
from datetime import timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from src.approval.domain.approval_request import ApprovalRequest, ResponseKind
from src.approval.interfaces.approval_gate import ApprovalGate
from src.core.domain.action import Action
from src.core.domain.exceptions import ActionErrorCode, InvalidActionError
from src.core.domain.execution_result import ExecutionMetadata, ExecutionResult
from src.core.domain.user_context import UserContext
from src.core.interfaces.audit_sink import AuditSink
from src.core.logging.structured_runtime_logger import StructuredRuntimeLogger
from src.core.serialization import deserialize_action
from src.core.time.time_source import TimeSource
from src.integration.normalizer import ResultNormalizer
from src.integration.registry import ModuleExecutorRegistry
from src.orchestration.interfaces.action_orchestrator import ActionOrchestrator
from src.orchestration.store.execution_record_store import ExecutionRecordStore, ExecutionState
from src.rollback.domain.rollback_plan import RollbackPlan, RollbackStep
from src.rollback.services.rollback_planner import RollbackPlanner
from src.rollback.store.rollback_store import RollbackStore

logger = logging.getLogger(__name__)


class StandardActionOrchestrator(ActionOrchestrator):
    """
    Runs proposed actions through the approval gate, the rollback planner
    and the executor registry, and records every attempt in the audit sink.

    Batches run strictly sequentially in input order. A failing action only
    produces a failed result; the rest of the batch still runs.
    """

    def __init__(
            self,
            approval_gate: ApprovalGate,
            registry: ModuleExecutorRegistry,
            planner: RollbackPlanner,
            rollback_store: RollbackStore,
            audit_sink: AuditSink,
            execution_records: ExecutionRecordStore,
            time_source: TimeSource,
            structured_logger: Optional[StructuredRuntimeLogger] = None,
            clock: Callable[[], float] = time.perf_counter,
    ):
        self.approval_gate = approval_gate
        self.registry = registry
        self.planner = planner
        self.rollback_store = rollback_store
        self.audit_sink = audit_sink
        self.execution_records = execution_records
        self.time_source = time_source
        self.structured_logger = structured_logger or StructuredRuntimeLogger()
        self.clock = clock

    def execute_actions(
            self,
            actions: Sequence[Union[Action, Mapping[str, Any]]],
            user_context: UserContext,
    ) -> List[ExecutionResult]:
        # Validate the whole batch before anything is dispatched
        validated = [self._validate(item, index) for index, item in enumerate(actions)]
        return [self.execute_action(action, user_context) for action in validated]

    def execute_action(self, action: Action, user_context: UserContext) -> ExecutionResult:
        started = self.clock()
        self.structured_logger.emit(
            "action_received",
            action_id=action.id,
            module=action.module,
            operation=action.operation,
            user_id=user_context.user_id,
            request_id=user_context.request_id,
            requires_approval=action.requires_approval,
        )

        try:
            result = self._execute(action, user_context, started)
        except Exception as e:
            logger.exception("Unexpected failure while executing action %s", action.id)
            result = self._stamp(
                ResultNormalizer.failure(action, f"Unexpected orchestration error: {e}"),
                action,
                started,
                rollback_available=False,
            )

        self._audit(action.id, result, user_context)
        return result

    def rollback(self, action_id: str, user_context: UserContext) -> ExecutionResult:
        started = self.clock()
        rollback_id = f"rollback_{action_id}"
        self.structured_logger.emit("rollback_started", action_id=action_id, user_id=user_context.user_id)

        # Taken atomically: a plan is run at most once and is gone whatever the outcome
        plan = self.rollback_store.take(action_id)
        if plan is None:
            result = self._rollback_result(
                rollback_id, started,
                error=f"No rollback plan found for action: {action_id}",
                error_code=ActionErrorCode.NO_ROLLBACK_PLAN_FOUND,
            )
        else:
            result = self._run_plan(action_id, rollback_id, plan, user_context, started)

        self._audit(rollback_id, result, user_context)
        self.structured_logger.emit(
            "rollback_completed",
            action_id=action_id,
            success=result.success,
            error_code=result.error_code.value if result.error_code else None,
            execution_time_ms=result.metadata.execution_time_ms,
        )
        return result

    def rollback_available(self, action_id: str) -> bool:
        return self.rollback_store.has(action_id)

    def pending_approvals(self, user_id: str) -> List[ApprovalRequest]:
        return self.approval_gate.list_pending(user_id)

    def respond_to_approval(
            self,
            request_id: str,
            user_id: str,
            response: ResponseKind,
            reasoning: Optional[str] = None,
            modifications: Optional[Dict[str, Any]] = None,
    ) -> ApprovalRequest:
        return self.approval_gate.respond(request_id, user_id, response, reasoning, modifications)

    def purge_expired(self) -> int:
        plans = self.rollback_store.purge_expired()
        records = self.execution_records.purge_expired()
        if plans or records:
            self.structured_logger.emit("records_purged", rollback_plans=plans, execution_records=records)
        return plans + records

    def _validate(self, item: Union[Action, Mapping[str, Any]], index: int) -> Action:
        if isinstance(item, Action):
            return item
        if isinstance(item, Mapping):
            return deserialize_action(item)
        raise InvalidActionError(f"Batch item {index} is not an action: {type(item).__name__}")

    def _execute(self, action: Action, user_context: UserContext, started: float) -> ExecutionResult:
        decision = self.approval_gate.evaluate(action, user_context)
        if not decision.proceed:
            request = decision.approval_request
            self.structured_logger.emit(
                "action_blocked",
                action_id=action.id,
                error_code=decision.error_code.value if decision.error_code else None,
                approval_request_id=request.id if request else None,
            )
            blocked = ResultNormalizer.failure(
                action,
                decision.reason,
                decision.error_code,
                result={"approvalRequestId": request.id, "status": request.status.value} if request else None,
            )
            return self._stamp(blocked, action, started, rollback_available=False)

        state = self.execution_records.begin(action.id)
        if state == ExecutionState.DONE:
            record = self.execution_records.get(action.id)
            if record is not None:
                logger.info("Action %s already executed; returning recorded result", action.id)
                return record.result.with_metadata(rollback_available=self.rollback_store.has(action.id))
            # Retention lapsed between the claim and the lookup
            state = self.execution_records.begin(action.id)
        if state != ExecutionState.NEW:
            in_progress = ResultNormalizer.failure(
                action,
                f"Action {action.id} is already being executed",
                ActionErrorCode.EXECUTION_IN_PROGRESS,
            )
            return self._stamp(in_progress, action, started, rollback_available=False)

        try:
            result = self._dispatch(decision.action, user_context, started)
        except Exception:
            self.execution_records.clear_in_progress(action.id)
            self.rollback_store.discard(action.id)
            raise

        if result.success:
            self.execution_records.complete(action.id, result)
        else:
            self.execution_records.clear_in_progress(action.id)
        return result

    def _dispatch(self, action: Action, user_context: UserContext, started: float) -> ExecutionResult:
        # Stored before dispatch so the intended compensation survives a crash mid-execution
        plan = self.planner.plan(action, user_context)
        self.rollback_store.put(action.id, plan)

        self.structured_logger.emit(
            "action_dispatched",
            action_id=action.id,
            module=action.module,
            operation=action.operation,
            rollback_steps=len(plan.steps),
        )
        outcome = self.registry.execute(action, user_context)

        if outcome.success:
            expires_at = self.time_source.now() + timedelta(minutes=plan.timeout)
            self.rollback_store.retain(action.id, plan.bind(outcome.result), expires_at)
        else:
            self.rollback_store.discard(action.id)

        result = self._stamp(outcome, action, started, rollback_available=outcome.success)
        self.structured_logger.emit(
            "action_completed",
            action_id=action.id,
            success=result.success,
            error_code=result.error_code.value if result.error_code else None,
            execution_time_ms=result.metadata.execution_time_ms,
            rollback_available=result.metadata.rollback_available,
        )
        return result

    def _run_plan(
            self,
            action_id: str,
            rollback_id: str,
            plan: RollbackPlan,
            user_context: UserContext,
            started: float,
    ) -> ExecutionResult:
        if plan.is_empty:
            return self._rollback_result(
                rollback_id, started, result={"actionId": action_id, "stepsExecuted": 0, "message": "nothing to undo"}
            )

        executed = []
        for step in plan.ordered_steps():
            outcome = self.registry.execute(self._step_action(action_id, step), user_context)
            executed.append({
                "module": step.module,
                "operation": step.operation,
                "order": step.order,
                "success": outcome.success,
                "error": outcome.error,
            })
            if not outcome.success:
                logger.warning("Rollback of %s stopped at %s.%s: %s", action_id, step.module, step.operation,
                               outcome.error)
                return self._rollback_result(
                    rollback_id, started,
                    result={"actionId": action_id, "stepsExecuted": len(executed), "steps": executed},
                    error=f"Rollback failed: {step.module}.{step.operation}: {outcome.error}",
                    error_code=outcome.error_code or ActionErrorCode.EXECUTION_FAILED,
                )

        return self._rollback_result(
            rollback_id, started,
            result={"actionId": action_id, "stepsExecuted": len(executed), "steps": executed},
        )

    @staticmethod
    def _step_action(action_id: str, step: RollbackStep) -> Action:
        return Action(
            id=f"rollback_{action_id}_{step.order}",
            type="rollback",
            module=step.module,
            operation=step.operation,
            parameters=step.parameters,
            reasoning="Rollback operation",
        )

    def _rollback_result(
            self,
            rollback_id: str,
            started: float,
            result: Any = None,
            error: Optional[str] = None,
            error_code: Optional[ActionErrorCode] = None,
    ) -> ExecutionResult:
        return ExecutionResult(
            action_id=rollback_id,
            success=error is None,
            result=result,
            error=error,
            error_code=error_code,
            metadata=ExecutionMetadata(
                module="system",
                operation="rollback",
                execution_time_ms=self._elapsed_ms(started),
            ),
        )

    def _stamp(self, result: ExecutionResult, action: Action, started: float, rollback_available: bool) -> ExecutionResult:
        return ExecutionResult(
            action_id=action.id,
            success=result.success,
            result=result.result,
            error=result.error,
            error_code=result.error_code,
            metadata=ExecutionMetadata(
                module=action.module,
                operation=action.operation,
                execution_time_ms=self._elapsed_ms(started),
                affected_users=action.affected_users,
                rollback_available=rollback_available,
            ),
        )

    def _elapsed_ms(self, started: float) -> float:
        return max(0.0, (self.clock() - started) * 1000.0)

    def _audit(self, action_id: str, result: ExecutionResult, user_context: UserContext) -> None:
        try:
            self.audit_sink.record(action_id, result, user_context)
        except Exception as e:
            logger.exception("Audit record failed for action %s", action_id)
            self.structured_logger.alarm(
                "audit_sink_failure",
                action_id=action_id,
                success=result.success,
                error=str(e),
            )
