import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional

from src.core.domain.action import Action
from src.core.domain.exceptions import ActionErrorCode, ExecutorRegistrationError
from src.core.domain.execution_result import ExecutionResult
from src.core.domain.user_context import UserContext
from src.core.interfaces.module_executor import ModuleExecutor
from src.core.logging.structured_runtime_logger import StructuredRuntimeLogger
from src.integration.adapters.base import BuiltinModuleExecutor
from src.integration.normalizer import ResultNormalizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutorRegistration:
    module: str
    executor: ModuleExecutor
    # None means "whatever the executor accepts"
    supported_operations: Optional[FrozenSet[str]]
    registered_at: datetime


class ModuleExecutorRegistry:
    """
    Resolves module keys to executors.

    Runtime registrations take precedence over built-ins; unregistering a
    module restores its built-in. Registration is safe to call while other
    threads are executing: an in-flight execution keeps the executor it
    resolved.
    """

    def __init__(
            self,
            builtins: Optional[Mapping[str, ModuleExecutor]] = None,
            structured_logger: Optional[StructuredRuntimeLogger] = None,
    ):
        self._builtins: Dict[str, ModuleExecutor] = dict(builtins or {})
        self._registered: Dict[str, ExecutorRegistration] = {}
        self._lock = Lock()
        self.structured_logger = structured_logger or StructuredRuntimeLogger()

    def register(
            self,
            module: str,
            executor: ModuleExecutor,
            supported_operations: Optional[Iterable[str]] = None,
    ) -> None:
        if not isinstance(module, str) or not module.strip():
            raise ExecutorRegistrationError("Module key must be a non-empty string")
        if not isinstance(executor, ModuleExecutor):
            raise ExecutorRegistrationError(
                f"Executor for module '{module}' must implement ModuleExecutor, got {type(executor).__name__}"
            )
        operations = None
        if supported_operations is not None:
            operations = frozenset(supported_operations)
            if not operations:
                raise ExecutorRegistrationError(f"Executor for module '{module}' declares no operations")

        registration = ExecutorRegistration(
            module=module,
            executor=executor,
            supported_operations=operations,
            registered_at=datetime.now(timezone.utc),
        )
        with self._lock:
            replaced = module in self._registered
            self._registered[module] = registration

        logger.info("Registered executor for module %s", module)
        self.structured_logger.emit(
            "executor_registered",
            module=module,
            executor=type(executor).__name__,
            operations=sorted(operations) if operations else None,
            replaced=replaced,
            overrides_builtin=module in self._builtins,
        )

    def unregister(self, module: str) -> bool:
        with self._lock:
            removed = self._registered.pop(module, None)
        if removed is None:
            return False
        self.structured_logger.emit("executor_unregistered", module=module)
        return True

    def resolve(self, module: str) -> Optional[ModuleExecutor]:
        with self._lock:
            registration = self._registered.get(module)
        if registration is not None:
            return registration.executor
        return self._builtins.get(module)

    def has(self, module: str) -> bool:
        return self.resolve(module) is not None

    def supports_operation(self, module: str, operation: str) -> bool:
        with self._lock:
            registration = self._registered.get(module)
        if registration is not None:
            if registration.supported_operations is None:
                return True
            return operation in registration.supported_operations

        builtin = self._builtins.get(module)
        if builtin is None:
            return False
        if isinstance(builtin, BuiltinModuleExecutor):
            return builtin.supports(operation)
        return True

    def list_modules(self) -> List[str]:
        with self._lock:
            registered = set(self._registered)
        return sorted(registered | set(self._builtins))

    def clear(self) -> None:
        """Drops runtime registrations only; built-ins stay."""
        with self._lock:
            self._registered.clear()

    def execute(self, action: Action, user_context: UserContext) -> ExecutionResult:
        """
        Never raises: unresolved modules and executor exceptions
        come back as failed results.
        """
        with self._lock:
            registration = self._registered.get(action.module)

        if registration is not None:
            operations = registration.supported_operations
            if operations is not None and action.operation not in operations:
                return ResultNormalizer.failure(
                    action,
                    f"Operation '{action.operation}' not supported by module '{action.module}'. "
                    f"Supported operations: {', '.join(sorted(operations))}",
                    ActionErrorCode.NO_EXECUTOR_FOUND,
                )
            executor = registration.executor
        else:
            executor = self._builtins.get(action.module)

        if executor is None:
            return ResultNormalizer.failure(
                action,
                f"No executor found for module: {action.module}",
                ActionErrorCode.NO_EXECUTOR_FOUND,
            )

        try:
            result = executor.execute(action, user_context)
        except Exception as e:
            logger.exception("Executor for module %s raised on action %s", action.module, action.id)
            return ResultNormalizer.failure(action, str(e) or type(e).__name__)

        if not isinstance(result, ExecutionResult):
            return ResultNormalizer.failure(
                action,
                f"Executor for module '{action.module}' returned {type(result).__name__}, not ExecutionResult",
            )
        if not result.success and result.error_code is None:
            # Every failure carries a code, whichever executor produced it
            result = replace(result, error_code=ActionErrorCode.EXECUTION_FAILED)
        return result
