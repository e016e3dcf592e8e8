import logging
from typing import Dict, Mapping, Type

from src.core.interfaces.module_executor import ModuleExecutor
from src.core.interfaces.module_service import ModuleService
from src.integration.adapters.base import BuiltinModuleExecutor
from src.integration.adapters.builtin.calendar import CalendarExecutor
from src.integration.adapters.builtin.chat import ChatExecutor
from src.integration.adapters.builtin.drive import DriveExecutor
from src.integration.adapters.builtin.hr import HrExecutor
from src.integration.adapters.builtin.notifications import NotificationsExecutor
from src.integration.adapters.builtin.scheduling import SchedulingExecutor
from src.integration.adapters.builtin.tasks import TasksExecutor

logger = logging.getLogger(__name__)

BUILTIN_EXECUTORS: Dict[str, Type[BuiltinModuleExecutor]] = {
    cls.module_key: cls
    for cls in (
        DriveExecutor,
        ChatExecutor,
        CalendarExecutor,
        TasksExecutor,
        HrExecutor,
        SchedulingExecutor,
        NotificationsExecutor,
    )
}


def build_builtin_executors(services: Mapping[str, ModuleService]) -> Dict[str, ModuleExecutor]:
    """
    Wire a built-in executor for every module that has a service.
    Modules without a service are left unresolved.
    """
    executors: Dict[str, ModuleExecutor] = {}
    for module, service in services.items():
        executor_cls = BUILTIN_EXECUTORS.get(module)
        if executor_cls is None:
            logger.warning("No built-in executor for module %s; register one at runtime", module)
            continue
        executors[module] = executor_cls(service)
    return executors
