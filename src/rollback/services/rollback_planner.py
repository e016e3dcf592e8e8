import logging
from threading import Lock
from typing import Callable, Dict, List, Optional, Tuple

from src.core.domain.action import Action
from src.core.domain.user_context import UserContext
from src.rollback.domain.rollback_plan import (
    DEFAULT_ROLLBACK_TIMEOUT_MINUTES,
    ResultRef,
    RollbackPlan,
    RollbackStep,
)

logger = logging.getLogger(__name__)

# (action, user_context) -> steps
Compensation = Callable[[Action, UserContext], List[RollbackStep]]


def _step(module: str, operation: str, order: int = 0, **parameters) -> RollbackStep:
    return RollbackStep(module=module, operation=operation, parameters=parameters, order=order)


def _drive_create_folder(action, ctx):
    return [_step("drive", "delete_folder", folderId=ResultRef("folderId"), onlyIfEmpty=True)]


def _drive_move_file(action, ctx):
    return [_step("drive", "move_file", fileId=action.parameters["fileId"], parentId=ResultRef("previousParentId"))]


def _drive_share_file(action, ctx):
    return [_step("drive", "unshare_file", fileId=action.parameters["fileId"],
                  shareWith=action.parameters["shareWith"])]


def _chat_schedule_message(action, ctx):
    return [_step("chat", "cancel_scheduled_message", messageId=ResultRef("messageId"))]


def _calendar_create_event(action, ctx):
    return [_step("calendar", "delete_event", eventId=ResultRef("eventId"))]


def _tasks_create_task(action, ctx):
    return [_step("tasks", "delete_task", taskId=ResultRef("taskId"))]


def _tasks_update_task_priority(action, ctx):
    if "taskId" not in action.parameters:
        # Batched suggestions carry no prior state to restore
        return []
    return [_step("tasks", "update_task_priority", taskId=action.parameters["taskId"],
                  newPriority=ResultRef("previousPriority"))]


def _hr_clock_in(action, ctx):
    return [_step("hr", "void_time_entry", timeEntryId=ResultRef("timeEntryId"))]


def _hr_request_time_off(action, ctx):
    return [_step("hr", "cancel_time_off", requestId=ResultRef("requestId"))]


def _scheduling_assign_shift(action, ctx):
    return [_step("scheduling", "unassign_shift", shiftId=action.parameters["shiftId"],
                  employeeId=action.parameters["employeeId"])]


def _notifications_schedule_reminder(action, ctx):
    return [_step("notifications", "cancel_reminder", reminderId=ResultRef("reminderId"))]


DEFAULT_COMPENSATIONS: Dict[Tuple[str, str], Compensation] = {
    ("drive", "create_folder"): _drive_create_folder,
    ("drive", "move_file"): _drive_move_file,
    ("drive", "share_file"): _drive_share_file,
    ("chat", "schedule_message"): _chat_schedule_message,
    ("calendar", "create_event"): _calendar_create_event,
    ("tasks", "create_task"): _tasks_create_task,
    ("tasks", "update_task_priority"): _tasks_update_task_priority,
    ("hr", "clock_in"): _hr_clock_in,
    ("hr", "request_time_off"): _hr_request_time_off,
    ("scheduling", "assign_shift"): _scheduling_assign_shift,
    ("notifications", "schedule_reminder"): _notifications_schedule_reminder,
}

_CONDITIONS: Dict[Tuple[str, str], Tuple[str, ...]] = {
    ("drive", "create_folder"): ("folder is still empty",),
    ("chat", "schedule_message"): ("message has not been sent yet",),
    ("notifications", "schedule_reminder"): ("reminder has not fired yet",),
}


class RollbackPlanner:
    """
    Builds compensation plans from a table keyed by (module, operation).
    Actions without a known inverse get an empty plan.
    """

    def __init__(self, timeout_minutes: int = DEFAULT_ROLLBACK_TIMEOUT_MINUTES):
        self.timeout_minutes = timeout_minutes
        self._compensations: Dict[Tuple[str, str], Compensation] = dict(DEFAULT_COMPENSATIONS)
        self._lock = Lock()

    def register_compensation(self, module: str, operation: str, compensation: Compensation) -> None:
        with self._lock:
            self._compensations[(module, operation)] = compensation

    def plan(self, action: Action, user_context: UserContext) -> RollbackPlan:
        key = (action.module, action.operation)
        with self._lock:
            compensation: Optional[Compensation] = self._compensations.get(key)
        if compensation is None:
            return RollbackPlan(timeout=self.timeout_minutes)

        try:
            steps = compensation(action, user_context)
        except KeyError as e:
            # The executor reports the missing parameter; nothing to compensate
            logger.warning("No rollback plan for %s.%s: missing %s", action.module, action.operation, e)
            return RollbackPlan(timeout=self.timeout_minutes)
        # Steps listed first run last
        ordered = tuple(
            RollbackStep(module=s.module, operation=s.operation, parameters=dict(s.parameters), order=s.order or index)
            for index, s in enumerate(steps, start=1)
        )
        return RollbackPlan(
            steps=ordered,
            conditions=_CONDITIONS.get(key, ()),
            timeout=self.timeout_minutes,
        )
