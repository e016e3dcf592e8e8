from typing import Any, Dict

from src.core.domain.user_context import UserContext
from src.integration.adapters.base import BuiltinModuleExecutor, OperationSpec


class TasksExecutor(BuiltinModuleExecutor):
    module_key = "tasks"
    operations = {
        "create_task": OperationSpec(required=("title",)),
        "delete_task": OperationSpec(required=("taskId",)),
        # single task, or a batch of reprioritization suggestions
        "update_task_priority": OperationSpec(any_of=(("taskId", "newPriority"), ("suggestions",))),
    }

    def capture(self, operation: str, parameters: Dict[str, Any], user_context: UserContext) -> Dict[str, Any]:
        if operation != "update_task_priority" or "taskId" not in parameters:
            return {}
        current = self._read("get_task", {"taskId": parameters["taskId"]}, user_context)
        if "priority" not in current:
            return {}
        return {"previousPriority": current["priority"]}
