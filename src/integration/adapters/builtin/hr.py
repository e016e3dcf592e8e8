from typing import Any, Dict

from src.core.domain.action import Action
from src.core.domain.user_context import UserContext
from src.integration.adapters.base import BuiltinModuleExecutor, OperationSpec


class HrExecutor(BuiltinModuleExecutor):
    module_key = "hr"
    operations = {
        "clock_in": OperationSpec(),
        "clock_out": OperationSpec(),
        "void_time_entry": OperationSpec(required=("timeEntryId",)),
        "request_time_off": OperationSpec(required=("startDate", "endDate")),
        "cancel_time_off": OperationSpec(required=("requestId",)),
    }

    def prepare(self, action: Action, user_context: UserContext) -> Dict[str, Any]:
        parameters = dict(action.parameters)
        # Time tracking defaults to the acting user
        parameters.setdefault("employeeId", user_context.user_id)
        return parameters
