from src.integration.adapters.base import BuiltinModuleExecutor, OperationSpec


class SchedulingExecutor(BuiltinModuleExecutor):
    module_key = "scheduling"
    operations = {
        "generate_schedule": OperationSpec(required=("businessId", "scheduleId")),
        "suggest_assignments": OperationSpec(required=("businessId", "shiftId")),
        "assign_shift": OperationSpec(required=("shiftId", "employeeId")),
        "unassign_shift": OperationSpec(required=("shiftId", "employeeId")),
        "publish_schedule": OperationSpec(required=("scheduleId",)),
    }
