from src.integration.adapters.base import BuiltinModuleExecutor, OperationSpec


class CalendarExecutor(BuiltinModuleExecutor):
    module_key = "calendar"
    operations = {
        "create_event": OperationSpec(required=("title", "startTime")),
        "update_event": OperationSpec(required=("eventId",)),
        "delete_event": OperationSpec(required=("eventId",)),
    }
