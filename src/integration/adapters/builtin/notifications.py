from src.integration.adapters.base import BuiltinModuleExecutor, OperationSpec


class NotificationsExecutor(BuiltinModuleExecutor):
    module_key = "notifications"
    operations = {
        "send_notification": OperationSpec(required=("recipientId", "message")),
        "schedule_reminder": OperationSpec(required=("message", "remindAt")),
        "cancel_reminder": OperationSpec(required=("reminderId",)),
    }
