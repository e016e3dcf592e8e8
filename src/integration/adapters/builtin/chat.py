from src.integration.adapters.base import BuiltinModuleExecutor, OperationSpec


class ChatExecutor(BuiltinModuleExecutor):
    module_key = "chat"
    operations = {
        "send_message": OperationSpec(required=("conversationId", "content")),
        "create_conversation": OperationSpec(required=("participants",)),
        "schedule_message": OperationSpec(required=("conversationId", "content", "sendAt")),
        "cancel_scheduled_message": OperationSpec(required=("messageId",)),
        "respond_to_message": OperationSpec(required=("messageId", "content")),
    }
