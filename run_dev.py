import json
import logging

from src.approval.domain.approval_request import ResponseKind
from src.bootstrap import build_orchestrator
from src.config.settings import settings
from src.core.domain.action import Action
from src.core.domain.user_context import UserContext
from src.core.serialization import serialize_result
from src.infrastructure.modules.in_memory_module_service import build_in_memory_services


def _show(label, result):
    print(f"{label}: {json.dumps(serialize_result(result), default=str)}")


def main():
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    print("Initializing DEV environment...")

    services = build_in_memory_services()
    services["drive"].add_file("file_42", "folder_inbox")
    engine = build_orchestrator(settings, module_services=services)
    orchestrator = engine.orchestrator
    requester = UserContext(user_id="u1", request_id="dev-1")

    batch = [
        Action(id="a1", module="drive", operation="create_folder", parameters={"name": "Invoices"}),
        Action(id="a2", module="drive", operation="move_file",
               parameters={"fileId": "file_42", "parentId": "folder_archive"}),
        Action(id="a3", module="chat", operation="send_message",
               parameters={"conversationId": "c1", "content": "Invoices are filed"},
               requires_approval=True, affected_users=("u2",)),
        Action(id="a4", module="unknown_mod", operation="x"),
    ]
    for result in orchestrator.execute_actions(batch, requester):
        _show(result.action_id, result)

    for request in orchestrator.pending_approvals("u2"):
        orchestrator.respond_to_approval(request.id, "u2", ResponseKind.APPROVE, reasoning="looks good")
    _show("a3 (resubmitted)", orchestrator.execute_action(batch[2], requester))

    _show("rollback a2", orchestrator.rollback("a2", requester))
    _show("rollback a1", orchestrator.rollback("a1", requester))
    _show("rollback a1 again", orchestrator.rollback("a1", requester))


if __name__ == "__main__":
    main()
