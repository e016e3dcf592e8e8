from src.core.domain.action import Action
from src.core.domain.user_context import UserContext
from src.rollback.domain.rollback_plan import ResultRef, RollbackStep
from src.rollback.services.rollback_planner import DEFAULT_COMPENSATIONS, RollbackPlanner

CTX = UserContext(user_id="u1")


def test_create_folder_compensates_with_delete_if_empty():
    plan = RollbackPlanner().plan(Action(id="a1", module="drive", operation="create_folder",
                                         parameters={"name": "Invoices"}), CTX)

    step = plan.steps[0]
    assert (step.module, step.operation) == ("drive", "delete_folder")
    assert step.parameters == {"folderId": ResultRef("folderId"), "onlyIfEmpty": True}
    assert plan.conditions == ("folder is still empty",)


def test_move_file_restores_previous_parent():
    plan = RollbackPlanner().plan(Action(id="a1", module="drive", operation="move_file",
                                         parameters={"fileId": "f1", "parentId": "p2"}), CTX)

    bound = plan.bind({"fileId": "f1", "parentId": "p2", "previousParentId": "p1"})
    assert bound.steps[0].parameters == {"fileId": "f1", "parentId": "p1"}


def test_action_without_inverse_gets_empty_plan():
    planner = RollbackPlanner(timeout_minutes=15)

    plan = planner.plan(Action(id="a1", module="chat", operation="send_message",
                               parameters={"conversationId": "c1", "content": "hi"}), CTX)

    assert plan.is_empty
    assert plan.timeout == 15


def test_missing_forward_parameter_yields_empty_plan():
    plan = RollbackPlanner().plan(Action(id="a1", module="drive", operation="share_file"), CTX)

    assert plan.is_empty


def test_bulk_priority_update_is_not_compensated():
    plan = RollbackPlanner().plan(Action(id="a1", module="tasks", operation="update_task_priority",
                                         parameters={"suggestions": []}), CTX)

    assert plan.is_empty


def test_registered_compensation_orders_first_listed_step_last():
    planner = RollbackPlanner()
    planner.register_compensation("crm", "create_lead", lambda action, ctx: [
        RollbackStep("crm", "delete_lead", {"leadId": ResultRef("leadId")}),
        RollbackStep("crm", "unlink_contact", {"contactId": action.parameters["contactId"]}),
    ])

    plan = planner.plan(Action(id="a1", module="crm", operation="create_lead",
                               parameters={"contactId": "c9"}), CTX)

    assert [s.operation for s in plan.ordered_steps()] == ["unlink_contact", "delete_lead"]


def test_compensation_table_covers_reversible_operations():
    assert ("scheduling", "assign_shift") in DEFAULT_COMPENSATIONS
    assert ("hr", "clock_in") in DEFAULT_COMPENSATIONS
    assert ("notifications", "schedule_reminder") in DEFAULT_COMPENSATIONS
    assert ("chat", "send_message") not in DEFAULT_COMPENSATIONS
