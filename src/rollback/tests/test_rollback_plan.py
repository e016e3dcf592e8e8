from src.rollback.domain.rollback_plan import ResultRef, RollbackPlan, RollbackStep


def test_steps_run_in_descending_order():
    plan = RollbackPlan(steps=(
        RollbackStep("drive", "delete_folder", {}, order=1),
        RollbackStep("drive", "unshare_file", {}, order=3),
        RollbackStep("drive", "move_file", {}, order=2),
    ))

    assert [s.order for s in plan.ordered_steps()] == [3, 2, 1]


def test_bind_resolves_refs_from_result_payload():
    plan = RollbackPlan(steps=(
        RollbackStep("drive", "delete_folder", {"folderId": ResultRef("folderId"), "onlyIfEmpty": True}, order=1),
    ))

    bound = plan.bind({"folderId": "folder_7", "name": "Invoices"})

    assert bound.steps[0].parameters == {"folderId": "folder_7", "onlyIfEmpty": True}
    assert bound.steps[0].unresolved == ()
    assert plan.steps[0].unresolved == ("folderId",)


def test_bind_drops_refs_the_payload_cannot_satisfy():
    plan = RollbackPlan(steps=(
        RollbackStep("drive", "move_file", {"fileId": "f1", "parentId": ResultRef("previousParentId")}, order=1),
    ))

    assert plan.bind({"fileId": "f1"}).steps[0].parameters == {"fileId": "f1"}
    assert plan.bind(None).steps[0].parameters == {"fileId": "f1"}


def test_empty_plan_means_nothing_to_undo():
    plan = RollbackPlan()

    assert plan.is_empty
    assert plan.timeout == 60
    assert plan.bind({"x": 1}).is_empty
