import pytest

from src.core.domain.action import Action
from src.core.domain.exceptions import InvalidActionError


def test_action_parameters_are_read_only_and_detached():
    source = {"name": "Invoices"}
    action = Action(id="a1", module="drive", operation="create_folder", parameters=source)

    source["name"] = "changed"
    assert action.parameters["name"] == "Invoices"
    with pytest.raises(TypeError):
        action.parameters["name"] = "x"


@pytest.mark.parametrize("field", ["id", "module", "operation"])
def test_blank_identity_fields_are_rejected(field):
    fields = {"id": "a1", "module": "drive", "operation": "create_folder"}
    fields[field] = "  "

    with pytest.raises(InvalidActionError):
        Action(**fields)


def test_affected_users_are_deduplicated_in_order():
    action = Action(id="a1", module="chat", operation="send_message", affected_users=("u2", "u3", "u2"))

    assert action.affected_users == ("u2", "u3")


def test_with_parameters_merges_overrides_into_a_copy():
    action = Action(id="a1", module="chat", operation="send_message",
                    parameters={"conversationId": "c1", "content": "hi"}, requires_approval=True)

    modified = action.with_parameters({"content": "hello"})

    assert dict(modified.parameters) == {"conversationId": "c1", "content": "hello"}
    assert modified.requires_approval is True
    assert action.parameters["content"] == "hi"


@pytest.mark.parametrize("value", ["false", 1, None])
def test_requires_approval_must_be_a_boolean(value):
    with pytest.raises(InvalidActionError):
        Action(id="a1", module="chat", operation="send_message", requires_approval=value)


@pytest.mark.parametrize("value", ["u2", ("u2", 3), 7])
def test_affected_users_must_be_a_sequence_of_ids(value):
    with pytest.raises(InvalidActionError):
        Action(id="a1", module="chat", operation="send_message", affected_users=value)
