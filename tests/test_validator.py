import pytest

from flowly.core.context import SessionContext
from flowly.core.errors import ParameterValidationError, UnknownCommandError
from flowly.core.validator import (
    autofill,
    is_blank,
    missing_parameters,
    resolve_action,
)


@pytest.fixture
def context():
    return SessionContext(
        session_id="s",
        workspace_slug="beta",
        workspace_name="Beta",
        project_slug="alpha",
        project_name="Alpha",
    )


class TestIsBlank:
    @pytest.mark.parametrize("value", [None, "", "   ", [], {}])
    def test_blank(self, value):
        assert is_blank(value)

    @pytest.mark.parametrize("value", ["x", 0, False, {"name": "x"}])
    def test_not_blank(self, value):
        assert not is_blank(value)


class TestAutofill:
    def test_fills_workspace_and_project_from_context(self, context):
        filled = autofill("createTask", {"taskTitle": "Review Code"}, context)
        assert filled == {
            "taskTitle": "Review Code",
            "workspaceSlug": "beta",
            "projectSlug": "alpha",
        }

    def test_explicit_values_win(self, context):
        filled = autofill(
            "createTask",
            {"workspaceSlug": "beta", "projectSlug": "gamma", "taskTitle": "t"},
            context,
        )
        assert filled["projectSlug"] == "gamma"

    def test_project_not_borrowed_for_another_workspace(self, context):
        filled = autofill("listTasks", {"workspaceSlug": "marketing"}, context)
        assert "projectSlug" not in filled

    def test_context_free_commands_untouched(self, context):
        assert autofill("createWorkspace", {"name": "Design"}, context) == {"name": "Design"}
        assert autofill("listWorkspaces", {}, context) == {}

    def test_current_placeholder_is_replaced(self, context):
        filled = autofill("listProjects", {"workspaceSlug": "current"}, context)
        assert filled["workspaceSlug"] == "beta"

    def test_without_context(self):
        assert autofill("listProjects", {}, None) == {}

    def test_input_is_not_mutated(self, context):
        params = {"taskTitle": "t"}
        autofill("createTask", params, context)
        assert params == {"taskTitle": "t"}


class TestResolveAction:
    def test_blank_required_parameter_is_rejected(self, grammar):
        with pytest.raises(ParameterValidationError) as excinfo:
            resolve_action(grammar, "createWorkspace", {"name": "Design", "description": ""})
        assert excinfo.value.missing == ["description"]
        assert excinfo.value.clarification == (
            "I need the following information to proceed: description."
        )

    def test_optional_parameters_may_be_absent(self, grammar, context):
        action = resolve_action(grammar, "createProject", {"name": "Site"}, context)
        assert action.parameters["workspaceSlug"] == "beta"
        assert "description" not in action.parameters

    def test_unknown_command(self, grammar):
        with pytest.raises(UnknownCommandError):
            resolve_action(grammar, "dropDatabase", {})

    def test_autofill_happens_before_validation(self, grammar, context):
        action = resolve_action(grammar, "listTasks", {}, context)
        assert action.name == "listTasks"
        assert action.parameters == {"workspaceSlug": "beta", "projectSlug": "alpha"}

    def test_every_returned_action_has_its_required_parameters(self, grammar, context):
        for command in grammar:
            for params in ({}, {name: "x" for name in command.required}):
                try:
                    action = resolve_action(grammar, command.name, params, context)
                except ParameterValidationError as exc:
                    assert exc.missing
                    continue
                assert missing_parameters(grammar, command.name, action.parameters) == []
