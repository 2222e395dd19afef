from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from flowly.core.context import SessionContext
from flowly.core.prompt import NO_WORKSPACES_MARKER, build_messages, compile_system_prompt


class TestCompileSystemPrompt:
    def test_is_deterministic(self, grammar):
        context = SessionContext(session_id="s", workspace_slug="beta", workspace_name="Beta")
        first = compile_system_prompt(grammar, context, ["beta", "marketing"])
        second = compile_system_prompt(grammar, context.copy(), ["beta", "marketing"])
        assert first == second

    def test_lists_every_command_and_slug(self, grammar):
        prompt = compile_system_prompt(grammar, None, ["beta", "marketing"])
        for command in grammar:
            assert f"- {command.name}:" in prompt
        assert '-> slug: "beta"' in prompt
        assert '-> slug: "marketing"' in prompt
        assert "CURRENT CONTEXT:\n" not in prompt
        assert "- Current Workspace:" not in prompt

    def test_marks_empty_workspace_list(self, grammar):
        assert NO_WORKSPACES_MARKER in compile_system_prompt(grammar, None, [])

    def test_includes_current_context_and_projects(self, grammar):
        context = SessionContext(
            session_id="s",
            workspace_slug="beta",
            workspace_name="Beta",
            project_slug="alpha",
            project_name="Alpha",
            workspace_projects=["alpha", "gamma"],
        )
        prompt = compile_system_prompt(grammar, context, ["beta"])
        assert "- Current Workspace: Beta (slug: beta)" in prompt
        assert "- Current Project: Alpha (slug: alpha)" in prompt
        assert "AVAILABLE PROJECTS IN CURRENT WORKSPACE: alpha, gamma" in prompt

    def test_empty_project_list_is_explicit(self, grammar):
        context = SessionContext(session_id="s", workspace_slug="beta", workspace_projects=[])
        prompt = compile_system_prompt(grammar, context, ["beta"])
        assert "AVAILABLE PROJECTS IN CURRENT WORKSPACE: none" in prompt


class TestBuildMessages:
    def test_orders_system_history_then_message(self):
        messages = build_messages(
            "system text",
            [
                {"role": "user", "content": "hi"},
                {"role": "assistant", "content": "hello"},
                {"role": "tool", "content": "ignored"},
            ],
            "list my workspaces",
        )
        assert [type(m) for m in messages] == [
            SystemMessage,
            HumanMessage,
            AIMessage,
            HumanMessage,
        ]
        assert messages[0].content == "system text"
        assert messages[-1].content == "list my workspaces"

    def test_history_is_optional(self):
        messages = build_messages("sys", [], "hi")
        assert len(messages) == 2
