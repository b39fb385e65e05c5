"""Unit tests for action configuration."""

import pytest
from pydantic import ValidationError

from src.action.config import (
    ActionSettings,
    get_settings,
    parse_key_value_block,
)

from tests.action.factories import make_settings


class TestDefaults:
    def test_defaults(self):
        settings = make_settings()

        assert settings.trigger_phrase == "@claude"
        assert settings.branch_prefix == "claude/"
        assert settings.timeout_minutes == 30
        assert settings.max_turns is None
        assert settings.use_commit_signing is False
        assert settings.api_url == "https://api.github.com"

    def test_derived_values(self):
        settings = make_settings(
            allowed_tools="Bash, Edit,,mcp__github__get_issue ",
            additional_permissions="actions: read",
        )

        assert settings.owner == "octo-org"
        assert settings.repo == "widgets"
        assert settings.allowed_tool_names == ["Bash", "Edit", "mcp__github__get_issue"]
        assert settings.permissions == {"actions": "read"}


class TestValidation:
    @pytest.mark.parametrize("timeout", [0, 361])
    def test_timeout_range(self, timeout):
        with pytest.raises(ValidationError, match="Invalid timeout"):
            make_settings(timeout_minutes=timeout)

    @pytest.mark.parametrize("turns", [0, 101])
    def test_max_turns_range(self, turns):
        with pytest.raises(ValidationError, match="Invalid max turns"):
            make_settings(max_turns=turns)

    @pytest.mark.parametrize("repository", ["widgets", "octo-org/", "/widgets", "a/b/c"])
    def test_repository_format(self, repository):
        with pytest.raises(ValidationError, match="Invalid repository format"):
            make_settings(repository=repository)

    def test_unsupported_event(self):
        with pytest.raises(ValidationError, match="Unsupported event type"):
            make_settings(event_name="push")

    def test_bedrock_and_vertex_are_exclusive(self):
        with pytest.raises(ValidationError, match="Bedrock and Vertex"):
            make_settings(use_bedrock=True, use_vertex=True)

    def test_some_authentication_is_required(self):
        with pytest.raises(ValidationError, match="No authentication method"):
            make_settings(github_token="")

    def test_cloud_provider_counts_as_authentication(self):
        assert make_settings(github_token="", use_vertex=True).use_vertex is True

    def test_malformed_key_value_block(self):
        with pytest.raises(ValidationError):
            make_settings(claude_env="- just\n- a list")


class TestEnvironment:
    def test_reads_workflow_context_and_inputs(self, monkeypatch):
        monkeypatch.setenv("GITHUB_REPOSITORY", "octo-org/widgets")
        monkeypatch.setenv("GITHUB_EVENT_NAME", "issues")
        monkeypatch.setenv("GITHUB_EVENT_PATH", "/tmp/event.json")
        monkeypatch.setenv("GITHUB_TOKEN", "ghs_env")
        monkeypatch.setenv("INPUT_TRIGGER_PHRASE", "/claude")
        monkeypatch.setenv("INPUT_TIMEOUT_MINUTES", "45")
        monkeypatch.setenv("INPUT_USE_COMMIT_SIGNING", "true")

        settings = get_settings()

        assert settings.event_name == "issues"
        assert settings.event_path == "/tmp/event.json"
        assert settings.github_token == "ghs_env"
        assert settings.trigger_phrase == "/claude"
        assert settings.timeout_minutes == 45
        assert settings.use_commit_signing is True

    def test_input_token_takes_precedence(self, monkeypatch):
        monkeypatch.setenv("GITHUB_REPOSITORY", "octo-org/widgets")
        monkeypatch.setenv("GITHUB_EVENT_NAME", "issues")
        monkeypatch.setenv("GITHUB_TOKEN", "ghs_env")
        monkeypatch.setenv("INPUT_GITHUB_TOKEN", "ghs_input")

        assert ActionSettings().github_token == "ghs_input"

    def test_empty_inputs_fall_back_to_defaults(self, monkeypatch):
        monkeypatch.setenv("GITHUB_REPOSITORY", "octo-org/widgets")
        monkeypatch.setenv("GITHUB_EVENT_NAME", "issues")
        monkeypatch.setenv("GITHUB_TOKEN", "ghs_env")
        monkeypatch.setenv("INPUT_TRIGGER_PHRASE", "")
        monkeypatch.setenv("INPUT_TIMEOUT_MINUTES", "")

        settings = ActionSettings()

        assert settings.trigger_phrase == "@claude"
        assert settings.timeout_minutes == 30

    def test_anthropic_model_alias(self, monkeypatch):
        monkeypatch.setenv("GITHUB_REPOSITORY", "octo-org/widgets")
        monkeypatch.setenv("GITHUB_EVENT_NAME", "issues")
        monkeypatch.setenv("GITHUB_TOKEN", "ghs_env")
        monkeypatch.setenv("INPUT_ANTHROPIC_MODEL", "claude-legacy-name")

        assert ActionSettings().model == "claude-legacy-name"

    def test_missing_repository(self, monkeypatch):
        monkeypatch.setenv("GITHUB_EVENT_NAME", "issues")
        monkeypatch.setenv("GITHUB_TOKEN", "ghs_env")

        with pytest.raises(ValidationError):
            get_settings()


class TestKeyValueBlock:
    @pytest.mark.parametrize("text", [None, "", "  \n ", "# only a comment"])
    def test_empty(self, text):
        assert parse_key_value_block(text) == {}

    def test_values_become_strings(self):
        block = "actions: read\nDEBUG: true\nRETRIES: 3\nEMPTY:\n# comment\n"

        assert parse_key_value_block(block) == {
            "actions": "read",
            "DEBUG": "true",
            "RETRIES": "3",
            "EMPTY": "",
        }

    def test_values_may_contain_colons(self):
        assert parse_key_value_block("URL: http://localhost:8080") == {
            "URL": "http://localhost:8080"
        }

    @pytest.mark.parametrize("text", ["not a mapping", "key: [unclosed"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_key_value_block(text)
