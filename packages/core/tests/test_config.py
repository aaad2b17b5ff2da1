"""Tests for configuration loading."""

import pytest

from patchwise_core.config import load_config, load_guidelines
from patchwise_core.prompts import DEFAULT_GUIDELINES


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["model"] == "anthropic"
    assert config["model_name"] is None
    assert config["token_budget"] == 16000
    assert config["max_parallel_requests"] == 8
    assert config["include_suggestions"] is False
    assert config["guidelines"] is None
    assert config["exclude"] == []
    assert config["review_draft_prs"] is False


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".patchwise.yml"
    cfg.write_text("model: openai\ntoken_budget: 8000\ninclude_suggestions: true\n")
    config = load_config(config_path=str(cfg))
    assert config["model"] == "openai"
    assert config["token_budget"] == 8000
    assert config["include_suggestions"] is True


def test_exclude_patterns_loaded(tmp_path):
    cfg = tmp_path / ".patchwise.yml"
    cfg.write_text("exclude:\n  - migrations/\n  - '*.min.js'\n")
    config = load_config(config_path=str(cfg))
    assert config["exclude"] == ["migrations/", "*.min.js"]


def test_empty_config_file_uses_defaults(tmp_path):
    cfg = tmp_path / ".patchwise.yml"
    cfg.write_text("")
    assert load_config(config_path=str(cfg))["token_budget"] == 16000


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / ".patchwise.yml"
    cfg.write_text("model: openai\ntoken_budget: 8000\n")
    config = load_config(config_path=str(cfg), cli_overrides={"model": "anthropic", "token_budget": None})
    assert config["model"] == "anthropic"
    # None overrides are ignored
    assert config["token_budget"] == 8000


@pytest.mark.parametrize("budget", [0, -5, "lots"])
def test_invalid_token_budget_rejected(tmp_path, budget):
    with pytest.raises(ValueError, match="token_budget"):
        load_config(config_path=str(tmp_path / "missing.yml"), cli_overrides={"token_budget": budget})


def test_credentials_read_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "gh-tok")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "ant-key")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    config = load_config(config_path=str(tmp_path / "missing.yml"))
    assert config["github_token"] == "gh-tok"
    assert config["anthropic_api_key"] == "ant-key"
    assert config["openai_api_key"] is None


def test_default_guidelines_used_when_not_configured():
    assert load_guidelines({"guidelines": None}) == DEFAULT_GUIDELINES


def test_custom_guidelines_loaded(tmp_path):
    guide = tmp_path / "guidelines.md"
    guide.write_text("- Prefer pathlib over os.path")
    assert load_guidelines({"guidelines": str(guide)}) == "- Prefer pathlib over os.path"


def test_missing_guidelines_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_guidelines({"guidelines": str(tmp_path / "nope.md")})
