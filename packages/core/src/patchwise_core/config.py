import os
from pathlib import Path
from typing import Optional

import yaml

from patchwise_core.prompts import DEFAULT_GUIDELINES

DEFAULT_CONFIG: dict = {
    "model": "anthropic",
    "model_name": None,  # None = the provider's default model
    "token_budget": 16000,  # input budget per review conversation
    "max_parallel_requests": 8,
    "include_suggestions": False,  # also generate inline code fixes
    "guidelines": None,  # None = use built-in default; set to a path string to override
    "exclude": [],  # fnmatch patterns or directory names to skip (e.g. "migrations/", "*.min.js")
    "review_draft_prs": False,
}


def load_config(config_path: str = ".patchwise.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .patchwise.yml in the current directory
      3. CLI argument overrides
    """
    config = {**DEFAULT_CONFIG, "exclude": list(DEFAULT_CONFIG["exclude"])}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    token_budget = config.get("token_budget")
    if not isinstance(token_budget, int) or token_budget <= 0:
        raise ValueError(f"token_budget must be a positive integer, got {token_budget!r}")

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

    return config


def load_guidelines(config: dict) -> str:
    """
    Load review guidelines.

    If ``guidelines`` is set in config, loads from that path (relative to cwd).
    Otherwise falls back to the built-in default.
    """
    custom_path = config.get("guidelines")
    if custom_path:
        p = Path(custom_path)
        if not p.exists():
            raise FileNotFoundError(f"Guidelines file not found: {custom_path}")
        return p.read_text()

    return DEFAULT_GUIDELINES
