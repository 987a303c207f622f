import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "repo": None,  # "owner/name"; None = pass --repo or detect from the git remote
    "changelog": "CHANGELOG.md",
    "version": "",  # "" = Unreleased, else the latest released version
    "limit": 0,  # 0 = check every PR in the section
    "oracle": "none",  # "none" | "openai" | "anthropic"
    "oracle_model": None,  # None = provider default
    "cache": True,
    "cache_path": "~/.changelens/cache.db",
    "cache_ttl_days": 7,
    "timeout": 10,
}

ORACLE_CHOICES = ("none", "openai", "anthropic")


def load_config(config_path: str = ".changelens.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .changelens.yml in the current directory
      3. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"{config_path} must contain a YAML mapping, got {type(file_config).__name__}")
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Credentials only ever come from the environment, never from the file.
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")

    return config


def split_repo(slug: str) -> tuple[str, str]:
    """Split "owner/name" into its parts."""
    owner, sep, name = slug.strip().partition("/")
    if not sep or not owner or not name or "/" in name:
        raise ValueError(f"Repository must be in owner/name format, got {slug!r}")
    return owner, name
