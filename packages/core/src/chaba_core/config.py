import copy
import os
from pathlib import Path
from typing import Optional

import yaml

from chaba_core.errors import ConfigError

DEFAULT_CONFIG: dict = {
    "worktree": {
        "base_dir": "~/reviews",
        "naming_template": "pr-{pr}",  # {pr} is replaced with the PR number or branch hash
    },
    "sandbox": {
        "auto_install_deps": True,
        "copy_env_from_main": True,
        "additional_env_files": [".env.local"],
        "node": {"package_manager": "auto"},  # auto | npm | yarn | pnpm | bun
        "port": {"enabled": True, "range_start": 3000, "range_end": 4000},
    },
    "agents": {
        "enabled": True,
        "default_agents": ["claude"],
        "thorough_agents": ["claude", "codex", "gemini"],
        "timeout": 600,  # seconds, per agent
        "parallel": True,
    },
    "hooks": {
        "post_create": None,  # shell command started in the background after creation
        "log_file": "~/.chaba/hooks.log",  # hook output; null discards it
    },
    "state_path": "~/.chaba/state.yaml",
}

LOCAL_CONFIG_NAME = "chaba.yaml"
USER_CONFIG_PATH = Path("~/.config/chaba/chaba.yaml")

_MIN_PORT = 1024
_MAX_PORT = 65535
_MIN_PORT_RANGE = 10


def find_config_file(config_path: Optional[str] = None) -> Optional[Path]:
    """Return the config file to use, or None to run on defaults.

    Lookup order: explicit path, $CHABA_CONFIG, ./chaba.yaml, ~/.config/chaba/chaba.yaml.
    An explicitly requested file that does not exist is an error.
    """
    explicit = config_path or os.environ.get("CHABA_CONFIG")
    if explicit:
        path = Path(explicit).expanduser()
        if not path.exists():
            raise ConfigError(f"Config file not found: {explicit}")
        return path

    for candidate in (Path(LOCAL_CONFIG_NAME), USER_CONFIG_PATH.expanduser()):
        if candidate.exists():
            return candidate
    return None


def load_config(config_path: Optional[str] = None, cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. The first chaba.yaml found (see find_config_file)
      3. CLI argument overrides
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    path = find_config_file(config_path)
    if path is not None:
        try:
            with open(path) as f:
                file_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(file_config, dict):
            raise ConfigError(f"{path} must contain a mapping at the top level.")
        _deep_merge(config, file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    if os.environ.get("CHABA_STATE_PATH"):
        config["state_path"] = os.environ["CHABA_STATE_PATH"]

    config["worktree"]["base_dir"] = str(Path(config["worktree"]["base_dir"]).expanduser())
    config["state_path"] = str(Path(config["state_path"]).expanduser())

    validate_config(config)
    return config


def validate_config(config: dict) -> None:
    port = config["sandbox"]["port"]
    start, end = port["range_start"], port["range_end"]
    if start >= end:
        raise ConfigError(f"Invalid port range: range_start ({start}) must be less than range_end ({end})")
    if start < _MIN_PORT:
        raise ConfigError(f"Invalid port range: range_start ({start}) should be >= {_MIN_PORT} (avoid well-known ports)")
    if end > _MAX_PORT:
        raise ConfigError(f"Invalid port range: range_end ({end}) must be <= {_MAX_PORT}")
    if end - start < _MIN_PORT_RANGE:
        raise ConfigError(
            f"Invalid port range: range is too small ({end - start} ports). Minimum {_MIN_PORT_RANGE} ports recommended."
        )

    timeout = config["agents"]["timeout"]
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError(f"Invalid agents.timeout: {timeout!r} (must be a positive number of seconds)")

    template = config["worktree"]["naming_template"]
    if not template or "{pr}" not in template:
        raise ConfigError(f"Invalid worktree.naming_template: {template!r} (must contain {{pr}})")


def example_config() -> str:
    """Render the built-in defaults as a chaba.yaml document."""
    return yaml.safe_dump(DEFAULT_CONFIG, default_flow_style=False, sort_keys=False)


def _deep_merge(base: dict, overrides: dict) -> None:
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
