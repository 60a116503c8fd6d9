"""Locate, expand and validate iam-console.yaml."""

import logging
import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import ConsoleConfig

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "IAM_CONSOLE_CONFIG"
PROJECT_CONFIG = Path("iam-console.yaml")
USER_CONFIG = Path(".iam-console") / "config.yaml"

_ENV_REF = re.compile(r"\$\{(\w+)\}")


def config_candidates(cli_path: str | None = None) -> list[tuple[Path, bool]]:
    """Paths to try, most specific first, each flagged as explicitly requested.

    Order: ``--config``, then ``$IAM_CONSOLE_CONFIG``, then the project file,
    then the per-user file.
    """
    candidates: list[tuple[Path, bool]] = []
    if cli_path:
        candidates.append((Path(cli_path).expanduser(), True))
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append((Path(env_path).expanduser(), True))
    candidates.append((PROJECT_CONFIG, False))
    candidates.append((Path.home() / USER_CONFIG, False))
    return candidates


def load_config(cli_path: str | None = None) -> ConsoleConfig:
    """Return the first config found, or defaults.

    An explicitly requested file must exist. Empty files are skipped.
    """
    for path, explicit in config_candidates(cli_path):
        if not path.exists():
            if explicit:
                raise ValueError(f"Config file not found: {path}")
            continue
        raw = _read_yaml(path)
        if raw is None:
            continue
        if not isinstance(raw, dict):
            raise ValueError(f"Invalid config in {path}: expected a mapping at the top level")
        try:
            config = ConsoleConfig.model_validate(_expand_env_vars(raw))
        except ValidationError as e:
            raise ValueError(f"Invalid config in {path}: {e}") from e
        logger.debug("Loaded config from %s", path)
        return config

    return ConsoleConfig()


def _read_yaml(path: Path) -> object:
    try:
        with open(path) as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e


def _expand_env_vars(obj: object) -> object:
    """Replace ${VAR} in string values; unset variables become empty."""
    if isinstance(obj, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), obj)
    if isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


# Default YAML template for `iam-console config init`
DEFAULT_CONFIG_TEMPLATE = """\
# iam-console.yaml

# IAM backend
api:
  base_url: "http://localhost:5000"
  # timeout: 30                # seconds; unset = transport default
  user_agent: "iam-console"

# Session storage (holds the login token and the cached permission list)
session:
  backend: "file"              # file | memory
  path: "~/.iam-console/session.json"

# Console behaviour
console:
  refetch_after_mutation: true # re-list after every create/update/delete/assign
  banner_seconds: 2.0

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""
