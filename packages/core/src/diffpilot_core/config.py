import logging
import os
from pathlib import Path
from typing import Optional

import yaml

from diffpilot_core.errors import ConfigurationError, ValidationError
from diffpilot_core.validation import safe_join

logger = logging.getLogger(__name__)

DEFAULT_REVIEWS_DIR = ".diffpilot/reviews"

DEFAULT_CONFIG: dict = {
    "reviews_directory": DEFAULT_REVIEWS_DIR,
    "store": "file",  # "file" | "noop"
    "base_branch": "main",
    "fallback_branch": "main",  # used when the current branch cannot be resolved or is unsafe
    "scm_timeout": 5.0,  # seconds to wait for the git repository to become available
    "scm_poll_interval": 0.1,
    "compare_ref": "HEAD",
}

_STORE_TYPES = ("file", "noop")


def load_config(config_path: str = ".diffpilot.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .diffpilot.yml in the current directory
      3. DIFFPILOT_REVIEWS_DIR environment variable
      4. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path, encoding="utf-8") as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {config_path}")
        config.update(file_config)

    env_dir = os.environ.get("DIFFPILOT_REVIEWS_DIR")
    if env_dir:
        config["reviews_directory"] = env_dir

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    if config["store"] not in _STORE_TYPES:
        raise ConfigurationError(
            f"Unknown store: {config['store']!r}. Choose one of: {', '.join(_STORE_TYPES)}.", "store"
        )

    return config


def resolve_reviews_directory(config: dict, workspace_root: str | Path) -> Path:
    """
    Return the absolute reviews directory for a workspace.

    The configured value must stay inside the workspace. An invalid value is
    logged and replaced by the default directory rather than failing.
    """
    reviews_dir = config.get("reviews_directory") or DEFAULT_REVIEWS_DIR
    try:
        return safe_join(workspace_root, reviews_dir)
    except ValidationError as e:
        logger.error("Invalid reviews directory %r: %s", reviews_dir, e)
        return safe_join(workspace_root, DEFAULT_REVIEWS_DIR)
