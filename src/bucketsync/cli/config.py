"""Configuration utilities for the bucketsync CLI.

Settings come from the environment, falling back to ~/.bucketsync/config.json
for anything the environment does not set.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path

# Keys accepted in config.json
CONFIG_KEYS = (
    "R2_BUCKET_NAME",
    "R2_MOUNT_PATH",
    "CF_ACCOUNT_ID",
    "R2_ACCESS_KEY_ID",
    "R2_SECRET_ACCESS_KEY",
    "BUCKETSYNC_CONFIG_DIR",
    "BUCKETSYNC_WORKSPACE_DIR",
    "BUCKETSYNC_SKILLS_DIR",
)

SECRET_KEYS = frozenset({"R2_ACCESS_KEY_ID", "R2_SECRET_ACCESS_KEY"})


def get_config_dir() -> Path:
    """Get the configuration directory for bucketsync.

    Returns:
        Path to ~/.bucketsync or equivalent.
    """
    return Path.home() / ".bucketsync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, str]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, str]) -> None:
    """Save configuration to config file, readable by the owner only."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))
    config_file.chmod(0o600)


def get_environ() -> dict[str, str]:
    """Merge config file values under the process environment.

    Returns:
        Mapping suitable for StorageConfig.from_env() and friends.
    """
    merged = {k: v for k, v in load_config().items() if k in CONFIG_KEYS}
    merged.update(os.environ)
    return merged


def mask_secret(value: str) -> str:
    """Hide all but the last four characters of a secret."""
    if len(value) <= 4:
        return "****"
    return "*" * (len(value) - 4) + value[-4:]


def configure_logging(verbose: bool) -> None:
    """Send bucketsync logs to stderr, DEBUG when verbose else WARNING."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    bucketsync_logger = logging.getLogger("bucketsync")
    for existing in bucketsync_logger.handlers[:]:
        bucketsync_logger.removeHandler(existing)
    bucketsync_logger.addHandler(handler)
    bucketsync_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    bucketsync_logger.propagate = False
