"""Configuration management."""

from pathlib import Path
from typing import Any, Optional

import yaml

from livesync.models import Config


def load_config(config_path: Optional[Path] = None, **overrides: Any) -> Config:
    """Load configuration from YAML file.

    Keyword overrides that are not None take precedence over file values,
    which is how CLI options are layered on top of config.yaml.
    """
    if config_path is None:
        config_path = Path("config.yaml")

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

    data.update({key: value for key, value in overrides.items() if value is not None})

    return Config(**data)
