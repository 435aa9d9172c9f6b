"""Settings loader for simhost.

This module loads settings from a YAML file and environment variables.
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

from ..simulator.errors import ConfigError


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "text"
    file: Optional[str] = None


@dataclass
class Settings:
    """Settings for one simhost process."""

    simulator: Dict[str, Any] = field(default_factory=dict)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(config_path: Optional[str] = None) -> Settings:
    """Load settings from a YAML file and environment variables.

    ``SIMHOST_PORT`` and ``SIMHOST_DIR`` override the simulator's ``port`` and
    ``dir`` options.

    Args:
        config_path: Path to the settings file. If None, looks for simhost.yaml
            in the current directory and falls back to defaults.

    Returns:
        Loaded Settings object.

    Raises:
        ConfigError: If an explicit file is missing or a file is invalid.
    """
    load_dotenv()

    data: Dict[str, Any] = {}
    if config_path is None:
        default_path = Path("simhost.yaml")
        if default_path.exists():
            config_path = str(default_path)

    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse YAML configuration: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError("Configuration root must be a mapping")

    simulator = data.get('simulator') or {}
    if not isinstance(simulator, dict):
        raise ConfigError("'simulator' section must be a mapping")
    simulator = dict(simulator)

    port = os.getenv('SIMHOST_PORT')
    if port:
        try:
            simulator['port'] = int(port)
        except ValueError as exc:
            raise ConfigError(f"SIMHOST_PORT must be an integer, got {port!r}") from exc
    project_dir = os.getenv('SIMHOST_DIR')
    if project_dir:
        simulator['dir'] = project_dir

    log_data = data.get('logging') or {}
    logging_config = LoggingConfig(
        level=log_data.get('level', 'INFO'),
        format=log_data.get('format', 'text'),
        file=log_data.get('file'),
    )

    return Settings(simulator=simulator, logging=logging_config)
