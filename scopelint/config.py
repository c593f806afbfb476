"""
Configuration for scopelint runs

Defaults live in the ScopeLintConfig dataclass. A YAML file can override any
field, and SCOPELINT_LOG_LEVEL overrides the log level.
"""

import os
from dataclasses import dataclass, fields
from typing import Optional

import yaml

from scopelint.permissions_schema import DEFAULT_LEAST_PRIVILEGE_MARKER


@dataclass
class ScopeLintConfig:
    """Configuration for catalog loading and validation"""
    request_timeout_seconds: float = 30.0  # Catalogs fetched over HTTP
    least_privilege_marker: str = DEFAULT_LEAST_PRIVILEGE_MARKER
    fail_on_errors: bool = True  # Non-zero exit code when validation errors exist
    log_level: str = "WARNING"


def load_config(config_path: Optional[str] = None) -> ScopeLintConfig:
    """
    Load configuration from an optional YAML file

    Unknown keys are rejected so that typos don't silently fall back to defaults.

    Raises:
        ValueError: If the file is not a mapping or has unknown keys
    """
    values = {}
    if config_path:
        with open(config_path, 'r', encoding='utf-8') as f:
            values = yaml.safe_load(f) or {}
        if not isinstance(values, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping")

        known = {f.name for f in fields(ScopeLintConfig)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown config keys in {config_path}: {', '.join(unknown)}")

    env_level = os.environ.get('SCOPELINT_LOG_LEVEL')
    if env_level:
        values['log_level'] = env_level

    config = ScopeLintConfig(**values)
    config.log_level = str(config.log_level).upper()
    return config
