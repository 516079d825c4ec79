"""
Configuration utilities for the LaunchKey SDK.
Reads settings from ``LAUNCHKEY_``-prefixed environment variables and from
JSON or YAML files.
"""

import json
import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

_DURATION_PATTERN = re.compile(r'^(\d+(?:\.\d+)?)\s*([smhd]?)$')
_DURATION_UNITS = {'': 'seconds', 's': 'seconds', 'm': 'minutes', 'h': 'hours', 'd': 'days'}


def get_config_value(key: str, default: Optional[str] = None, env_prefix: str = "LAUNCHKEY_") -> Optional[str]:
    """Read ``<env_prefix><KEY>`` from the environment."""
    return os.environ.get(f"{env_prefix}{key.upper()}", default)


def parse_duration_string(duration_str: str) -> timedelta:
    """
    Parse durations like '30s', '5m', '2h' or '1d'. A bare number is seconds.
    """
    if not isinstance(duration_str, str):
        raise ValueError("Duration must be a string")

    match = _DURATION_PATTERN.match(duration_str.strip().lower())
    if not match:
        raise ValueError(f"Invalid duration format: {duration_str}")

    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: float(amount)})


def to_duration(value: Union[str, int, float, timedelta]) -> timedelta:
    """Coerce a duration string or a number of seconds to a timedelta."""
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    return parse_duration_string(value)


def load_config_file(file_path: str) -> Dict[str, Any]:
    """Load a JSON or YAML configuration file, chosen by extension."""
    path = Path(file_path)
    loaders = {
        '.json': json.load,
        '.yaml': yaml.safe_load,
        '.yml': yaml.safe_load,
    }
    loader = loaders.get(path.suffix.lower())
    if loader is None:
        raise ValueError(f"Unsupported configuration file format: {path.suffix}")

    with path.open('r', encoding='utf-8') as f:
        return loader(f) or {}


def read_text_file(file_path: str) -> str:
    """Read a text file such as a PEM encoded key."""
    return Path(file_path).read_text(encoding='utf-8')
