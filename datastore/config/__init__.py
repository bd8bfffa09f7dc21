"""Datastore configuration: models, durations, and YAML loading."""

from .durations import format_duration, parse_duration
from .env_substitution import expand_datastore_block, expand_env_value, expand_params
from .loader import load_datastore_config
from .models import DataStoreConfig

__all__ = [
    "DataStoreConfig",
    "expand_datastore_block",
    "expand_env_value",
    "expand_params",
    "format_duration",
    "load_datastore_config",
    "parse_duration",
]
