"""Load DataStoreConfig from YAML files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from datastore.exceptions import ConfigValidationError

from .env_substitution import expand_datastore_block
from .models import DataStoreConfig

logger = logging.getLogger(__name__)


def _read_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    logger.info("Loading datastore config from %s", path)

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(config_path, "r", encoding="utf-8") as handle:
            cfg = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(
            f"Invalid YAML in config file: {exc}", config_path=str(path)
        ) from exc

    if not isinstance(cfg, dict):
        raise ConfigValidationError(
            "Config must be a YAML dictionary/object", config_path=str(path)
        )

    return cfg


def load_datastore_config(
    path: Union[str, Path],
    section: str = "datastore",
    *,
    enable_env_substitution: bool = True,
) -> DataStoreConfig:
    """Load the datastore section of a YAML config file.

    Expected layout::

        datastore:
          type: HTTP
          params:
            base_url: https://example.com/data/
            header_Authorization: "Bearer ${API_TOKEN}"

    Args:
        path: Path to config YAML file
        section: Top-level key holding the datastore block
        enable_env_substitution: Expand ${VAR} and ${VAR:default} in params values
    """
    cfg = _read_yaml(path)

    block = cfg.get(section)
    if block is None:
        raise ConfigValidationError(
            f"Config is missing the '{section}' section",
            config_path=str(path),
            key=section,
        )
    try:
        if enable_env_substitution:
            block = expand_datastore_block(block)
        config = DataStoreConfig.from_dict(block)
    except ConfigValidationError as exc:
        raise ConfigValidationError(
            exc.message, config_path=str(path), key=exc.key
        ) from exc

    logger.debug(
        "Loaded datastore config type=%s params=%s",
        config.type,
        sorted(config.params.keys()),
    )
    return config
