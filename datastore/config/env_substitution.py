"""Environment variable expansion for datastore params.

Only string values under a datastore block's ``params`` are expanded; that is
where secrets such as ``header_Authorization: "Bearer ${API_TOKEN}"`` live.
The backend ``type`` and any other keys are taken literally.

Syntax:
- ${VAR_NAME} - fails if VAR_NAME is not set
- ${VAR_NAME:default} - uses default if VAR_NAME is not set
- $${VAR_NAME} - literal ``${VAR_NAME}``, no lookup
"""

from __future__ import annotations

import os
import re
from typing import Any, Dict, Mapping, Optional

from datastore.exceptions import ConfigValidationError

_ENV_VAR_PATTERN = re.compile(r"\$(\$)?\{([^}:]+)(?::([^}]*))?\}")


def expand_env_value(value: str, param: Optional[str] = None) -> str:
    """Expand ${VAR} references in a single param value.

    Raises:
        ConfigValidationError: If a referenced variable is unset and has no
            default. ``key`` names the param (or the variable when no param
            name is given).
    """

    def replacer(match: "re.Match[str]") -> str:
        if match.group(1):
            return match.group(0)[1:]
        var_name = match.group(2)
        default_value = match.group(3)

        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value
        if default_value is not None:
            return default_value
        where = f" (referenced by param '{param}')" if param else ""
        raise ConfigValidationError(
            f"Environment variable '{var_name}' is not set and no default provided{where}",
            key=param or var_name,
        )

    return _ENV_VAR_PATTERN.sub(replacer, value)


def expand_params(params: Mapping[str, Any]) -> Dict[str, Any]:
    """Expand every string value of a params mapping; other values pass through."""
    return {
        key: expand_env_value(value, str(key)) if isinstance(value, str) else value
        for key, value in params.items()
    }


def expand_datastore_block(block: Any) -> Any:
    """Return a copy of a raw ``{type, params}`` block with its params expanded.

    Malformed blocks are returned unchanged so DataStoreConfig.from_dict can
    report them.
    """
    if not isinstance(block, Mapping):
        return block
    params = block.get("params")
    if not isinstance(params, Mapping):
        return block
    return {**block, "params": expand_params(params)}
