"""DataStoreConfig: backend type plus string parameters."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from datastore.exceptions import ConfigValidationError


@dataclass(frozen=True)
class DataStoreConfig:
    """Immutable description of which backend to build and how.

    Attributes:
        type: Backend discriminator, e.g. ``"HTTP"``, ``"S3"``, ``"Filesystem"``
        params: Backend parameters; every value is a string
    """

    type: str
    params: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.type, str) or not self.type.strip():
            raise ConfigValidationError("datastore type must be a non-empty string", key="type")
        frozen = MappingProxyType({str(k): str(v) for k, v in dict(self.params).items()})
        object.__setattr__(self, "params", frozen)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "DataStoreConfig":
        """Create from a ``{"type": ..., "params": {...}}`` mapping.

        Parameter values are coerced to strings; ``None`` values are dropped.
        """
        if not isinstance(data, Mapping):
            raise ConfigValidationError("datastore config must be a mapping")
        backend_type = data.get("type")
        if not backend_type:
            raise ConfigValidationError("datastore config requires 'type'", key="type")
        raw_params = data.get("params") or {}
        if not isinstance(raw_params, Mapping):
            raise ConfigValidationError("datastore 'params' must be a mapping", key="params")
        params = {str(k): str(v) for k, v in raw_params.items() if v is not None}
        return cls(type=str(backend_type), params=params)

    @property
    def backend_type(self) -> str:
        """Normalized type used for registry lookups."""
        return self.type.strip().lower()

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.params.get(key, default)

    def require(self, key: str) -> str:
        """Return a required parameter or raise ConfigValidationError."""
        value = self.params.get(key)
        if value is None or not value.strip():
            raise ConfigValidationError(
                f"invalid {self.type} config, no {key}", key=key
            )
        return value

    def params_with_prefix(self, prefix: str) -> Dict[str, str]:
        """Return params whose names start with prefix, keyed by the remainder."""
        return {
            key[len(prefix):]: value
            for key, value in self.params.items()
            if key.startswith(prefix)
        }

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "params": dict(self.params)}
