"""Runtime configuration for keybridge, assembled from environment and CLI flags."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from keybridge.limits import RELAY_CHUNK_SIZE
from keybridge.paths import DEFAULT_SOCKET_NAME, get_gnupg_home, get_rendezvous_path

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})


class BridgeConfig(BaseModel):
    """Settings for one keybridge invocation."""

    model_config = ConfigDict(frozen=True)

    debug: bool = Field(default=False, description="Emit debug diagnostics on stderr")
    chunk_size: int = Field(
        default=RELAY_CHUNK_SIZE,
        ge=1,
        description="Maximum bytes copied per relay read",
    )
    gnupg_home: Path = Field(
        default_factory=get_gnupg_home,
        description="Directory holding gpg-agent rendezvous files",
    )
    socket_name: str = Field(default=DEFAULT_SOCKET_NAME, description="Rendezvous file name")
    socket_file: Path | None = Field(
        default=None,
        description="Explicit rendezvous file; overrides gnupg_home/socket_name",
    )

    @field_validator("socket_name")
    @classmethod
    def _plain_file_name(cls, value: str) -> str:
        if not value or Path(value).name != value:
            msg = f"socket_name must be a bare file name, got {value!r}"
            raise ValueError(msg)
        return value

    @property
    def rendezvous_path(self) -> Path:
        if self.socket_file is not None:
            return self.socket_file
        return get_rendezvous_path(self.socket_name, home=self.gnupg_home)


def _env_flag(name: str) -> bool | None:
    raw = os.environ.get(name)
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    msg = f"{name} must be a boolean flag, got {raw!r}"
    raise ValueError(msg)


def load_config(**overrides: Any) -> BridgeConfig:
    """Build a :class:`BridgeConfig` from ``KEYBRIDGE_*`` variables and *overrides*.

    Overrides whose value is ``None`` are ignored, so unset CLI options fall back
    to the environment and then to defaults.
    """
    values: dict[str, Any] = {}
    debug = _env_flag("KEYBRIDGE_DEBUG")
    if debug is not None:
        values["debug"] = debug
    chunk_size = os.environ.get("KEYBRIDGE_CHUNK_SIZE")
    if chunk_size:
        values["chunk_size"] = chunk_size
    values.update({key: value for key, value in overrides.items() if value is not None})
    return BridgeConfig.model_validate(values)


__all__ = ["BridgeConfig", "load_config"]
