"""Locations of agent rendezvous files."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_data_dir

DEFAULT_SOCKET_NAME = "S.gpg-agent"
SOCKET_NAMES = ("S.gpg-agent", "S.gpg-agent.ssh", "S.gpg-agent.extra", "S.gpg-agent.browser")


def get_gnupg_home() -> Path:
    """Get the GnuPG home directory that holds gpg-agent's socket files.

    ``KEYBRIDGE_GNUPG_HOME`` wins over ``GNUPGHOME``; otherwise the local
    application data directory (``%LOCALAPPDATA%\\gnupg`` on Windows).
    """
    for variable in ("KEYBRIDGE_GNUPG_HOME", "GNUPGHOME"):
        override = os.environ.get(variable)
        if override:
            return Path(override).expanduser().resolve()
    return Path(user_data_dir("gnupg", appauthor=False, roaming=False))


def get_rendezvous_path(
    socket_name: str = DEFAULT_SOCKET_NAME, *, home: Path | None = None
) -> Path:
    """Get the path of the rendezvous file for *socket_name*."""
    return (home if home is not None else get_gnupg_home()) / socket_name


__all__ = [
    "DEFAULT_SOCKET_NAME",
    "SOCKET_NAMES",
    "get_gnupg_home",
    "get_rendezvous_path",
]
