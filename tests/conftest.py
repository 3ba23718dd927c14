"""Pytest fixtures for keybridge tests."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from hypothesis import Phase, Verbosity, settings

from keybridge.debug_log import reset_debug_logging

_TEST_BASE_DIR = Path(tempfile.mkdtemp(prefix="keybridge-tests-"))
os.environ["KEYBRIDGE_GNUPG_HOME"] = str(_TEST_BASE_DIR / "gnupg")

if TYPE_CHECKING:
    from collections.abc import Generator


settings.register_profile(
    "ci",
    max_examples=100,
    deadline=None,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
)
settings.register_profile(
    "dev",
    max_examples=20,
    deadline=None,
)
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's own settings out of the tests."""
    for name in ("KEYBRIDGE_DEBUG", "KEYBRIDGE_CHUNK_SIZE", "GNUPGHOME"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_logging() -> Generator[None, None, None]:
    """Drop the stderr handler so each test sees its own captured stream."""
    yield
    reset_debug_logging()


@pytest.fixture
def gnupg_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "gnupg"
    home.mkdir()
    monkeypatch.setenv("KEYBRIDGE_GNUPG_HOME", str(home))
    return home.resolve()
