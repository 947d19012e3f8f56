from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


import pytest

from markerlint.config import AdapterConfig, MarkerConfig
from tests.env_helpers import restore_env as _restore_env
from tests.env_helpers import set_env as _set_env


@pytest.fixture
def markers() -> MarkerConfig:
    return MarkerConfig(context="Context", scope_guard="ScopeGuard")


@pytest.fixture
def adapter_config() -> AdapterConfig:
    return AdapterConfig()


@pytest.fixture
def env_scope():
    return _set_env


@pytest.fixture
def restore_env():
    return _restore_env


@pytest.fixture
def write_module(tmp_path: Path):
    def _write(name: str, source: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source, encoding="utf-8")
        return path

    return _write
