"""
Test Configuration
==================

Pytest configuration with fixtures for all test types.
Provides test settings, on-disk client applications and compiled asset sets.
"""

import textwrap
from pathlib import Path
from typing import Callable, Dict

import pytest
from pydantic_settings import SettingsConfigDict

from prerender_loader.config.logging import setup_logging
from prerender_loader.config.settings import Settings
from prerender_loader.core.build.bundler import PythonBundler
from prerender_loader.core.sandbox.environment import SandboxBuilder
from prerender_loader.models.schemas import CompiledAssetSet


# Test settings override
class TestSettings(Settings):
    """Test-specific settings."""

    environment: str = "testing"
    debug: bool = True
    log_level: str = "DEBUG"

    model_config = SettingsConfigDict(env_file=".env.test", env_prefix="PRERENDER_TEST_")


@pytest.fixture(scope="session")
def test_settings() -> TestSettings:
    """Test settings fixture."""
    return TestSettings()


@pytest.fixture(scope="session", autouse=True)
def configure_logging(test_settings: TestSettings) -> None:
    """Route structured logs through the test logging configuration."""
    setup_logging(test_settings)


@pytest.fixture
def write_app(tmp_path: Path) -> Callable[[Dict[str, str]], Path]:
    """Write a client application (filename -> source) into a temp context directory."""

    def _write(files: Dict[str, str]) -> Path:
        context = tmp_path / "app"
        for name, source in files.items():
            path = context / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(source).lstrip(), encoding="utf-8")
        return context

    return _write


@pytest.fixture
def make_host(write_app) -> Callable[..., PythonBundler]:
    """Create a PythonBundler over a freshly written application."""

    def _make(files: Dict[str, str], entry="./main.py", plugins=()) -> PythonBundler:
        context = write_app(files)
        return PythonBundler(context, entry, plugins=plugins)

    return _make


@pytest.fixture
def make_assets(test_settings: TestSettings) -> Callable[..., CompiledAssetSet]:
    """Build a CompiledAssetSet from a main bundle source and extra modules."""

    def _make(bundle: str = "", **modules: str) -> CompiledAssetSet:
        assets = {test_settings.bundle_filename: textwrap.dedent(bundle)}
        assets.update({name.replace("__", "/") + ".py": textwrap.dedent(src) for name, src in modules.items()})
        return CompiledAssetSet(assets=assets, main=test_settings.bundle_filename)

    return _make


@pytest.fixture
def sandbox_builder(test_settings: TestSettings) -> SandboxBuilder:
    return SandboxBuilder(test_settings)
