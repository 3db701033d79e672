"""
Shared test fixtures and configuration.
"""

import logging
from pathlib import Path

import pytest

from addsctl.adapters.base import Platform
from addsctl.adapters.mock import mock_platform
from addsctl.core.models.request import ProvisioningRequest


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """setup_logging() rewires the root logger; put it back after each test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    raise_exceptions = logging.raiseExceptions
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    logging.raiseExceptions = raise_exceptions


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def call_log() -> list[str]:
    """Call log shared by every double of one mock platform."""
    return []


@pytest.fixture
def platform(call_log) -> Platform:
    """A healthy mock platform recording into ``call_log``."""
    return mock_platform(call_log)


@pytest.fixture
def forest_request() -> ProvisioningRequest:
    return ProvisioningRequest(domain_name="contoso.com")


@pytest.fixture
def isolated_cwd(tmp_path: Path, monkeypatch) -> Path:
    """Run from an empty directory so no addsctl.yml is picked up."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ADDSCTL_SAFE_MODE_PASSWORD", raising=False)
    monkeypatch.delenv("ADDSCTL_DOMAIN_PASSWORD", raising=False)
    monkeypatch.delenv("ADDSCTL_LOG_LEVEL", raising=False)
    monkeypatch.delenv("ADDSCTL_LOG_FILE", raising=False)
    return tmp_path
