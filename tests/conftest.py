"""Pytest configuration for tests.

No sys.path hacks - tests import the installed ontlock package. The sample
definition lives in tests/sample_api.py next to this file.
"""

import logging
import sys

import pytest

import sample_api
from ontlock.kernel.snapshot import extract_snapshot


@pytest.fixture
def api():
    """The sample definition, freshly built."""
    return sample_api.build_api()


@pytest.fixture
def sample_snapshot(api):
    return extract_snapshot(api)


@pytest.fixture
def definition_ref():
    """File reference the CLI can load the sample definition from."""
    return f"{sample_api.HERE}:api"


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    """Keep ONTLOCK_* variables from the developer's shell out of tests."""
    for name in ("ONTLOCK_MODE", "ONTLOCK_DIR", "ONTLOCK_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_ontlock_logger():
    """The CLI installs a handler bound to the current stderr; drop it after each test."""
    yield
    logger = logging.getLogger("ontlock")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def _restore_sys_path(monkeypatch):
    """Loading a definition file adds its directory to sys.path; undo that per test."""
    monkeypatch.setattr(sys, "path", list(sys.path))
