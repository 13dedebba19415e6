"""Tests for logging setup."""

import logging

import pytest

from domain_directory_api.app.core.logging_config import setup_logging


@pytest.fixture
def bare_root(monkeypatch):
    """Root logger with its own handler list, emptied again by each test.

    pytest attaches capture handlers to the root logger while the test
    body runs, so tests call ``bare_root.handlers.clear()`` right before
    ``setup_logging``.
    """
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    level = root.level
    quiet = logging.getLogger("uvicorn.access")
    quiet_level = quiet.level
    yield root
    for handler in _installed(root):
        handler.close()
    root.setLevel(level)
    quiet.setLevel(quiet_level)


def _installed(root):
    return [h for h in root.handlers if type(h) in (logging.StreamHandler, logging.FileHandler)]


def test_installs_console_handler_and_quiets_access_log(bare_root):
    bare_root.handlers.clear()
    setup_logging("info")
    assert len(_installed(bare_root)) == 1
    assert bare_root.level == logging.INFO
    assert logging.getLogger("uvicorn.access").level == logging.WARNING


def test_file_handler(bare_root, tmp_path):
    logfile = tmp_path / "directory.log"
    bare_root.handlers.clear()
    setup_logging("DEBUG", str(logfile))
    assert len(_installed(bare_root)) == 2
    logging.getLogger("domain_directory_api.test").debug("heartbeat")
    for handler in bare_root.handlers:
        handler.flush()
    assert "heartbeat" in logfile.read_text(encoding="utf-8")


def test_configures_only_once(bare_root):
    bare_root.handlers.clear()
    setup_logging("INFO")
    setup_logging("DEBUG")
    assert len(_installed(bare_root)) == 1
    assert bare_root.level == logging.INFO
