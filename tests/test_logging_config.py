"""setup_logging: packaged config, fallback and env-driven debug overrides."""

import logging

import pytest

from hierarchy_editor.config import ConfigManager
from hierarchy_editor.logging_config import setup_logging


@pytest.fixture
def restore_logging():
    """Undo the global changes dictConfig makes."""
    names = ["", "hierarchy_editor", "hierarchy_editor.editor", "hierarchy_editor.core.hierarchy_model"]
    saved = {}
    for name in names:
        logger = logging.getLogger(name)
        saved[name] = (list(logger.handlers), logger.level, logger.propagate, logger.disabled)
    yield
    for name, (handlers, level, propagate, disabled) in saved.items():
        logger = logging.getLogger(name)
        for handler in logger.handlers:
            if handler not in handlers:
                handler.close()
        logger.handlers = handlers
        logger.setLevel(level)
        logger.propagate = propagate
        logger.disabled = disabled


def test_packaged_config_writes_to_log_dir(tmp_path, monkeypatch, restore_logging):
    monkeypatch.setenv("HIERARCHY_EDITOR_LOG_DIR", str(tmp_path / "logs"))

    setup_logging()

    package_logger = logging.getLogger("hierarchy_editor")
    file_handlers = [h for h in package_logger.handlers if isinstance(h, logging.FileHandler)]
    assert len(file_handlers) == 1
    assert file_handlers[0].baseFilename == str(tmp_path / "logs" / "app.log")
    assert package_logger.level == logging.INFO
    assert not package_logger.propagate


def test_packaged_config_is_not_mutated(tmp_path, monkeypatch, restore_logging):
    monkeypatch.setenv("HIERARCHY_EDITOR_LOG_DIR", str(tmp_path / "logs"))
    setup_logging()
    assert ConfigManager().get_logging_config()["handlers"]["file"]["filename"] == "app.log"


def test_broken_user_config_falls_back_to_console(tmp_path, monkeypatch, isolated_config, restore_logging):
    isolated_config.mkdir(parents=True, exist_ok=True)
    (isolated_config / "logging.yml").write_text(
        "version: 1\nhandlers:\n  console:\n    class: no.such.Handler\n", encoding="utf-8"
    )
    ConfigManager.reset()
    monkeypatch.setenv("HIERARCHY_EDITOR_LOG_DIR", str(tmp_path / "logs"))

    setup_logging()

    root = logging.getLogger()
    assert root.level == logging.INFO
    assert any(type(h) is logging.StreamHandler for h in root.handlers)


def test_debug_overrides(tmp_path, monkeypatch, restore_logging):
    monkeypatch.setenv("HIERARCHY_EDITOR_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("HIERARCHY_EDITOR_DEBUG_EDITS", "yes")
    monkeypatch.setenv("HIERARCHY_EDITOR_DEBUG_MODULES", " hierarchy_editor.core.hierarchy_model , ")

    setup_logging()

    assert logging.getLogger("hierarchy_editor.editor").level == logging.DEBUG
    model_logger = logging.getLogger("hierarchy_editor.core.hierarchy_model")
    assert model_logger.level == logging.DEBUG
    # Listed twice, but only one extra handler is attached
    assert len(model_logger.handlers) == 1
