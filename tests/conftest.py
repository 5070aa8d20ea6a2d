"""Shared fixtures for the hierarchy editor test-suite.

Every test runs against an empty, temporary user configuration directory so
local ``~/.hierarchy_editor`` overrides never leak into results. Editors are
built on a :class:`QueueScheduler` (deferred signals fire only when the test
drains it) and an :class:`InMemorySurface`.
"""

import logging
import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from hierarchy_editor import HierarchyEditor
from hierarchy_editor.config import ConfigManager
from hierarchy_editor.core.handlers.json_handler import JsonHandler
from hierarchy_editor.core.hierarchy_model import HierarchyModel
from hierarchy_editor.core.scheduler import QueueScheduler
from hierarchy_editor.ui.surface import InMemorySurface

# Configure test logging
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

SAMPLE_JSON = '{"a": {"b": 1}}'

NESTED_JSON = """{
  "id": 7,
  "name": "demo",
  "settings": {"theme": "dark", "limits": {"max": 10, "min": 1}},
  "tags": ["x", "y", "z"]
}"""


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the user config directory at an empty temp dir."""
    monkeypatch.setenv("HIERARCHY_EDITOR_CONFIG_DIR", str(tmp_path / "user-config"))
    ConfigManager.reset()
    yield tmp_path / "user-config"
    ConfigManager.reset()


@pytest.fixture
def scheduler():
    return QueueScheduler()


@pytest.fixture
def surface():
    return InMemorySurface()


@pytest.fixture
def make_editor(scheduler, surface):
    """Factory building rendered editors; all are destroyed at teardown."""
    created = []

    def factory(content=None, **options):
        editor = HierarchyEditor(content, surface=surface, scheduler=scheduler, **options).render()
        created.append(editor)
        return editor

    yield factory
    for editor in created:
        editor.destroy()


@pytest.fixture
def sample_json():
    return SAMPLE_JSON


@pytest.fixture
def nested_json():
    return NESTED_JSON


@pytest.fixture
def json_model():
    """HierarchyModel loaded with NESTED_JSON."""
    model = HierarchyModel()
    model.set_root_node(JsonHandler().parse(NESTED_JSON))
    return model


class SignalRecorder:
    """Records (name, payload) pairs of every signal an emitter sends."""

    def __init__(self) -> None:
        self.events = []

    def attach(self, emitter) -> "SignalRecorder":
        emitter.on("*", lambda name, event: self.events.append((name, dict(event))))
        return self

    def names(self):
        return [name for name, _ in self.events]

    def payloads(self, name):
        return [payload for n, payload in self.events if n == name]

    def count(self, name) -> int:
        return len(self.payloads(name))


@pytest.fixture
def recorder():
    return SignalRecorder()
