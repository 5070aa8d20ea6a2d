import pytest

from hierarchy_editor.core.exceptions import UnsupportedFormatError
from hierarchy_editor.core.handlers import FormatRegistry, JsonHandler, create_default_registry


@pytest.fixture
def registry():
    return create_default_registry()


def test_formats_are_listed_by_priority(registry):
    assert registry.get_formats() == ["json", "xml", "yaml", "markdown"]


@pytest.mark.parametrize("text, expected", [
    ('{"a": 1}', "json"),
    ("<root><a>1</a></root>", "xml"),
    ("name: demo\nitems:\n  - 1", "yaml"),
    ("# Title\n\nText", "markdown"),
])
def test_detection_order(registry, text, expected):
    match = registry.detect(text)
    assert match.format == expected
    assert 0.0 < match.confidence <= 1.0


def test_nothing_detected(registry):
    assert registry.detect("just some words") is None


def test_get_caches_and_create_does_not(registry):
    assert registry.get("JSON") is registry.get("json")
    assert registry.create("json") is not registry.get("json")


def test_unknown_format(registry):
    assert not registry.is_supported("toml")
    with pytest.raises(UnsupportedFormatError) as excinfo:
        registry.get("toml")
    assert excinfo.value.format_name == "toml"
    assert "json" in excinfo.value.available_formats


def test_custom_handler_can_take_precedence():
    class LooseJson(JsonHandler):
        format_name = "loose"

        def detect(self, text):
            return True

    registry = FormatRegistry()
    registry.register("json", JsonHandler, priority=0)
    registry.register("loose", LooseJson, priority=-1)

    assert registry.detect('{"a": 1}').format == "loose"
    assert registry.unregister("loose")
    assert registry.detect('{"a": 1}').format == "json"


def test_failing_detector_is_skipped(caplog):
    class Broken(JsonHandler):
        def detect(self, text):
            raise RuntimeError("detector crashed")

    registry = FormatRegistry()
    registry.register("broken", Broken, priority=0)
    registry.register("json", JsonHandler, priority=1)

    assert registry.detect('{"a": 1}').format == "json"
    assert "detector crashed" in caplog.text


@pytest.mark.parametrize("name, display", [("json", "JSON"), ("yaml", "YAML"), ("markdown", "Markdown")])
def test_display_names(registry, name, display):
    assert registry.get(name).get_display_name() == display
