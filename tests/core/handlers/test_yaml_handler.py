import pytest

from hierarchy_editor.core.exceptions import ParseError
from hierarchy_editor.core.handlers.json_handler import JsonHandler
from hierarchy_editor.core.handlers.yaml_handler import YamlHandler
from hierarchy_editor.core.models import NodeType

DOCUMENT = """name: demo
items:
  - 1
  - 2
nested:
  flag: true
"""


@pytest.fixture
def handler():
    return YamlHandler()


def test_parse_uses_json_node_model(handler):
    root = handler.parse(DOCUMENT)
    assert root.metadata["format"] == "yaml"
    assert [c.name for c in root.children] == ["name", "items", "nested"]
    assert root.children[1].type == NodeType.ARRAY.value
    assert root.children[2].children[0].value is True


def test_serialize_preserves_key_order(handler):
    root = handler.parse("b: 1\na: 2\n")
    assert handler.serialize(root) == "b: 1\na: 2\n"


def test_round_trip(handler):
    root = handler.parse(DOCUMENT)
    assert handler.parse(handler.serialize(root)).structurally_equals(root)


def test_same_tree_as_equivalent_json(handler):
    yaml_root = handler.parse(DOCUMENT)
    json_root = JsonHandler().parse('{"name": "demo", "items": [1, 2], "nested": {"flag": true}}')
    assert yaml_root.structurally_equals(json_root)


def test_invalid_yaml(handler):
    with pytest.raises(ParseError) as excinfo:
        handler.parse("key: [unclosed")
    assert excinfo.value.message.startswith("Invalid YAML")
    assert "line" in excinfo.value.details


def test_document_marker_gives_full_confidence(handler):
    assert handler.get_confidence("---\na: 1") == 1.0
    assert handler.get_confidence("a: 1") == pytest.approx(0.6)
    assert handler.get_confidence("just words") == 0.0
    assert not handler.detect("")
