import json

import pytest

from hierarchy_editor.core.exceptions import ParseError, SerializationError
from hierarchy_editor.core.handlers.json_handler import JsonHandler, node_to_data
from hierarchy_editor.core.handlers.xml_handler import XmlHandler
from hierarchy_editor.core.models import NodeType


@pytest.fixture
def handler():
    return JsonHandler()


def test_parse_maps_objects_arrays_and_scalars(handler, nested_json):
    root = handler.parse(nested_json)

    assert root.name == "root"
    assert root.type == NodeType.OBJECT.value
    assert root.metadata["format"] == "json"
    assert [c.name for c in root.children] == ["id", "name", "settings", "tags"]
    tags = root.children[3]
    assert tags.type == NodeType.ARRAY.value
    assert [(c.name, c.value) for c in tags.children] == [("0", "x"), ("1", "y"), ("2", "z")]


def test_scalar_types_survive_a_round_trip(handler):
    text = '{"flag": true, "none": null, "n": 1.5, "s": "é"}'
    root = handler.parse(text)

    output = handler.serialize(root)

    assert json.loads(output) == {"flag": True, "none": None, "n": 1.5, "s": "é"}
    assert "é" in output
    assert handler.parse(output).structurally_equals(root)


def test_parse_error_reports_position(handler):
    with pytest.raises(ParseError) as excinfo:
        handler.parse('{"a": }')
    error = excinfo.value
    assert error.message.startswith("Invalid JSON:")
    assert error.details["line"] == 1
    assert error.kind == "parse-error"


def test_empty_input_is_rejected(handler):
    with pytest.raises(ParseError):
        handler.parse("   ")


def test_serialize_without_root_fails(handler):
    with pytest.raises(SerializationError):
        handler.serialize(None)


def test_serialize_uses_configured_indent():
    handler = JsonHandler(indent_size=4)
    output = handler.serialize(handler.parse('{"a": 1}'))
    assert output == '{\n    "a": 1\n}'


@pytest.mark.parametrize("text, expected", [
    ('{"a": 1}', True),
    ("[1, 2]", True),
    ("{not json}", False),
    ('"plain string"', False),
    ("a: 1", False),
])
def test_detect(handler, text, expected):
    assert handler.detect(text) is expected


def test_validate_and_reformat(handler):
    assert handler.validate('{"a": 1}').valid
    result = handler.validate("{")
    assert not result.valid
    assert result.errors[0].startswith("Invalid JSON")
    assert handler.reformat('{"a":1}') == '{\n  "a": 1\n}'
    assert handler.reformat("{") == "{"


def test_foreign_trees_map_onto_plain_data():
    xml_root = XmlHandler().parse("<r><a>1</a><a>2</a><b>x</b></r>")
    assert node_to_data(xml_root) == {"a": ["1", "2"], "b": "x"}
