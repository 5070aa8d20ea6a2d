import pytest

from hierarchy_editor.core.exceptions import ParseError, SerializationError
from hierarchy_editor.core.handlers.xml_handler import XmlHandler
from hierarchy_editor.core.models import HierarchyNode, NodeType

DOCUMENT = """<?xml version="1.0" encoding="UTF-8"?>
<config version="1">
  <name>demo</name>
  <!-- note -->
  <items>
    <item>a</item>
    <item>b</item>
  </items>
</config>"""


@pytest.fixture
def handler():
    return XmlHandler()


def test_elements_attributes_and_comments(handler):
    root = handler.parse(DOCUMENT)

    assert root.type == NodeType.ELEMENT.value
    assert root.name == "config"
    assert root.attributes == {"version": "1"}
    assert root.metadata["declaration"] is True
    assert [c.type for c in root.children] == ["element", "comment", "element"]
    assert root.children[0].value == "demo"
    assert root.children[1].value == " note "
    assert [c.value for c in root.children[2].children] == ["a", "b"]


def test_round_trip_keeps_structure(handler):
    root = handler.parse(DOCUMENT)
    output = handler.serialize(root)

    assert output.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert handler.parse(output).structurally_equals(root)


def test_mixed_content_becomes_text_children(handler):
    root = handler.parse("<p>Hello <b>world</b> again</p>")
    assert [(c.type, c.value) for c in root.children] == [
        ("text", "Hello"),
        ("element", "world"),
        ("text", "again"),
    ]


def test_default_namespace_is_declared_once(handler):
    root = handler.parse('<r xmlns="urn:x"><c>1</c></r>')
    assert root.metadata["namespace"] == "urn:x"

    output = handler.serialize(root)

    assert output.count('xmlns="urn:x"') == 1
    assert handler.parse(output).structurally_equals(root)


def test_syntax_error_is_a_parse_error(handler):
    with pytest.raises(ParseError) as excinfo:
        handler.parse("<a><b></a>")
    assert excinfo.value.message.startswith("XML parsing error")


def test_invalid_element_name_cannot_be_serialized(handler):
    root = HierarchyNode(NodeType.ELEMENT, "1bad")
    with pytest.raises(SerializationError):
        handler.serialize(root)


def test_text_root_cannot_be_serialized(handler):
    with pytest.raises(SerializationError):
        handler.serialize(HierarchyNode(NodeType.TEXT, "#text", value="x"))


def test_json_shaped_tree_serializes_with_fallback_names(handler):
    root = HierarchyNode(NodeType.OBJECT, "", children=[HierarchyNode(NodeType.VALUE, "0", value=1)])
    assert handler.serialize(root) == "<root>\n  <item>1</item>\n</root>"


@pytest.mark.parametrize("text, expected", [
    ('<?xml version="1.0"?><a/>', True),
    ("<root><x/></root>", True),
    ("<html><body/></html>", False),
    ('{"a": 1}', False),
])
def test_detect(handler, text, expected):
    assert handler.detect(text) is expected


def test_confidence_prefers_declaration(handler):
    assert handler.get_confidence('<?xml version="1.0"?><a/>') == 1.0
    assert handler.get_confidence("<root/>") == 0.8
    assert handler.get_confidence("plain") == 0.0


@pytest.mark.parametrize("text", ["<a/>", "<div><p>x</p></div>", "<IMG src='x'/>"])
def test_html_looking_roots_are_rejected(handler, text):
    assert handler.detect(text) is False
    assert handler.get_confidence(text) == 0.0


def test_declared_encoding_does_not_mangle_decoded_text(handler):
    root = handler.parse('<?xml version="1.0" encoding="ISO-8859-1"?><a>café</a>')
    assert root.value == "café"
    assert root.metadata["declaration"] is True


def test_syntax_error_after_declaration_keeps_line_number(handler):
    with pytest.raises(ParseError) as exc_info:
        handler.parse('<?xml version="1.0"?>\n<root>\n<a></b>\n</root>')
    assert exc_info.value.details["line"] == 3
