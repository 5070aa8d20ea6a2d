import gc

import pytest

from hierarchy_editor.core.handlers.json_handler import JsonHandler
from hierarchy_editor.core.handlers.markdown_handler import MarkdownHandler
from hierarchy_editor.core.handlers.xml_handler import XmlHandler
from hierarchy_editor.core.models import HierarchyNode, NodeType
from hierarchy_editor.core.services.expansion_state import ExpansionStateManager
from hierarchy_editor.renderer import EMPTY_MESSAGE, ElementKind, HierarchyRenderer, collapsed_summary


@pytest.fixture
def expansion():
    return ExpansionStateManager(default_expanded=True)


@pytest.fixture
def renderer(expansion):
    return HierarchyRenderer(expansion_state=expansion)


def _edits(renderer):
    seen = []
    renderer.on("edit", lambda event: seen.append(dict(event)))
    return seen


def test_missing_tree_renders_placeholder(renderer):
    element = renderer.render(None)
    assert element.kind == ElementKind.EMPTY
    assert element.display_text == EMPTY_MESSAGE


def test_root_container_is_not_a_row(renderer, sample_json):
    root = JsonHandler().parse(sample_json)
    view = renderer.render(root)

    assert view.kind == ElementKind.ROOT
    assert "theme-light" in view.classes
    assert view.visible_paths() == ["a", "a.b"]
    b = view.find("a.b")
    assert (b.key_text, b.value_text, b.value_type, b.depth) == ("b", "1", "number", 2)
    assert b.control_glyph is None


def test_collapsed_node_shows_summary(renderer, expansion, sample_json):
    root = JsonHandler().parse(sample_json)
    expansion.collapse("a")

    a = renderer.render(root).find("a")

    assert a.control_glyph == "▶"
    assert a.children == []
    assert a.summary == "1 property"
    assert a.display_text == "a // 1 property"


def test_activate_control_toggles_and_signals(renderer, expansion, sample_json):
    root = JsonHandler().parse(sample_json)
    a = renderer.render(root).find("a")
    changes = []
    renderer.on("expansion-changed", lambda event: changes.append((event["path"], event["expanded"])))

    assert renderer.activate_control(a) is False
    assert not expansion.is_expanded("a")
    assert changes == [("a", False)]
    assert renderer.activate_control(a) is True
    assert expansion.is_expanded("a")


def test_leaf_has_no_control(renderer, sample_json):
    view = renderer.render(JsonHandler().parse(sample_json))
    assert renderer.activate_control(view.find("a.b")) is None
    assert renderer.activate_control(view) is None


def test_value_edit_emits_typed_value(renderer, sample_json):
    root = JsonHandler().parse(sample_json)
    b = renderer.render(root).find("a.b")
    edits = _edits(renderer)

    session = renderer.start_value_edit(b)
    assert session.text == "1"
    assert b.display_text == "b [1]"
    session.set_text("2")

    assert session.confirm() is True
    assert edits == [{
        "type": "value",
        "node": root.children[0].children[0],
        "oldValue": 1,
        "newValue": 2,
        "path": "a.b",
    }]
    assert b.editing is None
    assert renderer.active_session is None


def test_unchanged_or_cancelled_edits_are_silent(renderer, sample_json):
    root = JsonHandler().parse(sample_json)
    b = renderer.render(root).find("a.b")
    edits = _edits(renderer)

    assert renderer.start_value_edit(b).confirm() is False
    session = renderer.start_value_edit(b)
    session.set_text("99")
    session.cancel()

    assert edits == []
    assert b.display_text == "b 1"


def test_type_change_counts_as_edit(renderer):
    root = JsonHandler().parse('{"flag": 1}')
    flag = renderer.render(root).find("flag")
    edits = _edits(renderer)

    session = renderer.start_value_edit(flag)
    session.set_text("true")
    session.blur()

    assert edits[0]["newValue"] is True


def test_key_edit(renderer, sample_json):
    root = JsonHandler().parse(sample_json)
    a = renderer.render(root).find("a")
    edits = _edits(renderer)

    session = renderer.start_key_edit(a)
    session.set_text("  renamed ")
    session.confirm()

    assert edits[0]["type"] == "key"
    assert (edits[0]["oldValue"], edits[0]["newValue"]) == ("a", "renamed")


def test_empty_key_is_not_committed(renderer, sample_json):
    a = renderer.render(JsonHandler().parse(sample_json)).find("a")
    edits = _edits(renderer)
    session = renderer.start_key_edit(a)
    session.set_text("   ")
    session.confirm()
    assert edits == []


def test_opening_second_editor_blurs_first(renderer):
    root = JsonHandler().parse('{"x": 1, "y": 2}')
    view = renderer.render(root)
    edits = _edits(renderer)

    first = renderer.start_value_edit(view.find("x"))
    first.set_text("5")
    second = renderer.start_value_edit(view.find("y"))

    assert not first.active
    assert edits[0]["newValue"] == 5
    assert renderer.active_session is second


def test_array_items_show_index_and_lock_key(renderer):
    view = renderer.render(JsonHandler().parse('{"list": ["a"]}'))
    item = view.find("list.0")
    assert item.key_text == "[0]"
    assert "array-index" in item.classes
    assert not item.key_editable
    assert renderer.start_key_edit(item) is None


def test_read_only_renderer_offers_no_editors(expansion, sample_json):
    renderer = HierarchyRenderer(expansion_state=expansion, editable=False)
    b = renderer.render(JsonHandler().parse(sample_json)).find("a.b")
    assert renderer.start_value_edit(b) is None


def test_markdown_keys_follow_handler_capabilities(renderer):
    handler = MarkdownHandler()
    view = renderer.render(handler.parse("# Title\n\nBody"), format_handler=handler)

    heading = view.children[0]
    assert "markdown-heading-h1" in heading.classes
    assert heading.key_editable is False
    content = heading.children[0]
    assert content.extra["content_type"] == "paragraph"
    assert content.value_editable


def test_xml_elements_render_tags_and_attributes(renderer):
    handler = XmlHandler()
    view = renderer.render(handler.parse('<cfg a="1"><name>demo</name><!--c--></cfg>'), format_handler=handler)

    assert view.key_text == "<cfg>"
    assert view.attributes == {"a": "1"}
    name, comment = view.children
    assert name.display_text == "<name> demo"
    assert comment.value_text == "<!--c-->"
    assert not comment.value_editable


def test_unknown_type_uses_fallback(renderer):
    root = HierarchyNode(NodeType.OBJECT, "root", children=[HierarchyNode("widget", "w", value=3)])
    element = renderer.render(root).find("w")
    assert "unknown-type" in element.classes
    assert element.value_text == "3"


def test_rendered_nodes_are_cached_weakly(renderer):
    root = JsonHandler().parse('{"a": {"b": 1}}')
    renderer.render(root)
    a = root.children[0]
    assert renderer.is_rendered(a)

    root.remove_child(a)
    del a
    gc.collect()

    assert list(renderer._cache.keys()) == [root]


@pytest.mark.parametrize("data, expected", [
    ('{"a": 1, "b": 2}', "2 properties"),
    ("[1]", "1 item"),
    ("[1, 2, 3]", "3 items"),
    ("{}", None),
])
def test_collapsed_summary(data, expected):
    assert collapsed_summary(JsonHandler().parse(data)) == expected
