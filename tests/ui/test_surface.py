from hierarchy_editor.core.handlers.json_handler import JsonHandler
from hierarchy_editor.core.services.expansion_state import ExpansionStateManager
from hierarchy_editor.renderer import HierarchyRenderer
from hierarchy_editor.ui import InMemorySurface


def _view(text='{"a": {"b": 1}, "c": [true]}', expansion=None):
    renderer = HierarchyRenderer(expansion_state=expansion or ExpansionStateManager())
    root = JsonHandler().parse(text)
    return renderer, root, renderer.render(root)


def test_mount_replaces_tree_and_clears_messages():
    surface = InMemorySurface()
    surface.show_message("old problem")
    _, _, view = _view()

    surface.mount(view)

    assert surface.root is view
    assert surface.messages == []
    assert surface.mount_count == 1


def test_lines_show_glyphs_and_indentation():
    surface = InMemorySurface()
    _, _, view = _view()
    surface.mount(view)

    assert surface.lines() == [
        "",
        "  ▼ a",
        "      b 1",
        "  ▼ c",
        "      [0] true",
    ]


def test_replace_swaps_subtree_in_place():
    expansion = ExpansionStateManager()
    surface = InMemorySurface()
    renderer, root, view = _view(expansion=expansion)
    surface.mount(view)
    old = surface.find("a")

    expansion.collapse("a")
    new = renderer.render(root.children[0], old.depth, "")
    surface.replace(old, new)

    assert surface.find("a") is new
    assert surface.find("a.b") is None
    assert surface.replace_count == 1
    assert surface.mount_count == 1


def test_replace_of_unknown_element_remounts():
    surface = InMemorySurface()
    _, _, first = _view()
    _, _, second = _view('{"z": 1}')
    surface.mount(first)

    surface.replace(second.find("z"), second)

    assert surface.root is second


def test_messages_and_subscribers():
    surface = InMemorySurface()
    seen = []
    surface.subscribe(lambda action, payload: seen.append(action))

    surface.show_message("Invalid JSON", "error", "Check for missing quotes or brackets")
    surface.clear()

    assert seen == ["message", "clear"]
    assert surface.messages == []
    assert surface.lines() == []
    assert surface.find("a") is None
