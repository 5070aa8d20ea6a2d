import pytest

from hierarchy_editor.core.models import (
    EditableFields,
    HierarchyNode,
    NodeType,
    OperationResult,
)


def _tree():
    root = HierarchyNode(NodeType.OBJECT, "root")
    a = root.append_child(HierarchyNode(NodeType.OBJECT, "a"))
    b = a.append_child(HierarchyNode(NodeType.VALUE, "b", value=1))
    return root, a, b


def test_node_type_enum_is_stored_as_plain_tag():
    node = HierarchyNode(NodeType.ARRAY, "items")
    assert node.type == "array"
    # Unknown tags are kept as-is
    assert HierarchyNode("widget", "w").type == "widget"


def test_append_child_sets_parent_and_depth():
    root, a, b = _tree()
    assert a.parent is root
    assert b.parent is a
    assert b.get_depth() == 2
    assert root.is_ancestor_of(b)
    assert not b.is_ancestor_of(root)


def test_insert_child_moves_node_out_of_previous_parent():
    root, a, b = _tree()
    other = root.append_child(HierarchyNode(NodeType.OBJECT, "other"))

    other.insert_child(0, b)

    assert b.parent is other
    assert a.children == []
    assert other.children == [b]


def test_insert_child_out_of_range_appends():
    root, a, _ = _tree()
    extra = HierarchyNode(NodeType.VALUE, "z", value=None)
    root.insert_child(99, extra)
    assert root.children[-1] is extra
    assert extra.index_in_parent() == len(root.children) - 1


def test_insert_into_own_subtree_is_refused():
    root, a, b = _tree()
    with pytest.raises(ValueError):
        b.append_child(a)
    with pytest.raises(ValueError):
        a.append_child(a)
    assert a.parent is root


def test_segment_falls_back_to_id_for_anonymous_nodes():
    named = HierarchyNode(NodeType.VALUE, "key")
    anonymous = HierarchyNode(NodeType.CONTENT, "")
    assert named.segment() == "key"
    assert anonymous.segment() == anonymous.id
    assert anonymous.id.startswith("node-")


def test_to_dict_omits_parent_and_from_dict_restores_tree():
    root, _, _ = _tree()
    data = root.to_dict()

    assert "parent" not in data
    assert "parent" not in data["children"][0]

    restored = HierarchyNode.from_dict(data)
    assert restored.structurally_equals(root)
    assert restored.children[0].children[0].parent is restored.children[0]
    assert restored.children[0].id == root.children[0].id


def test_structural_equality_distinguishes_bool_from_int():
    one = HierarchyNode(NodeType.VALUE, "v", value=1)
    true = HierarchyNode(NodeType.VALUE, "v", value=True)
    assert not one.structurally_equals(true)
    assert one.structurally_equals(HierarchyNode(NodeType.VALUE, "v", value=1))


def test_clone_gets_fresh_ids_and_no_parent():
    root, a, _ = _tree()
    copy = a.clone()
    assert copy.parent is None
    assert copy.id != a.id
    assert copy.structurally_equals(a)


def test_depth_first_and_find_descendant():
    root, a, b = _tree()
    assert [n.name for n in root.depth_first()] == ["root", "a", "b"]
    assert root.find_descendant(b.id) is b
    assert root.find_descendant("node-missing") is None


def test_operation_result_truthiness():
    assert OperationResult(True, "ok")
    assert not OperationResult(False, "nope", {"reason": "x"})


def test_editable_fields_defaults():
    fields = EditableFields()
    assert fields.key_editable and fields.value_editable
    assert fields.type_changeable is False
