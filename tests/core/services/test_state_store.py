import json

from hierarchy_editor.core.services.state_store import JsonFileStore, MemoryStore


def test_file_store_creates_parent_directories(tmp_path):
    path = tmp_path / "nested" / "state.json"
    store = JsonFileStore(path)

    assert store.get("missing") is None
    store.set("a", {"expandedNodes": ["x"]})

    assert json.loads(path.read_text(encoding="utf-8")) == {"a": {"expandedNodes": ["x"]}}


def test_file_store_keeps_other_keys(tmp_path):
    store = JsonFileStore(tmp_path / "state.json")
    store.set("a", 1)
    store.set("b", 2)
    store.remove("a")
    store.remove("not-there")

    assert store.get("a") is None
    assert JsonFileStore(store.path).get("b") == 2


def test_file_store_ignores_non_object_documents(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")
    assert JsonFileStore(path).get("a") is None


def test_memory_store_returns_copies():
    store = MemoryStore({"a": {"list": [1]}})
    value = store.get("a")
    value["list"].append(2)

    assert store.get("a") == {"list": [1]}
    assert "a" in store
    store.remove("a")
    assert "a" not in store
