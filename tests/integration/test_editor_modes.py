"""Tree/source mode switching."""

import json

from hierarchy_editor import EditorMode


def test_switch_to_source_fills_buffer(make_editor, recorder, sample_json):
    editor = make_editor(sample_json)
    recorder.attach(editor)

    result = editor.set_mode("source")

    assert result.success
    assert editor.get_mode() == "source"
    assert editor.get_source_text() == editor.get_content()
    assert recorder.names() == ["beforemodechange", "modechange"]
    assert recorder.payloads("modechange")[0] == {"fromMode": "tree", "toMode": "source"}


def test_edited_source_is_applied_on_return(make_editor, recorder, sample_json):
    editor = make_editor(sample_json)
    editor.set_mode(EditorMode.SOURCE)
    editor.set_source_text('{"a": {"b": 5}}')
    recorder.attach(editor)

    assert editor.set_mode("tree")

    assert editor.model.find_by_path("a.b").value == 5
    assert recorder.names() == ["beforemodechange", "contentchange", "modechange"]
    assert recorder.payloads("contentchange")[0]["source"] == "source-edit"
    assert editor.model.is_dirty
    assert editor.can_undo()


def test_unchanged_source_does_not_reparse(make_editor, recorder, sample_json):
    editor = make_editor(sample_json)
    node_id = editor.model.find_by_path("a.b").id
    editor.set_mode("source")
    recorder.attach(editor)

    editor.set_mode("tree")

    assert recorder.count("contentchange") == 0
    assert editor.model.find_by_path("a.b").id == node_id


def test_invalid_source_keeps_source_mode(make_editor, recorder, sample_json):
    editor = make_editor(sample_json)
    editor.set_mode("source")
    editor.set_source_text("{bad")
    recorder.attach(editor)

    result = editor.set_mode("tree")

    assert result.details["reason"] == "invalid-content"
    assert editor.get_mode() == "source"
    error = recorder.payloads("error")[0]
    assert error["kind"] == "mode-switch-error"
    assert error["details"]["toMode"] == "tree"
    assert json.loads(editor.get_content()) == {"a": {"b": 1}}


def test_empty_source_is_rejected(make_editor, sample_json):
    editor = make_editor(sample_json)
    editor.set_mode("source")
    editor.set_source_text("   ")
    assert editor.set_mode("tree").details["reason"] == "invalid-content"


def test_unknown_mode(make_editor, recorder, sample_json):
    editor = make_editor(sample_json)
    recorder.attach(editor)
    result = editor.set_mode("split")
    assert result.details["reason"] == "unknown-mode"
    assert recorder.payloads("error")[0]["kind"] == "mode-switch-error"


def test_same_mode_is_a_no_op(make_editor, recorder, sample_json):
    editor = make_editor(sample_json)
    recorder.attach(editor)
    assert editor.set_mode("tree")
    assert recorder.names() == []


def test_mode_change_can_be_cancelled(make_editor, sample_json):
    editor = make_editor(sample_json)
    editor.on("beforemodechange", lambda event: event.prevent_default())
    assert editor.set_mode("source").details["reason"] == "prevented"
    assert editor.get_mode() == "tree"


def test_reentrant_switch_is_refused(make_editor, monkeypatch, sample_json):
    editor = make_editor(sample_json)
    inner = []
    prepare = editor._prepare_mode

    def reentrant(target):
        inner.append(editor.set_mode("tree"))
        return prepare(target)

    monkeypatch.setattr(editor, "_prepare_mode", reentrant)

    assert editor.set_mode("source")
    assert inner[0].details["reason"] == "busy"
    # The guard is released afterwards
    monkeypatch.undo()
    assert editor.set_mode("tree")


def test_realtime_validation_of_source(make_editor, recorder, sample_json):
    editor = make_editor(sample_json, realtime_validation=True)
    editor.set_mode("source")
    recorder.attach(editor)

    result = editor.set_source_text("{")

    assert not result.valid
    payload = recorder.payloads("validation")[0]
    assert payload["valid"] is False
    assert payload["format"] == "json"
    assert payload["errors"][0].startswith("Invalid JSON")


def test_source_validation_is_off_by_default(make_editor, recorder, sample_json):
    editor = make_editor(sample_json)
    recorder.attach(editor)
    assert editor.set_source_text("{") is None
    assert recorder.names() == []
