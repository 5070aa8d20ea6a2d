import pytest

from hierarchy_editor.core.exceptions import ParseError
from hierarchy_editor.core.handlers.markdown_handler import MarkdownHandler
from hierarchy_editor.core.models import NodeType

DOCUMENT = """# Title

Intro text.

## Section

- a
- b

```python
print(1)
```
"""


@pytest.fixture
def handler():
    return MarkdownHandler()


def test_headings_nest_by_level(handler):
    root = handler.parse(DOCUMENT)

    assert root.type == NodeType.DOCUMENT.value
    assert root.name == ""
    (title,) = root.children
    assert (title.name, title.metadata["level"]) == ("Title", 1)
    intro, section = title.children
    assert (intro.name, intro.value, intro.metadata["type"]) == ("content-1", "Intro text.", "paragraph")
    assert section.type == NodeType.HEADING.value
    assert [c.metadata["type"] for c in section.children] == ["list", "code"]


def test_code_fence_is_stripped_and_restored(handler):
    root = handler.parse(DOCUMENT)
    code = root.children[0].children[1].children[1]
    assert code.value == "print(1)"
    assert code.metadata["language"] == "python"


def test_serialize_reproduces_document(handler):
    assert handler.serialize(handler.parse(DOCUMENT)) == DOCUMENT


def test_setext_headings(handler):
    root = handler.parse("Title\n=====\n\nBody\n\nSub\n---\n\nMore")
    title = root.children[0]
    assert (title.name, title.metadata["level"]) == ("Title", 1)
    assert title.children[1].name == "Sub"
    assert title.children[1].metadata["level"] == 2


def test_blockquote_markers(handler):
    root = handler.parse("> quoted\n> more")
    block = root.children[0]
    assert block.metadata["type"] == "blockquote"
    assert block.value == "quoted\nmore"
    assert handler.serialize(root) == "> quoted\n> more\n"


def test_content_before_first_heading_attaches_to_document(handler):
    root = handler.parse("Preface\n\n# Chapter")
    assert [c.type for c in root.children] == ["content", "heading"]


def test_keys_are_not_editable(handler):
    assert handler.get_editable_fields().key_editable is False
    assert handler.get_editable_fields().value_editable is True


def test_empty_input(handler):
    with pytest.raises(ParseError):
        handler.parse("")
    assert handler.serialize(None) == ""


def test_detect(handler):
    assert handler.detect("# Heading")
    assert handler.detect("Some **bold** text")
    assert not handler.detect("plain words only")
