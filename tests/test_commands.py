from fschat.commands import CommandExtractor, extract_commands
from fschat.models import Command


def test_single_read_block() -> None:
    text = "<fs-command><operation>read</operation><path>/a</path></fs-command>"
    assert extract_commands(text) == [Command(operation="read", path="/a", content=None)]


def test_block_missing_path_is_skipped() -> None:
    text = (
        "first <fs-command><operation>read</operation><path>/ok</path></fs-command>\n"
        "second <fs-command><operation>delete</operation></fs-command>"
    )
    result = CommandExtractor().extract(text)

    assert result.commands == [Command(operation="read", path="/ok")]
    assert len(result.diagnostics) == 1
    assert result.diagnostics[0].kind == "validation"
    assert "path" in result.diagnostics[0].reason
    assert not result.ok


def test_inner_tags_in_any_order_and_source_order_kept() -> None:
    text = (
        "<fs-command>\n  <content>hello\nworld</content>\n  <path>notes.txt</path>\n"
        "  <operation>write</operation>\n</fs-command>\n"
        "then <fs-command><path>notes.txt</path><operation>read</operation></fs-command>"
    )
    commands = extract_commands(text)

    assert [c.operation for c in commands] == ["write", "read"]
    assert commands[0].content == "hello\nworld"
    assert commands[1].content is None


def test_unterminated_block_keeps_earlier_commands() -> None:
    text = (
        "<fs-command><operation>read</operation><path>/a</path></fs-command>"
        "<fs-command><operation>read</operation><path>/b</path>"
    )
    result = CommandExtractor().extract(text)

    assert [c.path for c in result.commands] == ["/a"]
    assert [d.kind for d in result.diagnostics] == ["parse"]


def test_nested_opener_recovers_inner_block() -> None:
    text = "<fs-command><operation>read</operation><fs-command><operation>list</operation><path>.</path></fs-command>"
    result = CommandExtractor().extract(text)

    assert result.commands == [Command(operation="list", path=".")]
    assert len(result.diagnostics) == 1


def test_entities_are_unescaped() -> None:
    text = "<fs-command><operation>write</operation><path>a&amp;b.txt</path><content>&lt;p&gt; &quot;hi&quot;</content></fs-command>"
    (command,) = extract_commands(text)

    assert command.path == "a&b.txt"
    assert command.content == '<p> "hi"'


def test_empty_content_is_absent() -> None:
    text = "<fs-command><operation>write</operation><path>x</path><content></content></fs-command>"
    assert extract_commands(text)[0].content is None


def test_plain_text_has_no_commands() -> None:
    result = CommandExtractor().extract("just talking about <operation> tags")
    assert result.commands == []
    assert result.ok


def test_custom_block_tag() -> None:
    extractor = CommandExtractor(block_tag="cmd")
    text = "<cmd><operation>read</operation><path>/x</path></cmd><fs-command><operation>read</operation><path>/y</path></fs-command>"
    assert [c.path for c in extractor.extract(text).commands] == ["/x"]


def test_command_summary() -> None:
    assert Command(operation="read", path="/a").summary() == "read /a"
    assert Command(operation="write", path="/a", content="x").summary() == "write /a (with content)"
