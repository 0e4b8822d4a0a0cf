"""Tool-argument parser tests."""

import pytest

from utils.parse import ToolArgumentsError, parse_tool_arguments


def test_plain_json():
    assert parse_tool_arguments('{"file_path": "a.py"}') == {"file_path": "a.py"}


def test_code_fenced_json():
    assert parse_tool_arguments('```json\n{"command": "ls"}\n```') == {"command": "ls"}


def test_json_with_commentary():
    assert parse_tool_arguments('Sure! {"dir_path": "src"} hope that helps') == {"dir_path": "src"}


@pytest.mark.parametrize("raw", ["", "   ", None])
def test_empty_means_no_arguments(raw):
    assert parse_tool_arguments(raw) == {}


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"unterminated": '])
def test_unrecoverable_raises_with_raw(raw):
    with pytest.raises(ToolArgumentsError) as exc_info:
        parse_tool_arguments(raw)
    assert exc_info.value.raw == raw
