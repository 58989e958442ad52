"""Tests for the Read, Write, EditPatch and ListDir tools."""

import json

import pytest

from toolloop.tools.base import ToolError
from toolloop.tools.file_ops import EditPatchTool, ListDirTool, ReadTool, WriteTool


def args(**kwargs):
    return json.dumps(kwargs)


class TestReadTool:
    def test_reads_relative_path(self, context, workspace):
        (workspace / "notes.txt").write_text("line one\nline two\n")
        assert ReadTool().execute(context, args(file_path="notes.txt")) == "line one\nline two\n"

    def test_reads_absolute_path_inside_root(self, context, workspace):
        (workspace / "a.txt").write_text("abc")
        assert ReadTool().execute(context, args(file_path=str(workspace / "a.txt"))) == "abc"

    def test_missing_file(self, context):
        with pytest.raises(ToolError, match="error reading file"):
            ReadTool().execute(context, args(file_path="missing.txt"))

    def test_requires_file_path(self, context):
        with pytest.raises(ToolError, match="file_path must be a non-empty string"):
            ReadTool().execute(context, args(file_path="  "))

    def test_rejects_escape(self, context, tmp_path):
        (tmp_path / "secret.txt").write_text("secret")
        with pytest.raises(ToolError, match="path policy violation"):
            ReadTool().execute(context, args(file_path="../secret.txt"))


class TestWriteTool:
    def test_writes_file_and_echoes_content(self, context, workspace):
        result = WriteTool().execute(context, args(file_path="out.txt", content="hello"))
        assert result == {"file_path": "out.txt", "content": "hello"}
        assert (workspace / "out.txt").read_text() == "hello"

    def test_creates_parent_directories(self, context, workspace):
        WriteTool().execute(context, args(file_path="a/b/c.txt", content="deep"))
        assert (workspace / "a" / "b" / "c.txt").read_text() == "deep"

    def test_empty_content_is_allowed(self, context, workspace):
        WriteTool().execute(context, args(file_path="empty.txt"))
        assert (workspace / "empty.txt").read_text() == ""

    def test_rejects_non_string_content(self, context):
        with pytest.raises(ToolError, match="content must be a string"):
            WriteTool().execute(context, args(file_path="x.txt", content=5))

    def test_rejects_escape_and_writes_nothing(self, context, tmp_path):
        with pytest.raises(ToolError, match="path policy violation"):
            WriteTool().execute(context, args(file_path="../escaped.txt", content="x"))
        assert not (tmp_path / "escaped.txt").exists()


class TestEditPatchTool:
    def test_replaces_first_match(self, context, workspace):
        (workspace / "greeting.txt").write_text("hello world, hello again")
        result = EditPatchTool().execute(
            context, args(file_path="greeting.txt", old_string="hello", new_string="hola")
        )
        assert (workspace / "greeting.txt").read_text() == "hola world, hello again"
        assert result == {
            "file_path": "greeting.txt",
            "replacements": 1,
            "replace_all": False,
            "total_matches": 2,
        }

    def test_replace_all(self, context, workspace):
        (workspace / "greeting.txt").write_text("hello world, hello again")
        result = EditPatchTool().execute(
            context,
            args(file_path="greeting.txt", old_string="hello", new_string="hola", replace_all=True),
        )
        assert (workspace / "greeting.txt").read_text() == "hola world, hola again"
        assert result["replacements"] == 2
        assert result["replace_all"] is True

    def test_no_match(self, context, workspace):
        (workspace / "f.txt").write_text("abc")
        with pytest.raises(ToolError, match="old_string not found in file"):
            EditPatchTool().execute(context, args(file_path="f.txt", old_string="zzz", new_string="y"))
        assert (workspace / "f.txt").read_text() == "abc"

    def test_empty_old_string(self, context, workspace):
        (workspace / "f.txt").write_text("abc")
        with pytest.raises(ToolError, match="old_string must be a non-empty string"):
            EditPatchTool().execute(context, args(file_path="f.txt", old_string="", new_string="y"))

    def test_replace_all_must_be_boolean(self, context, workspace):
        (workspace / "f.txt").write_text("abc")
        with pytest.raises(ToolError, match="replace_all must be a boolean"):
            EditPatchTool().execute(
                context, args(file_path="f.txt", old_string="a", new_string="b", replace_all="yes")
            )

    def test_preserves_line_endings(self, context, workspace):
        (workspace / "crlf.txt").write_bytes(b"one\r\ntwo\r\n")
        EditPatchTool().execute(context, args(file_path="crlf.txt", old_string="two", new_string="three"))
        assert (workspace / "crlf.txt").read_bytes() == b"one\r\nthree\r\n"

    def test_non_utf8_bytes_are_left_intact(self, context, workspace):
        (workspace / "latin1.txt").write_bytes(b"caf\xe9 hello\n\xff\xfe tail")
        result = EditPatchTool().execute(context, args(file_path="latin1.txt", old_string="hello", new_string="hola"))
        assert (workspace / "latin1.txt").read_bytes() == b"caf\xe9 hola\n\xff\xfe tail"
        assert result["total_matches"] == 1


class TestListDirTool:
    def test_lists_sorted_entries(self, context, workspace):
        (workspace / "b.txt").write_text("b")
        (workspace / "a_dir").mkdir()
        (workspace / "c.txt").write_text("c")
        result = ListDirTool().execute(context, "{}")
        assert result == {
            "path": ".",
            "entries": [
                {"name": "a_dir", "type": "dir"},
                {"name": "b.txt", "type": "file"},
                {"name": "c.txt", "type": "file"},
            ],
        }

    def test_lists_subdirectory(self, context, workspace):
        (workspace / "sub").mkdir()
        (workspace / "sub" / "x.txt").write_text("x")
        result = ListDirTool().execute(context, args(path="sub"))
        assert result == {"path": "sub", "entries": [{"name": "x.txt", "type": "file"}]}

    def test_symlinked_directory_is_not_reported_as_dir(self, context, workspace):
        (workspace / "real").mkdir()
        (workspace / "alias").symlink_to(workspace / "real", target_is_directory=True)
        entries = ListDirTool().execute(context, "{}")["entries"]
        assert {"name": "alias", "type": "file"} in entries

    def test_missing_directory(self, context):
        with pytest.raises(ToolError, match="error reading directory"):
            ListDirTool().execute(context, args(path="nope"))

    def test_rejects_escape(self, context):
        with pytest.raises(ToolError, match="path policy violation"):
            ListDirTool().execute(context, args(path=".."))
