"""
Tests for the code chunker.

Tests cover:
- Line splitting
- Window sizes, overlap and termination
- Structural tags and lexical terms
"""

import pytest

from repo_context.services.chunker import CodeChunker, extract_tag, identify_boundaries, split_lines


def numbered_lines(count: int) -> str:
    return "\n".join(f"line number {i}" for i in range(1, count + 1)) + "\n"


class TestSplitLines:
    """Test line splitting."""

    def test_trailing_newline_does_not_add_line(self):
        assert split_lines("a\nb\n") == ["a", "b"]

    def test_crlf(self):
        assert split_lines("a\r\nb\r\nc") == ["a", "b", "c"]

    def test_empty(self):
        assert split_lines("") == [""]


class TestCodeChunker:
    """Test sliding-window chunking."""

    @pytest.fixture
    def chunker(self):
        return CodeChunker(max_chunk_lines=48, overlap_lines=8)

    def test_small_file_is_one_chunk(self, chunker):
        chunks = chunker.chunk_file("small.md", numbered_lines(10))

        assert len(chunks) == 1
        assert chunks[0].start_line == 1
        assert chunks[0].end_line == 10
        assert chunks[0].file_path == "small.md"

    def test_file_of_exactly_max_lines_is_one_chunk(self, chunker):
        chunks = chunker.chunk_file("exact.md", numbered_lines(48))
        assert [(c.start_line, c.end_line) for c in chunks] == [(1, 48)]

    def test_windows_overlap(self, chunker):
        chunks = chunker.chunk_file("long.md", numbered_lines(100))

        assert [(c.start_line, c.end_line) for c in chunks] == [(1, 48), (41, 88), (81, 100)]
        for previous, current in zip(chunks, chunks[1:]):
            assert previous.end_line - current.start_line + 1 == 8

    def test_chunks_never_exceed_max_lines(self):
        content = "\n".join(
            "function f%d() {" % i if i % 7 == 0 else "  body();" for i in range(200)
        )
        chunker = CodeChunker(max_chunk_lines=20, overlap_lines=4)

        for chunk in chunker.chunk_file("many.js", content):
            assert 1 <= chunk.start_line <= chunk.end_line
            assert chunk.end_line - chunk.start_line + 1 <= 20

    def test_chunk_body_matches_source_lines(self, chunker):
        content = numbered_lines(60)
        lines = content.splitlines()

        for chunk in chunker.chunk_file("body.md", content):
            assert chunk.text.split("\n") == lines[chunk.start_line - 1:chunk.end_line]

    def test_blank_file_produces_no_chunks(self, chunker):
        assert chunker.chunk_file("blank.md", "\n\n   \n") == []
        assert chunker.chunk_file("empty.md", "") == []

    def test_step_is_at_least_one(self):
        assert CodeChunker(max_chunk_lines=4, overlap_lines=10).step == 1

    def test_invalid_max_lines(self):
        with pytest.raises(ValueError):
            CodeChunker(max_chunk_lines=0)

    def test_tagged_chunk(self, chunker):
        content = "import x from 'y';\nexport function loadUser(id) {\n  return id;\n}\n"
        chunk = chunker.chunk_file("src/user.ts", content)[0]

        assert chunk.text.startswith("[Function: loadUser]\nimport x")
        assert "loaduser" in chunk.lexical_terms
        assert "function" in chunk.lexical_terms

    def test_untagged_chunk_has_no_prefix(self, chunker):
        chunk = chunker.chunk_file("notes.md", "# Release notes\n\nNothing declared here.\n")[0]
        assert chunk.text.startswith("# Release notes")


class TestExtractTag:
    """Test structural tag detection."""

    def test_function(self):
        assert extract_tag("async function fetchAll() {}") == "Function: fetchAll"

    def test_arrow_function(self):
        assert extract_tag("export const render = (props) => null;") == "Function: render"

    def test_python_def(self):
        assert extract_tag("def build_index(root):\n    pass") == "Function: build_index"

    def test_class(self):
        assert extract_tag("export class UserStore {\n}") == "Class: UserStore"

    def test_interface(self):
        assert extract_tag("interface Props {\n  id: string;\n}") == "Interface: Props"

    def test_type_alias(self):
        assert extract_tag("type Identifier = string;") == "Type: Identifier"

    def test_earliest_declaration_wins(self):
        text = "class Outer {\n  function inner() {}\n}"
        assert extract_tag(text) == "Class: Outer"

    def test_no_declaration(self):
        assert extract_tag("just some prose") is None


class TestBoundaries:
    """Test boundary detection."""

    def test_identifies_declarations(self):
        lines = [
            "import a from 'a';",
            "export function one() {",
            "  return 1;",
            "}",
            "export class Two {",
            "def three():",
        ]
        assert identify_boundaries(lines) == {1, 4, 5}
