"""Tests for the line-aware source view and masking."""

from __future__ import annotations

import re
from unittest.mock import patch

import pytest

from vulnscope.analysis.source import (
    SourceText,
    _scan_function_spans,
    mask_source,
)


class TestMaskSource:
    def test_line_comment_blanked(self) -> None:
        masked = mask_source("a = 1; // selfdestruct(x)\nb = 2;")
        assert "selfdestruct" not in masked
        assert masked.startswith("a = 1;")
        assert masked.endswith("b = 2;")

    def test_block_comment_keeps_newlines(self) -> None:
        text = "x;\n/* tx.origin\n still comment */\ny;"
        masked = mask_source(text)
        assert "tx.origin" not in masked
        assert masked.count("\n") == text.count("\n")
        assert len(masked) == len(text)

    def test_string_contents_blanked_quotes_kept(self) -> None:
        masked = mask_source('emit Log("block.timestamp");')
        assert "block.timestamp" not in masked
        assert masked.count('"') == 2

    def test_escaped_quote_inside_string(self) -> None:
        text = r'"a\"b" + now'
        masked = mask_source(text)
        assert masked.endswith("+ now")
        assert len(masked) == len(text)

    def test_unterminated_block_comment(self) -> None:
        masked = mask_source("x; /* never closed\nnow")
        assert "now" not in masked

    def test_division_is_not_a_comment(self) -> None:
        assert mask_source("a / b") == "a / b"


class TestSourceText:
    def test_rejects_non_text(self) -> None:
        with pytest.raises(TypeError, match="source must be text"):
            SourceText(b"pragma")  # type: ignore[arg-type]

    def test_line_at_is_one_indexed(self) -> None:
        src = SourceText("first\nsecond\nthird")
        assert src.line_at(0) == 1
        assert src.line_at(src.text.index("second")) == 2
        assert src.line_at(src.text.index("third")) == 3

    def test_line_text_out_of_range(self) -> None:
        src = SourceText("only")
        assert src.line_text(1) == "only"
        assert src.line_text(0) == ""
        assert src.line_text(5) == ""

    def test_snippet_window(self) -> None:
        src = SourceText("\n".join(f"l{i}" for i in range(1, 11)))
        assert src.snippet(5) == "l3\nl4\nl5\nl6\nl7"
        assert src.snippet(1) == "l1\nl2\nl3"
        assert src.snippet(10, radius=1) == "l9\nl10"
        assert src.snippet(4, radius=0) == "l4"

    def test_count_ignores_comments(self) -> None:
        src = SourceText("function a() {}\n// function b() {}\n")
        assert src.count(re.compile(r"\bfunction\s+\w+")) == 1

    def test_line_count_includes_trailing_line(self) -> None:
        assert SourceText("a\nb\n").line_count == 3


class TestFunctionScope:
    SOURCE = "\n".join(
        [
            "contract C {",  # 1
            "    uint x;",  # 2
            "    function set(uint v) external {",  # 3
            "        if (v > 0) {",  # 4
            "            x = v;",  # 5
            "        }",  # 6
            "        emit Set(v);",  # 7
            "    }",  # 8
            "    function get() external view returns (uint);",  # 9
            "}",  # 10
        ]
    )

    def test_scope_spans_balanced_braces(self) -> None:
        scope = SourceText(self.SOURCE).function_scope(5)
        assert scope is not None
        assert scope.start_line == 3
        assert scope.end_line == 8
        assert "emit Set" in scope.body

    def test_outside_any_function(self) -> None:
        assert SourceText(self.SOURCE).function_scope(2) is None

    def test_bodiless_declaration(self) -> None:
        assert SourceText(self.SOURCE).function_scope(9) is None

    def test_line_after_function_end(self) -> None:
        src = SourceText(
            "function f() {\n}\nuint y;\nmapping(uint => uint) m;"
        )
        assert src.function_scope(3) is None

    def test_nested_and_sibling_functions(self) -> None:
        src = SourceText(
            "\n".join(
                [
                    "contract C {",  # 1
                    "    function a() external {",  # 2
                    "        if (x) { y = 1; } else {",  # 3
                    "            y = 2;",  # 4
                    "        }",  # 5
                    "    }",  # 6
                    "    function b() external",  # 7
                    "    {",  # 8
                    "        z = 3;",  # 9
                    "    }",  # 10
                    "}",  # 11
                ]
            )
        )
        a, b = src.function_scope(4), src.function_scope(9)
        assert a is not None and (a.start_line, a.end_line) == (2, 6)
        assert b is not None and (b.start_line, b.end_line) == (7, 10)
        assert src.function_scope(11) is None

    def test_one_line_function(self) -> None:
        src = SourceText("function f() { x = 1; }\nuint y;")
        scope = src.function_scope(1)
        assert scope is not None
        assert scope.end_line == 1
        assert scope.body == "function f() { x = 1; }"
        assert src.function_scope(2) is None

    def test_unclosed_body_runs_to_last_line(self) -> None:
        src = SourceText("function f() {\n  x = 1;\n  y = 2;")
        scope = src.function_scope(3)
        assert scope is not None
        assert scope.end_line == 3

    def test_braces_in_comments_do_not_count(self) -> None:
        src = SourceText(
            "function f() {\n  // }\n  x = 1;\n}\nuint after;"
        )
        scope = src.function_scope(3)
        assert scope is not None
        assert scope.end_line == 4

    def test_offsets_index_masked_text(self) -> None:
        src = SourceText(self.SOURCE)
        scope = src.function_scope(5)
        assert scope is not None
        assert src.masked[scope.start_offset:scope.end_offset] == scope.body
        assert scope.start_offset == src.line_offset(3)

    def test_spans_scanned_once_per_source(self) -> None:
        src = SourceText(self.SOURCE)
        with patch(
            "vulnscope.analysis.source._scan_function_spans",
            wraps=_scan_function_spans,
        ) as scan:
            for line in range(1, 11):
                src.function_scope(line)
        assert scan.call_count == 1

    def test_scope_object_reused(self) -> None:
        src = SourceText(self.SOURCE)
        assert src.function_scope(4) is src.function_scope(7)


class TestSourceCaches:
    def test_line_offset_inverts_line_at(self) -> None:
        src = SourceText("ab\n\ncdef\ng")
        for line in range(1, src.line_count + 1):
            assert src.line_at(src.line_offset(line)) == line
        assert src.line_offset(3) == 4

    def test_cached_computes_once(self) -> None:
        calls: list[int] = []

        def derive(source: SourceText) -> int:
            calls.append(1)
            return source.line_count

        src = SourceText("a\nb")
        assert src.cached(derive) == 2
        assert src.cached(derive) == 2
        assert len(calls) == 1

    def test_cache_is_per_source(self) -> None:
        def derive(source: SourceText) -> int:
            return source.line_count

        assert SourceText("a").cached(derive) == 1
        assert SourceText("a\nb\nc").cached(derive) == 3
