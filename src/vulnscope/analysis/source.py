"""Line-aware view over contract source text."""

from __future__ import annotations

import re
from bisect import bisect_right
from collections.abc import Callable
from dataclasses import dataclass
from functools import cached_property
from itertools import accumulate
from typing import Any, cast

from vulnscope.constants import SNIPPET_RADIUS

_FUNCTION_DECL_RE = re.compile(r"\bfunction\b")


def mask_source(text: str) -> str:
    """Blank out comments and string-literal contents.

    The result has the same length as ``text`` and keeps every
    newline, so an offset found in the masked text resolves to the
    same line in the original. String delimiters are kept so that
    call sites like ``call("")`` still look like calls.
    """
    out = list(text)
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < n else ""
        if ch == "/" and nxt == "/":
            end = text.find("\n", i)
            if end == -1:
                end = n
            for k in range(i, end):
                out[k] = " "
            i = end
        elif ch == "/" and nxt == "*":
            close = text.find("*/", i + 2)
            end = n if close == -1 else close + 2
            for k in range(i, end):
                if text[k] != "\n":
                    out[k] = " "
            i = end
        elif ch in "\"'":
            k = i + 1
            while k < n and text[k] != ch and text[k] != "\n":
                if text[k] == "\\" and k + 1 < n and text[k + 1] != "\n":
                    out[k] = " "
                    out[k + 1] = " "
                    k += 2
                    continue
                out[k] = " "
                k += 1
            i = k + 1
        else:
            i += 1
    return "".join(out)


def _scan_function_spans(masked_lines: list[str]) -> dict[int, int | None]:
    """Map every ``function`` declaration line to its closing line.

    A declaration whose first ``;`` comes before any ``{`` has no
    body and maps to None. Otherwise the body opens on the first line
    with a ``{`` and closes on the first line from there on where the
    brace depth, counted from the declaration, drops to zero or
    below. A body that never closes runs to the last line.

    Every closing line is found in a single backward sweep over the
    cumulative brace depth, so the cost is O(n log n) in the number
    of lines however many functions there are.
    """
    n = len(masked_lines)
    depth = [0] * (n + 1)
    for i, text in enumerate(masked_lines, start=1):
        depth[i] = depth[i - 1] + text.count("{") - text.count("}")

    # nearest line at or after i holding a `{` or `;`, 0 if none
    marker = [0] * (n + 2)
    for i in range(n, 0, -1):
        text = masked_lines[i - 1]
        marker[i] = i if ("{" in text or ";" in text) else marker[i + 1]

    spans: dict[int, int | None] = {}
    pending: dict[int, list[int]] = {}
    for decl, text in enumerate(masked_lines, start=1):
        if not _FUNCTION_DECL_RE.search(text):
            continue
        opener = marker[decl]
        if not opener:
            spans[decl] = n
            continue
        line = masked_lines[opener - 1]
        semi, brace = line.find(";"), line.find("{")
        if semi != -1 and (brace == -1 or semi < brace):
            spans[decl] = None
            continue
        pending.setdefault(opener, []).append(decl)

    # stack of line numbers, nearest on top, whose depth is lower than
    # every line between them and the sweep position
    stack: list[int] = []
    stack_depth: list[int] = []
    for k in range(n, 0, -1):
        while stack_depth and stack_depth[-1] >= depth[k]:
            stack.pop()
            stack_depth.pop()
        stack.append(k)
        stack_depth.append(depth[k])
        for decl in pending.get(k, ()):
            pos = bisect_right(stack_depth, depth[decl - 1]) - 1
            spans[decl] = stack[pos] if pos >= 0 else n
    return spans


@dataclass(frozen=True)
class FunctionScope:
    """Line span, offsets and masked text of one function body.

    ``start_offset`` and ``end_offset`` index into the masked (and
    raw) text; ``body`` is ``masked[start_offset:end_offset]``.
    """

    start_line: int
    end_line: int
    start_offset: int
    end_offset: int
    body: str


class SourceText:
    """Raw source plus a comment/string-masked twin of equal length.

    Detectors match against ``masked`` and report against ``lines``.
    All line numbers are 1-indexed. Line offsets and function spans
    are computed once per source, so per-match lookups are
    logarithmic.
    """

    def __init__(self, text: str) -> None:
        if not isinstance(text, str):
            raise TypeError(
                f"source must be text, got {type(text).__name__}"
            )
        self.text = text
        self.lines = text.split("\n")
        self.masked = mask_source(text)
        self.masked_lines = self.masked.split("\n")
        self._line_starts = list(
            accumulate((len(line) + 1 for line in self.lines[:-1]), initial=0)
        )
        self._scopes: dict[int, FunctionScope] = {}
        self._derived: dict[Callable[[SourceText], Any], Any] = {}

    @property
    def line_count(self) -> int:
        return len(self.lines)

    def line_at(self, offset: int) -> int:
        """1-indexed line containing the character at ``offset``."""
        return bisect_right(self._line_starts, offset)

    def line_offset(self, line: int) -> int:
        """Offset of the first character of ``line``."""
        return self._line_starts[line - 1]

    def line_text(self, line: int) -> str:
        return self.lines[line - 1] if 1 <= line <= len(self.lines) else ""

    def snippet(self, line: int, radius: int = SNIPPET_RADIUS) -> str:
        """Lines ``line - radius`` through ``line + radius``."""
        start = max(0, line - 1 - radius)
        return "\n".join(self.lines[start:line + radius])

    def count(self, pattern: re.Pattern[str]) -> int:
        """Occurrences of ``pattern`` outside comments and strings."""
        return sum(1 for _ in pattern.finditer(self.masked))

    def cached[T](self, fn: Callable[[SourceText], T]) -> T:
        """``fn(self)``, computed on first use and kept with this source.

        Lets detectors build a whole-source index once instead of
        rescanning the text for every match.
        """
        if fn not in self._derived:
            self._derived[fn] = fn(self)
        return cast(T, self._derived[fn])

    @cached_property
    def _function_spans(self) -> dict[int, int | None]:
        return _scan_function_spans(self.masked_lines)

    @cached_property
    def _declaration_lines(self) -> list[int]:
        return sorted(self._function_spans)

    def function_scope(self, line: int) -> FunctionScope | None:
        """Body of the function enclosing ``line``.

        Takes the nearest ``function`` declaration at or above
        ``line`` and its balanced closing brace. Returns None when the
        declaration has no body or its body ends before ``line``.
        """
        decls = self._declaration_lines
        idx = bisect_right(decls, min(line, len(self.masked_lines))) - 1
        if idx < 0:
            return None
        start = decls[idx]
        end = self._function_spans[start]
        if end is None or end < line:
            return None

        scope = self._scopes.get(start)
        if scope is None:
            start_offset = self.line_offset(start)
            end_offset = self.line_offset(end) + len(
                self.masked_lines[end - 1]
            )
            scope = FunctionScope(
                start_line=start,
                end_line=end,
                start_offset=start_offset,
                end_offset=end_offset,
                body=self.masked[start_offset:end_offset],
            )
            self._scopes[start] = scope
        return scope
