from __future__ import annotations

from bisect import bisect_left
from typing import List, Optional, Sequence, Union

from ..models.records import FunctionMetric

Text = Union[str, bytes]

UI_TARGET_MARKER = ".addTarget("
IB_ACTION_MARKER = "@IBAction"
MARK_PREFIX = "// MARK:"


class LineIndex:
    """Maps offsets in a text to 1-based line numbers.

    Works on ``str`` (character offsets) and on ``bytes`` (UTF-8 byte offsets,
    as produced by tree-sitter nodes).
    """

    def __init__(self, text: Text) -> None:
        newline = b"\n" if isinstance(text, bytes) else "\n"
        self._length = len(text)
        self._newlines: List[int] = []
        idx = text.find(newline)
        while idx != -1:
            self._newlines.append(idx)
            idx = text.find(newline, idx + 1)

    @property
    def line_count(self) -> int:
        return len(self._newlines) + 1

    def line_of(self, offset: int) -> int:
        safe = min(max(offset, 0), self._length)
        return bisect_left(self._newlines, safe) + 1

    def span_lines(self, start: int, end: int) -> tuple[int, int]:
        """Return ``(start_line, line_count)`` for the half-open span."""
        start_line = self.line_of(start)
        end_line = self.line_of(max(start, end))
        return start_line, max(1, end_line - start_line + 1)


def split_lines(text: str) -> List[str]:
    return text.split("\n")


def snippet_around(
    text: str,
    line: Optional[int],
    target_lines: int = 30,
    min_lines: int = 20,
    max_lines: int = 40,
) -> Optional[str]:
    """Return a bounded excerpt of ``text`` centered on ``line``.

    Files of at least ``min_lines`` lines get a window clamped to
    ``[min_lines, max_lines]``; shorter files are returned whole.
    """
    lines = split_lines(text)
    if not text:
        return None
    total = len(lines)
    clamped = min(max(target_lines, min_lines), max_lines)
    size = min(total, clamped) if total >= min_lines else total

    center = min(max(line or 1, 1), total)
    start = max(1, center - size // 2)
    end = start + size - 1
    if end > total:
        end = total
        start = max(1, end - size + 1)
    return "\n".join(lines[start - 1 : end])


def simplify_type_name(name: str) -> str:
    """Reduce an extended type reference to its bare identifier.

    Generic argument groups are dropped wherever they appear and only the last
    dotted component is kept, so ``Foo<Bar>.Baz`` becomes ``Baz``.
    """
    kept: List[str] = []
    depth = 0
    for ch in name:
        if ch == "<":
            depth += 1
            continue
        if ch == ">":
            if depth > 0:
                depth -= 1
            continue
        if depth == 0:
            kept.append(ch)
    simple = "".join(kept).strip()
    for suffix in ("?", "!"):
        simple = simple.rstrip(suffix)
    if "." in simple:
        simple = simple.split(".")[-1]
    return simple.strip()


def parse_mark_sections(text: str) -> List[str]:
    sections: List[str] = []
    for raw in split_lines(text):
        line = raw.strip()
        if not line.startswith(MARK_PREFIX):
            continue
        section = line.replace(MARK_PREFIX, "").strip()
        sections.append(section or "-")
    return sections


def count_ui_actions(
    unit_text: str, functions: Sequence[FunctionMetric], source_lines: Sequence[str]
) -> int:
    """Count target-action registrations plus ``@IBAction`` functions.

    A function counts as an action when ``@IBAction`` appears between the line
    above its start and its last line.
    """
    count = unit_text.count(UI_TARGET_MARKER)
    if not source_lines:
        return count
    for fn in functions:
        first = max(1, fn.start_line - 1)
        last = min(len(source_lines), max(fn.start_line, fn.end_line))
        if first > last:
            continue
        chunk = "\n".join(source_lines[first - 1 : last])
        if IB_ACTION_MARKER in chunk:
            count += 1
    return count
