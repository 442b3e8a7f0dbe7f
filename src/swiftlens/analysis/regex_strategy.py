from __future__ import annotations

import re
from typing import List, Optional

from ..models.records import FunctionMetric
from .base import DeclarationRecord, ExtractionStrategy
from .utils import (
    LineIndex,
    count_ui_actions,
    parse_mark_sections,
    simplify_type_name,
    split_lines,
)

# A declaration whose `{` does not show up within this many lines is treated
# as having no body.
LOOKAHEAD_LINES = 6

_MODIFIERS = (
    r"(?:(?:public|private|fileprivate|internal|open|package|final|indirect"
    r"|nonisolated|static)(?:\([^)\n]*\))?\s+)*"
)
_ATTRIBUTES = r"(?:@[\w.]+(?:\([^)\n]*\))?\s+)*"

TYPE_DECL_RE = re.compile(
    r"^[ \t]*(?P<decl>" + _ATTRIBUTES + _MODIFIERS +
    r"(?P<kind>class|struct|enum|actor|extension)\s+"
    r"(?!(?:func|var|let|subscript|init)\b)"
    r"(?P<name>[A-Za-z_][\w.]*(?:<[^{\n]*?>)?(?:\.[A-Za-z_]\w*)*))",
    re.MULTILINE,
)

FUNC_DECL_RE = re.compile(
    r"^[ \t]*(?P<decl>" + _ATTRIBUTES +
    r"(?:[a-z]+(?:\([^)\n]*\))?[ \t]+)*"
    r"func[ \t]+(?P<name>[A-Za-z_]\w*|[^\s(<]+))",
    re.MULTILINE,
)


class RegexStrategy(ExtractionStrategy):
    """Lossy extraction from raw text, used when the parse tree is unusable."""

    name = "regex"
    counting_method = "regex-fallback"
    confidence = "low"

    def extract(self, source: str, path: str) -> List[DeclarationRecord]:
        masked = mask_source(source)
        index = LineIndex(source)
        source_lines = split_lines(source)
        records: List[DeclarationRecord] = []
        consumed = 0
        for match in TYPE_DECL_RE.finditer(masked):
            start = match.start("decl")
            if start < consumed:
                continue
            open_idx = _find_open_brace(masked, match.end(), len(masked))
            if open_idx is None:
                continue
            close_idx = _matching_brace(masked, open_idx)
            consumed = close_idx + 1

            kind = match.group("kind")
            name = match.group("name")
            if kind == "extension":
                name = simplify_type_name(name)
            else:
                name = name.split("<", 1)[0]
            if not name:
                continue

            code = source[start:consumed]
            start_line, line_count = index.span_lines(start, consumed)
            functions = _extract_functions(masked, open_idx, close_idx, index, path)
            records.append(
                DeclarationRecord(
                    name=name,
                    kind=kind,
                    start_line=start_line,
                    line_count=line_count,
                    functions=functions,
                    ui_action_count=count_ui_actions(code, functions, source_lines),
                    mark_sections=parse_mark_sections(code),
                )
            )
        return records


def mask_source(source: str) -> str:
    """Blank out comments and string literals, keeping offsets and newlines."""
    out = list(source)
    n = len(source)
    i = 0
    while i < n:
        ch = source[i]
        if source.startswith("//", i):
            j = source.find("\n", i)
            j = n if j == -1 else j
        elif source.startswith("/*", i):
            depth = 1
            j = i + 2
            while j < n and depth:
                if source.startswith("/*", j):
                    depth += 1
                    j += 2
                elif source.startswith("*/", j):
                    depth -= 1
                    j += 2
                else:
                    j += 1
        elif source.startswith('"""', i):
            j = source.find('"""', i + 3)
            j = n if j == -1 else j + 3
        elif ch == '"':
            j = i + 1
            while j < n and source[j] not in '"\n':
                j += 2 if source[j] == "\\" else 1
            j = min(n, j + 1)
        else:
            i += 1
            continue
        for k in range(i, min(j, n)):
            if out[k] != "\n":
                out[k] = " "
        i = j
    return "".join(out)


def _lookahead_limit(text: str, start: int, stop: int) -> int:
    """Offset where the lookahead window starting at ``start`` ends."""
    idx = start
    for _ in range(LOOKAHEAD_LINES):
        nl = text.find("\n", idx, stop)
        if nl == -1:
            return stop
        idx = nl + 1
    return min(idx, stop)


def _find_open_brace(text: str, start: int, stop: int) -> Optional[int]:
    limit = _lookahead_limit(text, start, stop)
    idx = text.find("{", start, limit)
    return idx if idx != -1 else None


def _matching_brace(text: str, open_idx: int) -> int:
    depth = 0
    for idx in range(open_idx, len(text)):
        ch = text[idx]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return idx
    return len(text) - 1


def _skip_parameters(text: str, start: int, stop: int) -> int:
    """Move past a parenthesised parameter list so default closures are ignored."""
    idx = text.find("(", start, stop)
    if idx == -1:
        return start
    gap = text[start:idx]
    if "{" in gap or "\n" in gap.strip(" \t"):
        return start
    depth = 0
    for pos in range(idx, stop):
        ch = text[pos]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return pos + 1
    return start


def _extract_functions(
    masked: str, open_idx: int, close_idx: int, index: LineIndex, path: str
) -> List[FunctionMetric]:
    functions: List[FunctionMetric] = []
    for match in FUNC_DECL_RE.finditer(masked, open_idx + 1, close_idx):
        between = masked[open_idx + 1 : match.start()]
        if between.count("{") != between.count("}"):
            continue  # nested deeper than the member list
        start = match.start("decl")
        start_line = index.line_of(start)
        after_params = _skip_parameters(masked, match.end("name"), close_idx)
        body_open = _find_open_brace(masked, after_params, close_idx)
        if body_open is None:
            end_line = start_line
        else:
            end_line = index.line_of(min(_matching_brace(masked, body_open), close_idx))
        functions.append(
            FunctionMetric(
                name=match.group("name"),
                start_line=start_line,
                end_line=end_line,
                file_path=path,
            )
        )
    return functions
