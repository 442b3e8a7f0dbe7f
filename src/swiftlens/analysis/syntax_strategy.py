from __future__ import annotations

import threading
from typing import Iterator, List, Optional

from tree_sitter import Language, Node, Parser
from tree_sitter_swift import language as swift_language

from ..models.records import FunctionMetric
from .base import (
    DECLARATION_KINDS,
    DeclarationRecord,
    ExtractionFailed,
    ExtractionStrategy,
)
from .utils import (
    LineIndex,
    count_ui_actions,
    parse_mark_sections,
    simplify_type_name,
    split_lines,
)

# tree-sitter-swift models class, struct, enum, actor and extension
# declarations as a single node type distinguished by `declaration_kind`.
TYPE_NODE_TYPES = {"class_declaration"}

BODY_NODE_TYPES = {"class_body", "enum_class_body"}

NAME_NODE_TYPES = {"identifier", "type_identifier", "simple_identifier"}


class SyntaxTreeStrategy(ExtractionStrategy):
    """Precise extraction walking a tree-sitter parse tree."""

    name = "syntax"
    counting_method = "tree-sitter"
    confidence = "high"

    def __init__(self) -> None:
        self._language = Language(swift_language())
        self._local = threading.local()

    @property
    def _parser(self) -> Parser:
        # Parser objects are not safe to share between worker threads.
        parser = getattr(self._local, "parser", None)
        if parser is None:
            parser = Parser(self._language)
            self._local.parser = parser
        return parser

    def extract(self, source: str, path: str) -> List[DeclarationRecord]:
        source_bytes = source.encode("utf-8")
        try:
            tree = self._parser.parse(source_bytes)
        except (ValueError, RuntimeError) as exc:
            raise ExtractionFailed(f"tree-sitter could not parse {path}: {exc}") from exc
        root = tree.root_node
        if root.has_error:
            raise ExtractionFailed(f"syntax errors in {path}")

        index = LineIndex(source_bytes)
        source_lines = split_lines(source)
        records: List[DeclarationRecord] = []
        for node in self._iter_type_nodes(root):
            kind = self._declaration_kind(node, source_bytes)
            if kind is None:
                continue
            raw_name = self._extract_name(node, source_bytes)
            if not raw_name:
                continue
            name = simplify_type_name(raw_name) if kind == "extension" else raw_name
            if not name:
                continue
            code = _text(node, source_bytes)
            start_line, line_count = index.span_lines(node.start_byte, node.end_byte)
            functions = list(self._extract_functions(node, source_bytes, index, path))
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

    def _iter_type_nodes(self, root: Node) -> Iterator[Node]:
        """Yield type declarations in source order without entering their bodies."""
        stack = [root]
        while stack:
            current = stack.pop()
            if current.type in TYPE_NODE_TYPES:
                yield current
                continue
            stack.extend(reversed(current.children))

    def _declaration_kind(self, node: Node, source_bytes: bytes) -> Optional[str]:
        target = node.child_by_field_name("declaration_kind")
        if target is not None:
            keyword = _text(target, source_bytes)
            if keyword in DECLARATION_KINDS:
                return keyword
        # fallback: the keyword token follows any modifiers
        for child in node.children:
            if child.type in DECLARATION_KINDS:
                return child.type
        return None

    def _extract_name(self, node: Node, source_bytes: bytes) -> Optional[str]:
        target = node.child_by_field_name("name")
        if target is not None:
            return _text(target, source_bytes).strip()
        for child in node.children:
            if child.type in NAME_NODE_TYPES or child.type == "user_type":
                return _text(child, source_bytes).strip()
        return None

    def _body(self, node: Node) -> Optional[Node]:
        body = node.child_by_field_name("body")
        if body is not None:
            return body
        for child in node.children:
            if child.type in BODY_NODE_TYPES:
                return child
        return None

    def _extract_functions(
        self, node: Node, source_bytes: bytes, index: LineIndex, path: str
    ) -> Iterator[FunctionMetric]:
        body = self._body(node)
        if body is None:
            return
        for member in body.children:
            if member.type != "function_declaration":
                continue
            name = self._extract_member_name(member, source_bytes)
            if not name:
                continue
            start_line = index.line_of(member.start_byte)
            end_line = index.line_of(member.end_byte)
            yield FunctionMetric(
                name=name, start_line=start_line, end_line=end_line, file_path=path
            )

    def _extract_member_name(self, node: Node, source_bytes: bytes) -> Optional[str]:
        target = node.child_by_field_name("name")
        if target is not None:
            return _text(target, source_bytes)
        for child in node.children:
            if child.type in NAME_NODE_TYPES:
                return _text(child, source_bytes)
        # fallback to the token after `func`
        first_line = _text(node, source_bytes).strip().splitlines()[0]
        tokens = first_line.split("func", 1)[-1].strip().split("(", 1)[0].split()
        return tokens[0] if tokens else None


def _text(node: Node, source_bytes: bytes) -> str:
    return source_bytes[node.start_byte : node.end_byte].decode("utf-8", errors="replace")
