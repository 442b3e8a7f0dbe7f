from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional


class Severity(str, Enum):
    """Urgency of a finding, ordered ``info < low < medium < high``."""

    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANKS[self]

    @classmethod
    def parse(cls, value: str) -> "Severity":
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unknown severity: {value!r}") from exc

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANKS = {
    Severity.INFO: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
}


@dataclass(frozen=True, slots=True)
class FunctionMetric:
    name: str
    start_line: int
    end_line: int
    file_path: str = ""

    @property
    def line_span(self) -> int:
        return max(1, self.end_line - self.start_line + 1)


@dataclass(slots=True)
class StructuralUnit:
    """One analyzed type declaration, or the aggregate of its extensions."""

    name: str
    kind: str  # class, struct, enum, actor, extension
    start_line: int
    line_count: int
    file_path: str = ""
    functions: List[FunctionMetric] = field(default_factory=list)
    extension_count: int = 0
    ui_action_count: int = 0
    mark_sections: List[str] = field(default_factory=list)
    counting_method: str = "tree-sitter"
    confidence: str = "high"
    # Last line of the declaration itself; 0 derives it from `line_count`.
    # Merged extensions and duplicate declarations never move it.
    end_line: int = 0

    def __post_init__(self) -> None:
        if not self.end_line:
            self.end_line = self.start_line + max(self.line_count, 1) - 1


@dataclass(frozen=True, slots=True)
class Finding:
    rule_id: str
    title: str
    message: str
    severity: Severity
    file_path: str
    line: Optional[int] = None
    column: Optional[int] = None
    type_name: Optional[str] = None
    evidence: Mapping[str, str] = field(default_factory=dict)
    snippet: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "evidence", MappingProxyType(dict(self.evidence)))

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "ruleID": self.rule_id,
            "title": self.title,
            "message": self.message,
            "severity": self.severity.value,
            "filePath": self.file_path,
            "evidence": dict(sorted(self.evidence.items())),
        }
        if self.line is not None:
            payload["line"] = self.line
        if self.column is not None:
            payload["column"] = self.column
        if self.type_name is not None:
            payload["typeName"] = self.type_name
        if self.snippet is not None:
            payload["snippet"] = self.snippet
        return payload
