from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List

from ..models.records import FunctionMetric

TYPE_KINDS = ("class", "struct", "enum", "actor")
DECLARATION_KINDS = frozenset(TYPE_KINDS + ("extension",))


class ExtractionFailed(Exception):
    """Raised by a strategy that cannot extract declarations from a source."""


@dataclass(slots=True)
class DeclarationRecord:
    """Raw metrics of one top-level type or extension declaration."""

    name: str
    kind: str
    start_line: int
    line_count: int
    functions: List[FunctionMetric] = field(default_factory=list)
    ui_action_count: int = 0
    mark_sections: List[str] = field(default_factory=list)

    @property
    def is_extension(self) -> bool:
        return self.kind == "extension"


class ExtractionStrategy(ABC):
    name: str
    counting_method: str
    confidence: str

    @abstractmethod
    def extract(self, source: str, path: str) -> List[DeclarationRecord]:
        """Return the declarations found in ``source``, in source order."""


class StrategyRegistry:
    def __init__(self) -> None:
        self._registry: dict[str, ExtractionStrategy] = {}

    def register(self, strategy: ExtractionStrategy) -> None:
        self._registry[strategy.name] = strategy

    def get(self, name: str) -> ExtractionStrategy:
        try:
            return self._registry[name]
        except KeyError as exc:
            raise ValueError(f"No extraction strategy registered for {name}") from exc
