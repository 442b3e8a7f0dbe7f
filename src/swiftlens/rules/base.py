from __future__ import annotations

from typing import List, Protocol, runtime_checkable

from ..models.context import AnalysisContext
from ..models.records import Finding


@runtime_checkable
class Rule(Protocol):
    """A heuristic evaluated against a whole ``AnalysisContext``.

    Implementations are stateless apart from their thresholds, do no I/O and
    return the same findings for the same context.
    """

    id: str
    description: str

    def check(self, context: AnalysisContext) -> List[Finding]:
        ...
