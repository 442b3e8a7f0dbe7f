from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

from ..analysis.utils import LineIndex, snippet_around
from ..models.context import AnalysisContext
from ..models.records import Finding, Severity
from .support import attribute_type_name, extract_relevant_type_names

SINGLETON_ACCESS_RE = re.compile(r"\b([A-Z][A-Za-z0-9_]*)\.(shared|default)\b")
INSTANTIATION_RE = re.compile(r"\b([A-Z][A-Za-z0-9_]*)\s*\(")

# Value and primitive types whose construction says nothing about coupling.
DEFAULT_EXCLUDED_INSTANTIATION_TYPES: FrozenSet[str] = frozenset(
    {
        "Array",
        "Bool",
        "CGAffineTransform",
        "CGFloat",
        "CGPoint",
        "CGRect",
        "CGSize",
        "CGVector",
        "Character",
        "Color",
        "Data",
        "Date",
        "DateComponents",
        "Decimal",
        "Dictionary",
        "Double",
        "Float",
        "Font",
        "IndexPath",
        "IndexSet",
        "Int",
        "Int16",
        "Int32",
        "Int64",
        "Int8",
        "NSAttributedString",
        "NSMakeRange",
        "NSNumber",
        "NSRange",
        "Range",
        "Set",
        "String",
        "Substring",
        "TimeInterval",
        "UIColor",
        "UIEdgeInsets",
        "UIFont",
        "UIImage",
        "UInt",
        "URL",
        "UUID",
    }
)

SAMPLE_SIZE = 8


@dataclass(frozen=True)
class DependencyInjectionSmellRule:
    """Counts singleton accesses and direct instantiations per file.

    ``Type.shared`` / ``Type.default`` accesses listed in ``singleton_allowlist``
    and ``Type(...)`` calls of types in ``excluded_instantiation_types`` are
    not counted toward the thresholds.
    """

    shared_threshold: int = 5
    instantiation_threshold: int = 20
    singleton_allowlist: FrozenSet[str] = field(default_factory=frozenset)
    excluded_instantiation_types: FrozenSet[str] = DEFAULT_EXCLUDED_INSTANTIATION_TYPES

    id = "di-smell"
    description = "Detects direct instantiation and singleton usage that reduce testability"

    def check(self, context: AnalysisContext) -> List[Finding]:
        findings: List[Finding] = []
        for path, text in context.iter_sources():
            finding = self._check_file(context, path, text)
            if finding is not None:
                findings.append(finding)
        return findings

    def _check_file(self, context: AnalysisContext, path: str, text: str) -> Optional[Finding]:
        raw_singletons = list(SINGLETON_ACCESS_RE.finditer(text))
        singletons = [
            m for m in raw_singletons if f"{m.group(1)}.{m.group(2)}" not in self.singleton_allowlist
        ]
        raw_instantiations = list(INSTANTIATION_RE.finditer(text))
        instantiations = [
            m for m in raw_instantiations if m.group(1) not in self.excluded_instantiation_types
        ]
        singleton_count = len(singletons)
        instantiation_count = len(instantiations)
        if singleton_count + instantiation_count == 0:
            return None
        if not (
            singleton_count >= self.shared_threshold
            or instantiation_count >= self.instantiation_threshold
        ):
            return None

        high = singleton_count >= max(self.shared_threshold * 2, 12) or (
            instantiation_count >= max(self.instantiation_threshold * 2, 40)
        )
        first_offset = min(m.start() for m in singletons + instantiations)
        line = LineIndex(text).line_of(first_offset)
        type_names = extract_relevant_type_names(text)

        excluded_sample = sorted(self.excluded_instantiation_types)[:SAMPLE_SIZE]
        evidence = {
            "singletonUsageCount": str(singleton_count),
            "rawSingletonUsageCount": str(len(raw_singletons)),
            "directInstantiationCount": str(instantiation_count),
            "rawDirectInstantiationCount": str(len(raw_instantiations)),
            "sharedThreshold": str(self.shared_threshold),
            "instantiationThreshold": str(self.instantiation_threshold),
            "singletonAllowlist": ", ".join(sorted(self.singleton_allowlist)) or "none",
            "excludedInstantiationTypeCount": str(len(self.excluded_instantiation_types)),
            "excludedInstantiationTypeSample": ", ".join(excluded_sample) or "none",
        }
        if type_names:
            evidence["typeNames"] = ", ".join(type_names)

        return Finding(
            rule_id=self.id,
            title="Tight coupling / DI smell",
            message=(
                "This file contains frequent singleton usage "
                f"({singleton_count}) or direct instantiations ({instantiation_count}). "
                "Consider using protocols and dependency injection."
            ),
            severity=Severity.HIGH if high else Severity.MEDIUM,
            file_path=path,
            line=line,
            type_name=attribute_type_name(context, path, line, type_names),
            evidence=evidence,
            snippet=snippet_around(text, line),
        )
