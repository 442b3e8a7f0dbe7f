from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..analysis.analyzer import aggregate_units
from ..analysis.utils import snippet_around, split_lines
from ..models.context import AnalysisContext
from ..models.records import Finding, FunctionMetric, Severity, StructuralUnit

logger = logging.getLogger(__name__)

FUNCTION_PREFIXES = ("setup", "bind", "fetch", "handle", "validate", "load", "make", "build")


@dataclass(frozen=True)
class GodTypeRule:
    """Flags types that are likely doing too much.

    A type fires when its line count or its function count reaches the
    configured threshold. With ``merge_extensions`` the extensions of a type
    are folded into it, across files as well.
    """

    line_threshold: int = 300
    function_threshold: int = 20
    merge_extensions: bool = False

    id = "god-type"
    description = "Detects overly large types (e.g. view controllers or view models)"

    def check(self, context: AnalysisContext) -> List[Finding]:
        findings: List[Finding] = []
        for unit in self._units(context):
            finding = self._evaluate(unit, context)
            if finding is not None:
                findings.append(finding)
        return findings

    def _units(self, context: AnalysisContext) -> List[StructuralUnit]:
        units_by_file = context.units_by_file(self.merge_extensions)
        if self.merge_extensions:
            expected = len(context.source_paths())
            if len(units_by_file) < expected:
                # aggregates are only valid over every file
                logger.info(
                    "Skipping merged god-type check: run stopped after %d of %d files",
                    len(units_by_file),
                    expected,
                )
                return []
            return aggregate_units(units_by_file)
        return [unit for path in sorted(units_by_file) for unit in units_by_file[path]]

    def _evaluate(self, unit: StructuralUnit, context: AnalysisContext) -> Optional[Finding]:
        line_count = unit.line_count
        func_count = len(unit.functions)
        line_triggered = line_count >= self.line_threshold
        if not (line_triggered or func_count >= self.function_threshold):
            return None
        text = context.files.get(unit.file_path)
        if text is None:
            logger.debug("Unit %s points at unknown file %s", unit.name, unit.file_path)
            return None

        high = line_count >= max(self.line_threshold * 2, 600) or func_count >= max(
            self.function_threshold * 2, 40
        )
        line = self._issue_line(unit, line_triggered, len(split_lines(text)))
        kind = unit.kind.capitalize()
        message = (
            f"{kind} `{unit.name}` appears large ({line_count} lines, {func_count} "
            f"functions by {unit.counting_method} counting). Consider splitting "
            "responsibilities by feature boundaries. "
            f"Counting method: {unit.counting_method}, confidence: {unit.confidence}."
        )
        return Finding(
            rule_id=self.id,
            title="Massive type suspected",
            message=message,
            severity=Severity.HIGH if high else Severity.MEDIUM,
            file_path=unit.file_path,
            line=line,
            type_name=unit.name,
            evidence=self._evidence(unit),
            snippet=snippet_around(text, line),
        )

    def _issue_line(self, unit: StructuralUnit, line_triggered: bool, total_lines: int) -> int:
        """Pick a line of ``unit.file_path`` to report.

        The line-threshold candidate must lie inside the declaration itself and
        the function-threshold candidate must live in the same file; otherwise
        the declaration start is used. A line past the end of the file falls
        back to the file midpoint.
        """
        if line_triggered:
            candidate = unit.start_line + min(self.line_threshold, unit.line_count) - 1
            if candidate > unit.end_line:
                candidate = unit.start_line
        else:
            fn = unit.functions[self.function_threshold - 1]
            candidate = fn.start_line
            if fn.file_path and fn.file_path != unit.file_path:
                candidate = unit.start_line
        if candidate > total_lines:
            return max(1, (total_lines + 1) // 2)
        return candidate

    def _evidence(self, unit: StructuralUnit) -> Dict[str, str]:
        prefix_groups = ", ".join(
            f"{prefix}: {count}" for prefix, count in grouped_function_prefixes(unit.functions)[:8]
        )
        mark_sections = ", ".join(unit.mark_sections[:8])
        return {
            "lineCount": str(unit.line_count),
            "funcCount": str(len(unit.functions)),
            "lineThreshold": str(self.line_threshold),
            "functionThreshold": str(self.function_threshold),
            "typeName": unit.name,
            "typeKind": unit.kind,
            "topFunctionNames": top_function_names(unit.functions),
            "avgFunctionLines": average_function_lines(unit.functions),
            "maxFunctionLines": str(max((fn.line_span for fn in unit.functions), default=0)),
            "extensionCount": str(unit.extension_count),
            "includeExtensions": str(self.merge_extensions).lower(),
            "uiActionCount": str(unit.ui_action_count),
            "functionPrefixGroups": prefix_groups or "none",
            "markSections": mark_sections or "none",
            "countingMethod": unit.counting_method,
            "countingConfidence": unit.confidence,
        }


def top_function_names(functions: Sequence[FunctionMetric], limit: int = 10) -> str:
    ranked = sorted(functions, key=lambda fn: (-fn.line_span, fn.start_line))
    return ", ".join(f"{fn.name}({fn.line_span}L)" for fn in ranked[:limit])


def average_function_lines(functions: Sequence[FunctionMetric]) -> str:
    if not functions:
        return "0.0"
    total = sum(fn.line_span for fn in functions)
    return f"{total / len(functions):.1f}"


def grouped_function_prefixes(functions: Sequence[FunctionMetric]) -> List[Tuple[str, int]]:
    counts: Counter[str] = Counter()
    for fn in functions:
        lower = fn.name.lower()
        match = next((prefix for prefix in FUNCTION_PREFIXES if lower.startswith(prefix)), None)
        if match:
            counts[match] += 1
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))
