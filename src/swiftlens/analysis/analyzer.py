"""Structural analysis of Swift sources.

Turns one file's text into ``StructuralUnit`` records. Extraction is delegated
to a strategy (tree-sitter walk or regex fallback); both produce
``DeclarationRecord`` lists which ``UnitBuilder`` merges the same way, so the
rules never need to know which strategy ran.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..models.records import StructuralUnit
from .base import DeclarationRecord, ExtractionFailed, ExtractionStrategy, StrategyRegistry
from .regex_strategy import RegexStrategy
from .syntax_strategy import SyntaxTreeStrategy

logger = logging.getLogger(__name__)

STRATEGY_CHOICES = ("auto", "syntax", "regex")


class UnitBuilder:
    """Merges the declarations of one file into structural units."""

    def __init__(
        self,
        file_path: str,
        strategy: ExtractionStrategy,
        merge_extensions: bool,
    ) -> None:
        self._file_path = file_path
        self._strategy = strategy
        self._merge_extensions = merge_extensions
        self._order: List[str] = []
        self._units: Dict[str, StructuralUnit] = {}
        self._pending: Dict[str, List[DeclarationRecord]] = {}

    def add(self, record: DeclarationRecord) -> None:
        if record.is_extension:
            self._add_extension(record)
        else:
            self._add_type(record)

    def _add_type(self, record: DeclarationRecord) -> None:
        unit = StructuralUnit(
            name=record.name,
            kind=record.kind,
            start_line=record.start_line,
            line_count=record.line_count,
            file_path=self._file_path,
            functions=list(record.functions),
            ui_action_count=record.ui_action_count,
            mark_sections=list(record.mark_sections),
            counting_method=self._strategy.counting_method,
            confidence=self._strategy.confidence,
        )
        for ext in self._pending.pop(record.name, []):
            _absorb_extension(unit, ext)

        existing = self._units.get(record.name)
        if existing is None:
            self._order.append(record.name)
            self._units[record.name] = unit
            return
        # Duplicate declaration: first-seen kind and start line win.
        existing.line_count += unit.line_count
        existing.functions.extend(unit.functions)
        existing.ui_action_count += unit.ui_action_count
        existing.mark_sections.extend(unit.mark_sections)
        existing.extension_count += unit.extension_count

    def _add_extension(self, record: DeclarationRecord) -> None:
        if not self._merge_extensions:
            return
        base = self._units.get(record.name)
        if base is not None:
            _absorb_extension(base, record)
        else:
            self._pending.setdefault(record.name, []).append(record)

    def build(self) -> List[StructuralUnit]:
        for name, extensions in self._pending.items():
            ordered = sorted(extensions, key=lambda ext: ext.start_line)
            unit = StructuralUnit(
                name=name,
                kind="extension",
                start_line=ordered[0].start_line,
                line_count=0,
                end_line=ordered[0].start_line + ordered[0].line_count - 1,
                file_path=self._file_path,
                counting_method=self._strategy.counting_method,
                confidence=self._strategy.confidence,
            )
            for ext in ordered:
                _absorb_extension(unit, ext)
            self._units[name] = unit
            self._order.append(name)
        self._pending = {}

        units = [self._units[name] for name in self._order]
        for unit in units:
            unit.functions.sort(key=lambda fn: (fn.start_line, fn.name))
        return units


def _absorb_extension(unit: StructuralUnit, ext: DeclarationRecord) -> None:
    unit.line_count += ext.line_count
    unit.extension_count += 1
    unit.ui_action_count += ext.ui_action_count
    unit.functions.extend(ext.functions)
    unit.mark_sections.extend(ext.mark_sections)


class StructuralAnalyzer:
    """Entry point of structural analysis.

    Args:
        strategy: ``auto`` tries the tree-sitter walk and falls back to regex
            extraction for files it cannot parse cleanly; ``syntax`` and
            ``regex`` force one strategy.
        registry: Optional pre-populated strategy registry.
    """

    def __init__(
        self, strategy: str = "auto", registry: StrategyRegistry | None = None
    ) -> None:
        if strategy not in STRATEGY_CHOICES:
            raise ValueError(f"Unknown analyzer strategy: {strategy}")
        self.strategy = strategy
        self.registry = registry or build_registry(strategy)

    def analyze(
        self, file_path: str, source: str, merge_extensions: bool = False
    ) -> List[StructuralUnit]:
        strategy, records = self._extract(file_path, source)
        builder = UnitBuilder(file_path, strategy, merge_extensions)
        for record in records:
            builder.add(record)
        return builder.build()

    def _extract(
        self, file_path: str, source: str
    ) -> Tuple[ExtractionStrategy, List[DeclarationRecord]]:
        regex = self.registry.get("regex")
        if self.strategy == "regex":
            return regex, regex.extract(source, file_path)
        syntax = self.registry.get("syntax")
        try:
            return syntax, syntax.extract(source, file_path)
        except ExtractionFailed as exc:
            if self.strategy == "syntax":
                logger.warning("Skipping %s: %s", file_path, exc)
                return syntax, []
            logger.info("Falling back to regex extraction for %s (%s)", file_path, exc)
            return regex, regex.extract(source, file_path)


def build_registry(strategy: str = "auto") -> StrategyRegistry:
    registry = StrategyRegistry()
    registry.register(RegexStrategy())
    if strategy != "regex":
        registry.register(SyntaxTreeStrategy())
    return registry


def aggregate_units(
    units_by_file: Mapping[str, Iterable[StructuralUnit]],
) -> List[StructuralUnit]:
    """Combine same-named units across files.

    Files are visited in path order. An aggregate that started from an orphan
    extension adopts the kind, file and start line of the first real
    declaration it meets.
    """
    order: List[str] = []
    merged: Dict[str, StructuralUnit] = {}
    for path in sorted(units_by_file):
        for unit in units_by_file[path]:
            existing = merged.get(unit.name)
            if existing is None:
                order.append(unit.name)
                merged[unit.name] = _copy_unit(unit)
                continue
            existing.line_count += unit.line_count
            existing.functions.extend(unit.functions)
            existing.extension_count += unit.extension_count
            existing.ui_action_count += unit.ui_action_count
            existing.mark_sections.extend(unit.mark_sections)
            if unit.confidence != "high":
                existing.counting_method = unit.counting_method
                existing.confidence = unit.confidence
            if existing.kind == "extension" and unit.kind != "extension":
                existing.kind = unit.kind
                existing.file_path = unit.file_path
                existing.start_line = unit.start_line
                existing.end_line = unit.end_line
    units = [merged[name] for name in order]
    for unit in units:
        unit.functions.sort(key=lambda fn: (fn.start_line, fn.name))
    return units


def _copy_unit(unit: StructuralUnit) -> StructuralUnit:
    return StructuralUnit(
        name=unit.name,
        kind=unit.kind,
        start_line=unit.start_line,
        line_count=unit.line_count,
        file_path=unit.file_path,
        functions=list(unit.functions),
        extension_count=unit.extension_count,
        ui_action_count=unit.ui_action_count,
        mark_sections=list(unit.mark_sections),
        counting_method=unit.counting_method,
        confidence=unit.confidence,
        end_line=unit.end_line,
    )


def find_enclosing_unit(
    units: Iterable[StructuralUnit], line: Optional[int]
) -> Optional[StructuralUnit]:
    """Return the smallest unit whose own declaration contains ``line``.

    Only the first declaration of a name is considered; merged extensions and
    duplicate declarations add lines to ``line_count`` but not to the span.
    """
    if line is None:
        return None
    containing = [u for u in units if u.kind != "extension" and u.start_line <= line <= u.end_line]
    if not containing:
        return None
    return min(containing, key=lambda u: (u.line_count, u.start_line))
