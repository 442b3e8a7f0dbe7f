"""Extraction helpers shared by the text-based rules."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..analysis.analyzer import find_enclosing_unit
from ..analysis.utils import LineIndex, split_lines
from ..models.context import AnalysisContext

TYPE_DECLARATION_RE = re.compile(
    r"\b(?:final\s+)?(?:public\s+|internal\s+|private\s+|fileprivate\s+|open\s+)?"
    r"(?:class|struct|actor)\s+([A-Z][A-Za-z0-9_]*)"
)

UI_TYPE_SUFFIXES = ("ViewController", "VC", "ViewModel", "VM")

SITE_EXCERPT_CHARS = 120


def extract_relevant_type_names(text: str) -> List[str]:
    """Names of declared types, narrowed to UI-layer types when any exist."""
    names: List[str] = []
    for match in TYPE_DECLARATION_RE.finditer(text):
        name = match.group(1)
        if name not in names:
            names.append(name)
    focused = [name for name in names if name.endswith(UI_TYPE_SUFFIXES)]
    return focused or names


def attribute_type_name(
    context: AnalysisContext, path: str, line: Optional[int], fallback: Sequence[str]
) -> Optional[str]:
    """Pick the type a per-file finding belongs to.

    The innermost structural unit spanning ``line`` wins; otherwise the first
    relevant declared name is used.
    """
    unit = find_enclosing_unit(context.units_for(path), line)
    if unit is not None:
        return unit.name
    return fallback[0] if fallback else None


@dataclass(frozen=True)
class IssueSite:
    offset: int
    line: int
    excerpt: str


def collect_sites(text: str, pattern: re.Pattern[str], index: LineIndex) -> List[IssueSite]:
    lines = split_lines(text)
    sites: List[IssueSite] = []
    for match in pattern.finditer(text):
        line = index.line_of(match.start())
        if not 0 < line <= len(lines):
            continue
        excerpt = lines[line - 1].strip()[:SITE_EXCERPT_CHARS]
        sites.append(IssueSite(offset=match.start(), line=line, excerpt=excerpt))
    return sites


def site_summary(sites: Sequence[IssueSite], max_samples: int = 3) -> str:
    if not sites:
        return "none"
    return " | ".join(f"L{site.line}: {site.excerpt}" for site in sites[:max_samples])
