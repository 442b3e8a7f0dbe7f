from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

from ..analysis.utils import LineIndex, snippet_around
from ..models.context import AnalysisContext
from ..models.records import Finding, Severity
from .support import (
    attribute_type_name,
    collect_sites,
    extract_relevant_type_names,
    site_summary,
)

TASK_RE = re.compile(r"\bTask(?:\.detached)?\s*\{")
TIMER_RE = re.compile(r"\bTimer\.scheduledTimer")
DISPATCH_AFTER_RE = re.compile(r"\bDispatchQueue\..*asyncAfter")

CANCEL_RE = re.compile(r"\b(?:cancel|invalidate)\(")
TEARDOWN_RE = re.compile(
    r"\bdeinit\b|\bfunc\s+view(?:Will|Did)Disappear\b|\.onDisappear\b"
)


@dataclass(frozen=True)
class AsyncLifecycleRule:
    """Flags files scheduling async work without any cancellation hint.

    Counts ``Task`` blocks, scheduled timers and delayed dispatches, and
    compares them against explicit cancel/invalidate calls and teardown hooks
    such as ``deinit``. Heuristic; expect false positives.
    """

    async_threshold: int = 3
    cancel_hint_threshold: int = 1

    id = "async-lifecycle"
    description = "Detects async work that may outlive view/controller lifecycle"

    def check(self, context: AnalysisContext) -> List[Finding]:
        findings: List[Finding] = []
        for path, text in context.iter_sources():
            finding = self._check_file(context, path, text)
            if finding is not None:
                findings.append(finding)
        return findings

    def _check_file(self, context: AnalysisContext, path: str, text: str) -> Optional[Finding]:
        index = LineIndex(text)
        task_sites = collect_sites(text, TASK_RE, index)
        timer_sites = collect_sites(text, TIMER_RE, index)
        dispatch_sites = collect_sites(text, DISPATCH_AFTER_RE, index)
        async_sites = task_sites + timer_sites + dispatch_sites
        async_total = len(async_sites)
        if async_total == 0 or async_total < self.async_threshold:
            return None

        cancel_count = len(CANCEL_RE.findall(text))
        teardown_count = len(TEARDOWN_RE.findall(text))
        hints = cancel_count + teardown_count
        if hints >= self.cancel_hint_threshold:
            return None

        line = min(site.line for site in async_sites)
        type_names = extract_relevant_type_names(text)
        evidence = {
            "taskCount": str(len(task_sites)),
            "timerCount": str(len(timer_sites)),
            "dispatchAfterCount": str(len(dispatch_sites)),
            "asyncTotal": str(async_total),
            "cancelCount": str(cancel_count),
            "teardownHookCount": str(teardown_count),
            "cancelOrDeinitHints": str(hints),
            "asyncThreshold": str(self.async_threshold),
            "cancelHintThreshold": str(self.cancel_hint_threshold),
            "taskSites": site_summary(task_sites),
            "timerSites": site_summary(timer_sites),
            "dispatchAfterSites": site_summary(dispatch_sites),
        }
        if type_names:
            evidence["typeNames"] = ", ".join(type_names)

        high = async_total >= max(self.async_threshold * 2, 6)
        return Finding(
            rule_id=self.id,
            title="Async work may outlive lifecycle",
            message=(
                f"Found many async/timer patterns ({async_total}) without "
                "cancellation or deinit handling."
            ),
            severity=Severity.HIGH if high else Severity.MEDIUM,
            file_path=path,
            line=line,
            type_name=attribute_type_name(context, path, line, type_names),
            evidence=evidence,
            snippet=snippet_around(text, line),
        )
