from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Sequence

from .config import Settings
from .exceptions import AnalysisCancelled, ConfigError
from .models.context import AnalysisContext
from .models.records import Finding
from .rules.async_lifecycle import AsyncLifecycleRule
from .rules.base import Rule
from .rules.di_smell import DEFAULT_EXCLUDED_INSTANTIATION_TYPES, DependencyInjectionSmellRule
from .rules.god_type import GodTypeRule

logger = logging.getLogger(__name__)

RULE_IDS = (GodTypeRule.id, DependencyInjectionSmellRule.id, AsyncLifecycleRule.id)


class Linter:
    """Runs independent rules over one context and concatenates their findings.

    Rule order carries no meaning; ordering is imposed later by
    ``pipeline.prioritize``.
    """

    def __init__(self, rules: Sequence[Rule], workers: int = 1) -> None:
        self.rules = list(rules)
        self.workers = max(1, workers)

    def run(self, context: AnalysisContext) -> List[Finding]:
        merge_flags = {False}
        merge_flags.update(
            rule.merge_extensions for rule in self.rules if isinstance(rule, GodTypeRule)
        )
        context.prepare(tuple(sorted(merge_flags)), workers=self.workers)

        findings: List[Finding] = []
        if self.workers == 1 or len(self.rules) <= 1:
            for rule in self.rules:
                findings.extend(self._check(rule, context))
        else:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                for result in pool.map(lambda rule: self._check(rule, context), self.rules):
                    findings.extend(result)

        if context.cancelled:
            raise AnalysisCancelled(findings)
        return findings

    def _check(self, rule: Rule, context: AnalysisContext) -> List[Finding]:
        findings = rule.check(context)
        logger.debug("Rule %s produced %d finding(s)", rule.id, len(findings))
        return findings


def build_rules(settings: Settings) -> List[Rule]:
    """Instantiate the rules selected by ``settings``.

    Raises:
        ConfigError: If the selection names an unknown rule.
    """
    di = settings.di_smell
    excluded = (
        frozenset(di.excluded_instantiation_types)
        if di.excluded_instantiation_types is not None
        else DEFAULT_EXCLUDED_INSTANTIATION_TYPES
    )
    all_rules: List[Rule] = [
        GodTypeRule(
            line_threshold=settings.god_type.line_threshold,
            function_threshold=settings.god_type.function_threshold,
            merge_extensions=settings.include_extensions,
        ),
        DependencyInjectionSmellRule(
            shared_threshold=di.shared_threshold,
            instantiation_threshold=di.instantiation_threshold,
            singleton_allowlist=frozenset(di.singleton_allowlist),
            excluded_instantiation_types=excluded,
        ),
        AsyncLifecycleRule(
            async_threshold=settings.async_lifecycle.async_threshold,
            cancel_hint_threshold=settings.async_lifecycle.cancel_hint_threshold,
        ),
    ]
    if settings.rules == "all":
        return all_rules
    unknown = sorted(set(settings.rules) - set(RULE_IDS))
    if unknown:
        raise ConfigError(
            f"Unknown rule id(s): {', '.join(unknown)}. Available: {', '.join(RULE_IDS)}"
        )
    selected = set(settings.rules)
    return [rule for rule in all_rules if rule.id in selected]
