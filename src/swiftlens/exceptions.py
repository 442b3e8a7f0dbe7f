"""Custom exceptions for swiftlens."""

from __future__ import annotations

from typing import List


class SwiftLensError(Exception):
    """Base exception for all swiftlens errors."""

    pass


class ConfigError(SwiftLensError):
    """Raised when run-wide configuration is invalid.

    Reported once, before any analysis work starts.
    """

    pass


class AnalysisCancelled(SwiftLensError):
    """Raised when a run was stopped through its cancellation event.

    Attributes:
        findings: Findings for files that were fully evaluated before the stop.
    """

    def __init__(self, findings: List | None = None) -> None:
        self.findings = list(findings or [])
        super().__init__(
            f"Analysis cancelled; {len(self.findings)} finding(s) from completed files"
        )


class AIGenerationError(SwiftLensError):
    """Raised when an AI provider cannot produce recommendations."""
