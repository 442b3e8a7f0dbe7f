"""AI client abstractions."""
from __future__ import annotations

from typing import Protocol

DEFAULT_MODEL = "gpt-4o-mini"


class AIClient(Protocol):
    """Turns a prompt into a Markdown recommendations document."""

    def generate_markdown(self, prompt: str) -> str:
        """Generate Markdown for ``prompt``.

        Args:
            prompt: Complete prompt including the findings to explain.

        Returns:
            Markdown text, without a leading section header.

        Raises:
            AIGenerationError: If the request fails or the response is empty.
        """
