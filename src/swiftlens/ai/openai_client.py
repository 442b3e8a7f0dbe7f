"""AI client backed by the OpenAI Chat Completions API."""
from __future__ import annotations

import logging
import os
from typing import Optional

from openai import OpenAI, OpenAIError

from ..exceptions import AIGenerationError
from .client import DEFAULT_MODEL

logger = logging.getLogger(__name__)

API_KEY_ENV = "OPENAI_API_KEY"
SYSTEM_MESSAGE = "You are a helpful assistant."


class OpenAIClient:
    """Generate recommendations with an OpenAI chat model.

    The API key defaults to ``$OPENAI_API_KEY``; the SDK client is created on
    first use so constructing this class never touches the network.
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.2,
    ) -> None:
        self._model = model
        self._api_key = api_key if api_key is not None else os.environ.get(API_KEY_ENV, "")
        self._base_url = base_url
        self._temperature = temperature
        self._client: Optional[OpenAI] = None

    def generate_markdown(self, prompt: str) -> str:
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_MESSAGE},
                    {"role": "user", "content": prompt},
                ],
                temperature=self._temperature,
            )
        except (OpenAIError, OSError, ValueError) as exc:
            logger.warning(f"OpenAI request failed (model={self._model} error={exc})")
            raise AIGenerationError(str(exc)) from exc

        content = _extract_content(response)
        if not content:
            logger.warning(
                f"OpenAI response did not contain message content (model={self._model})"
            )
            raise AIGenerationError("Malformed response from OpenAI: no message content")
        return content

    def _get_client(self) -> OpenAI:
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise AIGenerationError(f"Missing API key; set {API_KEY_ENV}")
        try:
            self._client = OpenAI(api_key=self._api_key, base_url=self._base_url)
        except (OpenAIError, OSError, ValueError) as exc:
            logger.warning(
                f"OpenAI client initialization failed (model={self._model} error={exc})"
            )
            raise AIGenerationError(str(exc)) from exc
        return self._client


def _extract_content(response: object) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None)
    return content.strip() if isinstance(content, str) else ""
