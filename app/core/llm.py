"""
Thin wrapper around the OpenAI chat completions API.

Every call site gets a client bound to the job owner's API key and an explicit
timeout, so a hung model call only stalls the background task that made it.
"""

import json
import logging
from typing import Dict, List, Optional

from openai import OpenAI

from app.core.config import settings

logger = logging.getLogger(__name__)


class LLMResponseError(Exception):
    """The model returned an empty or unparseable response."""
    pass


class LLMClient:
    """Chat completion client with plain-text and JSON-mode helpers."""

    def __init__(self, api_key: str, model: Optional[str] = None, timeout: Optional[float] = None):
        self.model = model or settings.OPENAI_MODEL
        self._client = OpenAI(
            api_key=api_key,
            timeout=timeout or settings.OPENAI_TIMEOUT_SECONDS,
            max_retries=1,
        )

    def complete(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Return the assistant text for a chat transcript."""
        kwargs = {}
        if max_tokens:
            kwargs["max_tokens"] = max_tokens

        response = self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            **kwargs,
        )
        return response.choices[0].message.content or ""

    def complete_json(self, messages: List[Dict[str, str]], temperature: float) -> Dict:
        """
        Return the assistant reply parsed as a JSON object.

        Raises:
            LLMResponseError: empty content or invalid JSON
        """
        response = self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            response_format={"type": "json_object"},
            temperature=temperature,
        )

        content = response.choices[0].message.content
        if not content:
            raise LLMResponseError("Empty response from OpenAI")

        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise LLMResponseError(f"Invalid JSON from OpenAI: {e}") from e
