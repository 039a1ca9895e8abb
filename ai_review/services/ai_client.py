# ai_review/services/ai_client.py
"""
Async client for an OpenAI-compatible chat-completion endpoint.

Sends one system + one user message, asks for a JSON object back and returns
the parsed object. Configuration comes from the Settings instance passed in;
a missing AI_API_KEY is reported when the client is built and raised on the
first call.
"""
import json
import logging
from typing import Any, Dict, Optional

import httpx

from ai_review.core.config import Settings

logger = logging.getLogger(__name__)


class AIConfigError(RuntimeError):
    pass


class AIResponseError(RuntimeError):
    """The API answered 2xx but the content was not a JSON object."""


class ChatCompletionClient:
    def __init__(self, config: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._api_key = (config.AI_API_KEY or "").strip()
        self._base_url = config.AI_BASE_URL.rstrip("/")
        self._timeout = config.AI_TIMEOUT_SEC
        self._temperature = config.AI_TEMPERATURE
        self._transport = transport
        self.model = config.AI_MODEL
        if not self._api_key:
            logger.warning("AI_API_KEY is not set; AI reviews and resume extraction will fail")

    async def complete_json(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        if not self._api_key:
            raise AIConfigError("AI_API_KEY is missing")

        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self._temperature,
            "response_format": {"type": "json_object"},
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.post(f"{self._base_url}/chat/completions", json=body, headers=headers)
            resp.raise_for_status()
            data = resp.json()

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise AIResponseError(f"Unexpected chat completion shape: {exc}") from exc
        if not content:
            raise AIResponseError("Empty completion content")

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as exc:
            raise AIResponseError(f"Completion is not valid JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise AIResponseError("Completion JSON is not an object")
        return parsed
