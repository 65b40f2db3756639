"""Minimal chat-completions client (OpenAI or OpenRouter) returning parsed JSON."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import requests

from hnshowcase.errors import ConfigurationError
from hnshowcase.runtime.logging_setup import mask_secret
from hnshowcase.runtime.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"


def strip_code_fences(text: str) -> str:
    clean = (text or "").strip()
    if clean.startswith("```json"):
        clean = clean[7:]
    if clean.startswith("```"):
        clean = clean[3:]
    if clean.endswith("```"):
        clean = clean[:-3]
    return clean.strip()


class ChatCompletionClient:
    """Models with a provider prefix (``anthropic/...``) go through OpenRouter
    when an OpenRouter key is set; everything else goes to OpenAI."""

    def __init__(
        self,
        *,
        model: str,
        openai_api_key: str = "",
        openrouter_api_key: str = "",
        timeout: int = 60,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        if "/" in model and openrouter_api_key:
            self.url = OPENROUTER_URL
            api_key = openrouter_api_key
        else:
            self.url = OPENAI_URL
            api_key = openai_api_key
        if not api_key:
            raise ConfigurationError("No API key configured for the classification model")
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()
        self.rate_limiter = rate_limiter or RateLimiter(max_calls=60, time_window=60)
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        if self.url == OPENROUTER_URL:
            self.headers["HTTP-Referer"] = "https://github.com/hn-showcase"
        logger.info(f"Using {self.url} with model: {model}, key: {mask_secret(api_key)}")

    def complete_json(self, prompt: str, *, temperature: float = 0.2) -> Any:
        """Send one user prompt, require a JSON object back, return it parsed."""
        self.rate_limiter.wait_if_needed()
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "response_format": {"type": "json_object"},
        }
        resp = self.session.post(self.url, headers=self.headers, json=payload, timeout=self.timeout)
        if resp.status_code == 401:
            logger.error("Authentication failed - check API key")
        elif resp.status_code == 429:
            logger.error("Rate limit exceeded")
        resp.raise_for_status()

        data = resp.json()
        if isinstance(data, dict) and "error" in data:
            raise ValueError(f"API error: {data['error']}")
        content = (data.get("choices") or [{}])[0].get("message", {}).get("content", "")
        try:
            parsed = json.loads(strip_code_fences(content))
        except json.JSONDecodeError as e:
            logger.error(f"Raw response text: {content[:500]}...")
            raise ValueError(f"Model response was not valid JSON: {e}") from e

        usage = data.get("usage") or {}
        if usage:
            logger.debug(
                f"Usage - Prompt: {usage.get('prompt_tokens', 0)}, "
                f"Completion: {usage.get('completion_tokens', 0)}, Total: {usage.get('total_tokens', 0)} tokens"
            )
        return parsed
