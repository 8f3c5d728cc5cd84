"""
services/llm.py: Client for the AI gateway (OpenAI-compatible chat completions).

Async methods use openai.AsyncOpenAI for FastAPI routes; complete_sync() uses
openai.OpenAI for Celery workers. Gateway failures surface as GatewayError
subclasses so routers can map them onto HTTP statuses.
"""

import logging
from typing import List, Optional

import openai

from config import Config

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """The AI gateway failed or returned an unusable response."""

    status_code: Optional[int] = None

    def __init__(self, message: str = "AI Gateway error", status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class GatewayNotConfigured(GatewayError):
    pass


class GatewayRateLimited(GatewayError):
    status_code = 429


class GatewayCreditsExhausted(GatewayError):
    status_code = 402


def _translate(exc: Exception) -> GatewayError:
    if isinstance(exc, openai.APIStatusError):
        if exc.status_code == 429:
            return GatewayRateLimited(str(exc))
        if exc.status_code == 402:
            return GatewayCreditsExhausted(str(exc))
        return GatewayError(f"AI Gateway error: {exc.status_code}", exc.status_code)
    return GatewayError(f"AI Gateway error: {exc}")


class LLMService:
    """Chat completions against the gateway.  Instantiate once as a module-level singleton."""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None):
        self._base_url = base_url or Config.AI_GATEWAY_URL
        self._api_key = api_key if api_key is not None else Config.AI_GATEWAY_API_KEY
        self._async_client = None   # openai.AsyncOpenAI, lazy init
        self._sync_client = None    # openai.OpenAI, lazy init (Celery workers)

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    # ── Async chat ───────────────────────────────────────────────────────────

    async def complete(self, messages: List[dict], model: str) -> str:
        """Send *messages* and return the first choice's text ('' when the gateway returns none)."""
        client = self._get_async_client()
        try:
            resp = await client.chat.completions.create(model=model, messages=messages)
        except openai.OpenAIError as exc:
            logger.error("AI gateway call failed model=%s: %s", model, exc)
            raise _translate(exc) from exc
        return self._extract_content(resp)

    # ── Sync chat (Celery workers) ───────────────────────────────────────────

    def complete_sync(self, messages: List[dict], model: str) -> str:
        client = self._get_sync_client()
        try:
            resp = client.chat.completions.create(model=model, messages=messages)
        except openai.OpenAIError as exc:
            logger.error("AI gateway call failed model=%s: %s", model, exc)
            raise _translate(exc) from exc
        return self._extract_content(resp)

    # ── Client helpers ───────────────────────────────────────────────────────

    def _get_async_client(self):
        if self._async_client is None:
            if not self._api_key:
                raise GatewayNotConfigured("AI gateway is not configured")
            self._async_client = openai.AsyncOpenAI(
                base_url=self._base_url,
                api_key=self._api_key,
                timeout=Config.AI_TIMEOUT,
                max_retries=1,
            )
        return self._async_client

    def _get_sync_client(self):
        if self._sync_client is None:
            if not self._api_key:
                raise GatewayNotConfigured("AI gateway is not configured")
            self._sync_client = openai.OpenAI(
                base_url=self._base_url,
                api_key=self._api_key,
                timeout=Config.AI_TIMEOUT,
                max_retries=1,
            )
        return self._sync_client

    def _extract_content(self, response) -> str:
        try:
            return response.choices[0].message.content or ""
        except (AttributeError, IndexError, TypeError):
            return ""
