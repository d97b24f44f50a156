"""Clients for the hosted, web-search grounded generation endpoints."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests
from openai import OpenAI, OpenAIError

from funding_finder.config import AppConfig
from funding_finder.constants import BACKOFF_BASE, GEMINI_API_BASE, MAX_RETRIES

logger = logging.getLogger(__name__)


class ModelCallError(RuntimeError):
    """The model endpoint could not produce a usable answer."""


@dataclass
class ModelResponse:
    text: str
    # grounding chunks in the ``{"web": {"uri": ..., "title": ...}}`` shape
    sources: List[Dict[str, Any]] = field(default_factory=list)
    raw: Any = None


class ModelClient:
    provider = "base"

    def generate(self, prompt: str, temperature: float = 0.4) -> ModelResponse:
        raise NotImplementedError


class GeminiClient(ModelClient):
    """
    Calls ``models/{model}:generateContent`` with the ``google_search`` tool.

    Transient failures (timeouts, connection errors, 429 and 5xx) are retried
    ``max_retries`` times with exponential backoff; other 4xx fail at once.
    """

    provider = "gemini"

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        timeout: float = 300.0,
        max_retries: int = MAX_RETRIES,
        backoff_base: float = BACKOFF_BASE,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.model = model
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.backoff_base = backoff_base
        self.session = session or requests.Session()
        self._sleep = sleep

    @property
    def endpoint(self) -> str:
        return f"{GEMINI_API_BASE}/{self.model}:generateContent"

    def generate(self, prompt: str, temperature: float = 0.4) -> ModelResponse:
        if not self.api_key:
            raise ModelCallError("No API key configured for the Gemini endpoint.")

        # responseMimeType must stay unset: JSON mode is rejected together with google_search
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "tools": [{"google_search": {}}],
            "generationConfig": {"temperature": temperature},
        }
        data = self._post(payload)

        candidates = data.get("candidates") or []
        if not candidates:
            raise ModelCallError("Model returned no candidates.")
        first = candidates[0] or {}
        parts = (first.get("content") or {}).get("parts") or []
        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()
        if not text:
            raise ModelCallError("Model returned an empty answer.")

        chunks = (first.get("groundingMetadata") or {}).get("groundingChunks") or []
        return ModelResponse(text=text, sources=list(chunks), raw=data)

    def _backoff(self, attempt: int) -> float:
        return self.backoff_base * (2 ** attempt)

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key}
        last_error: Optional[str] = None

        for attempt in range(self.max_retries):
            is_last = attempt == self.max_retries - 1
            try:
                resp = self.session.post(self.endpoint, json=payload, headers=headers, timeout=self.timeout)
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                last_error = str(e)
                if is_last:
                    break
                pause = self._backoff(attempt)
                logger.warning("Model call failed (%s); retrying in %.1fs", e, pause)
                self._sleep(pause)
                continue

            if resp.status_code == 429 or resp.status_code >= 500:
                last_error = f"HTTP {resp.status_code}: {resp.text[:300]}"
                if is_last:
                    break
                pause = self._backoff(attempt)
                if resp.status_code == 429:
                    try:
                        pause = float(resp.headers.get("Retry-After", pause))
                    except (TypeError, ValueError):
                        pass
                logger.warning("Model endpoint returned %s; pausing %.1fs", resp.status_code, pause)
                self._sleep(pause)
                continue

            if resp.status_code >= 400:
                raise ModelCallError(f"Model API error ({resp.status_code}): {resp.text[:500]}")

            try:
                return resp.json()
            except ValueError as e:
                raise ModelCallError(f"Model API returned invalid JSON: {e}") from e

        raise ModelCallError(f"Model API unavailable after {self.max_retries} attempts: {last_error}")


class OpenAIClient(ModelClient):
    """Responses API with the ``web_search`` tool; the SDK handles retry/backoff."""

    provider = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        timeout: float = 300.0,
        max_retries: int = MAX_RETRIES,
        client: Optional[OpenAI] = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.model = model
        self._client = client
        self._timeout = timeout
        self._max_retries = max_retries

    def _get_client(self) -> OpenAI:
        if self._client is None:
            if not self.api_key:
                raise ModelCallError("No API key configured for the OpenAI endpoint.")
            self._client = OpenAI(api_key=self.api_key, timeout=self._timeout, max_retries=self._max_retries)
        return self._client

    def generate(self, prompt: str, temperature: float = 0.4) -> ModelResponse:
        client = self._get_client()
        try:
            response = client.responses.create(
                model=self.model,
                tools=[{"type": "web_search"}],
                input=prompt,
                temperature=temperature,
            )
        except OpenAIError as e:
            raise ModelCallError(f"OpenAI call failed: {e}") from e

        text = (getattr(response, "output_text", None) or "").strip()
        if not text:
            raise ModelCallError("Model returned an empty answer.")
        return ModelResponse(text=text, sources=_url_citations(response), raw=response)


def _url_citations(response: Any) -> List[Dict[str, Any]]:
    chunks: List[Dict[str, Any]] = []
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) != "message":
            continue
        for content in getattr(item, "content", None) or []:
            for ann in getattr(content, "annotations", None) or []:
                if getattr(ann, "type", None) == "url_citation":
                    chunks.append({"web": {"uri": getattr(ann, "url", ""), "title": getattr(ann, "title", "")}})
    return chunks


def get_model_client(config: AppConfig, api_key: Optional[str] = None) -> ModelClient:
    """Client for the configured provider; ``api_key`` overrides the configured key."""
    if config.llm_provider == "openai":
        return OpenAIClient(
            api_key=api_key or config.openai_api_key,
            model=config.openai_model,
            timeout=config.request_timeout,
        )
    return GeminiClient(
        api_key=api_key or config.api_key,
        model=config.model_id,
        timeout=config.request_timeout,
    )
