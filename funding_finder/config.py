"""Application configuration helpers."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from funding_finder.constants import (
    DEFAULT_GEMINI_MODEL,
    DEFAULT_OPENAI_MODEL,
    MAX_HISTORY_ITEMS,
)


def _env(*keys: str, default: str = "") -> str:
    for key in keys:
        value = (os.getenv(key) or "").strip()
        if value:
            return value
    return default


def _env_bool(key: str, default: bool) -> bool:
    raw = (os.getenv(key) or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


@dataclass(slots=True)
class AppConfig:
    api_key: Optional[str]
    openai_api_key: Optional[str]
    llm_provider: str = "gemini"
    model_id: str = DEFAULT_GEMINI_MODEL
    openai_model: str = DEFAULT_OPENAI_MODEL
    request_timeout: float = 300.0
    max_history_items: int = MAX_HISTORY_ITEMS
    data_dir: str = "data"
    verify_links: bool = True
    google_sheet_id: Optional[str] = None
    gcp_service_account: Optional[Dict[str, Any]] = None
    log_level: str = "INFO"

    @property
    def sheets_enabled(self) -> bool:
        return bool(self.google_sheet_id and self.gcp_service_account)

    @classmethod
    def load(cls) -> "AppConfig":
        """Load configuration from environment variables."""

        raw_sa = (os.getenv("GCP_SERVICE_ACCOUNT_JSON") or "").strip()
        sa_file = (os.getenv("GCP_SERVICE_ACCOUNT_FILE") or "").strip()
        service_account: Optional[Dict[str, Any]] = None

        if raw_sa:
            try:
                service_account = json.loads(raw_sa)
            except json.JSONDecodeError as exc:
                raise ValueError(
                    "GCP_SERVICE_ACCOUNT_JSON is set but is not valid JSON. "
                    "Provide the full JSON string (or use GCP_SERVICE_ACCOUNT_FILE)."
                ) from exc
        elif sa_file:
            if not os.path.exists(sa_file):
                raise FileNotFoundError(
                    f"GCP_SERVICE_ACCOUNT_FILE is set to '{sa_file}' but the file was not found."
                )
            with open(sa_file, "r", encoding="utf-8") as fh:
                service_account = json.load(fh)

        provider = _env("LLM_PROVIDER", default="gemini").lower()
        if provider not in {"gemini", "openai"}:
            raise ValueError(f"LLM_PROVIDER must be 'gemini' or 'openai', got '{provider}'.")

        try:
            timeout = float(_env("REQUEST_TIMEOUT", default="300"))
            max_history = int(_env("MAX_HISTORY_ITEMS", default=str(MAX_HISTORY_ITEMS)))
        except ValueError as exc:
            raise ValueError("REQUEST_TIMEOUT and MAX_HISTORY_ITEMS must be numbers.") from exc

        return cls(
            api_key=_env("API_KEY", "GEMINI_API_KEY", "VITE_API_KEY") or None,
            openai_api_key=_env("OPENAI_API_KEY") or None,
            llm_provider=provider,
            model_id=_env("MODEL_ID", default=DEFAULT_GEMINI_MODEL),
            openai_model=_env("OPENAI_MODEL", default=DEFAULT_OPENAI_MODEL),
            request_timeout=timeout,
            max_history_items=max_history,
            data_dir=_env("DATA_DIR", default="data"),
            verify_links=_env_bool("VERIFY_LINKS", True),
            google_sheet_id=_env("GOOGLE_SHEET_ID") or None,
            gcp_service_account=service_account,
            log_level=_env("LOG_LEVEL", default="INFO").upper(),
        )


settings = AppConfig.load()
