"""Shared FastAPI dependencies."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends

from funding_finder.config import AppConfig, settings
from funding_finder.llm import ModelClient, get_model_client
from funding_finder.search import GrantSearchService
from funding_finder.storage import LocalStore

logger = logging.getLogger(__name__)

# set through POST /settings/api-key, wins over the environment
_runtime_api_key: Optional[str] = None


def set_runtime_api_key(key: str) -> None:
    global _runtime_api_key
    _runtime_api_key = key.strip() or None
    logger.info("Runtime model API key %s", "set" if _runtime_api_key else "cleared")


def get_settings() -> AppConfig:
    return settings


@lru_cache(maxsize=1)
def _store_for(data_dir: str, max_history: int) -> LocalStore:
    return LocalStore(data_dir, max_history=max_history)


def get_store(config: AppConfig = Depends(get_settings)) -> LocalStore:
    return _store_for(config.data_dir, config.max_history_items)


def get_client(config: AppConfig = Depends(get_settings)) -> ModelClient:
    return get_model_client(config, api_key=_runtime_api_key)


def get_search_service(
    client: ModelClient = Depends(get_client),
    store: LocalStore = Depends(get_store),
    config: AppConfig = Depends(get_settings),
) -> GrantSearchService:
    return GrantSearchService(client, store, verify_links=config.verify_links)
