"""JSON-file persistence for history, drafts, caches and admin logs."""
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from funding_finder.constants import DEFAULT_PROFILE, MAX_HISTORY_ITEMS
from funding_finder.models import AdminLog, HistoryItem, SearchResult

logger = logging.getLogger(__name__)

HISTORY_FILE = "history.json"
DRAFT_FILE = "profile_draft.json"
ENRICHMENT_FILE = "enrichment_cache.json"
STATS_FILE = "stats.json"
ADMIN_LOGS_FILE = "admin_logs.json"

CSV_COLUMNS = [
    "search_id",
    "timestamp",
    "profile_name",
    "mode",
    "audit_status",
    "title",
    "provider",
    "type",
    "deadline",
    "deadline_date",
    "relevance_score",
    "relevance_reason",
    "url",
    "url_verified",
]


class LocalStore:
    def __init__(self, data_dir: str | Path, max_history: int = MAX_HISTORY_ITEMS) -> None:
        self.data_dir = Path(data_dir)
        self.max_history = max_history
        self._lock = threading.RLock()

    # ==================================
    # ========== FILE HELPERS ==========
    # ==================================

    def _path(self, name: str) -> Path:
        return self.data_dir / name

    def _read(self, name: str, default: Any) -> Any:
        path = self._path(name)
        if not path.exists():
            return default
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read %s (%s); using defaults", path, e)
            return default
        if not isinstance(data, type(default)):
            logger.warning("Unexpected content in %s; using defaults", path)
            return default
        return data

    def _write(self, name: str, data: Any) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        path = self._path(name)
        fd, tmp = tempfile.mkstemp(dir=self.data_dir, prefix=f".{name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False, indent=2)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise

    # =============================
    # ========== HISTORY ==========
    # =============================

    def load_history(self) -> List[HistoryItem]:
        items: List[HistoryItem] = []
        for raw in self._read(HISTORY_FILE, []):
            try:
                items.append(HistoryItem.model_validate(raw))
            except ValueError as e:
                logger.warning("Skipping unreadable history entry: %s", e)
        return items

    def add_history(self, result: SearchResult) -> HistoryItem:
        item = HistoryItem(**result.model_dump())
        with self._lock:
            history = [item] + self.load_history()
            history = history[: self.max_history]
            self._write(HISTORY_FILE, [h.model_dump() for h in history])
        return item

    def get_history_item(self, item_id: str) -> Optional[HistoryItem]:
        return next((h for h in self.load_history() if h.id == item_id), None)

    def clear_history(self) -> None:
        with self._lock:
            self._write(HISTORY_FILE, [])

    def history_dataframe(self, items: Optional[Iterable[HistoryItem]] = None) -> pd.DataFrame:
        """One row per opportunity, across every stored search."""
        items = self.load_history() if items is None else items
        rows = []
        for item in items:
            for opp in item.opportunities:
                rows.append({
                    "search_id": item.id,
                    "timestamp": item.timestamp,
                    "profile_name": item.profile_name or "",
                    "mode": item.mode,
                    "audit_status": item.audit_status,
                    "title": opp.title,
                    "provider": opp.provider,
                    "type": opp.type,
                    "deadline": opp.deadline,
                    "deadline_date": opp.deadline_date,
                    "relevance_score": opp.relevance_score,
                    "relevance_reason": opp.relevance_reason,
                    "url": opp.url or "",
                    "url_verified": "" if opp.url_verified is None else opp.url_verified,
                })
        return pd.DataFrame(rows, columns=CSV_COLUMNS)

    def export_history(self, fmt: str = "json") -> str:
        if fmt == "csv":
            return self.history_dataframe().to_csv(index=False)
        if fmt == "json":
            return json.dumps([h.model_dump() for h in self.load_history()], ensure_ascii=False, indent=2)
        raise ValueError(f"Unsupported export format '{fmt}'")

    # ===========================
    # ========== DRAFT ==========
    # ===========================

    def load_profile_draft(self) -> Dict[str, Any]:
        draft = dict(DEFAULT_PROFILE)
        draft.update(self._read(DRAFT_FILE, {}))
        return draft

    def save_profile_draft(self, data: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            draft = self.load_profile_draft()
            draft.update({k: v for k, v in data.items() if v is not None})
            self._write(DRAFT_FILE, draft)
        return draft

    # ================================
    # ========== ENRICHMENT ==========
    # ================================

    def get_cached_enrichment(self, key: str) -> Optional[Dict[str, Any]]:
        return self._read(ENRICHMENT_FILE, {}).get(key)

    def cache_enrichment(self, key: str, data: Dict[str, Any]) -> None:
        with self._lock:
            cache = self._read(ENRICHMENT_FILE, {})
            cache[key] = data
            self._write(ENRICHMENT_FILE, cache)

    # ===========================
    # ========== STATS ==========
    # ===========================

    def get_request_count(self) -> int:
        count = self._read(STATS_FILE, {}).get("request_count", 0)
        return count if isinstance(count, int) else 0

    def increment_request_count(self) -> int:
        with self._lock:
            stats = self._read(STATS_FILE, {})
            count = self.get_request_count() + 1
            stats["request_count"] = count
            self._write(STATS_FILE, stats)
        return count

    # ================================
    # ========== ADMIN LOGS ==========
    # ================================

    def load_admin_logs(self) -> List[AdminLog]:
        logs: List[AdminLog] = []
        for raw in self._read(ADMIN_LOGS_FILE, []):
            try:
                logs.append(AdminLog.model_validate(raw))
            except ValueError as e:
                logger.warning("Skipping unreadable admin log: %s", e)
        return logs

    def add_admin_log(self, result: SearchResult) -> AdminLog:
        entry = AdminLog(data=result)
        with self._lock:
            logs = self.load_admin_logs()
            logs.append(entry)
            self._write(ADMIN_LOGS_FILE, [log.model_dump() for log in logs])
        return entry

    def unsynced_admin_logs(self) -> List[AdminLog]:
        return [log for log in self.load_admin_logs() if not log.synced]

    def mark_synced(self, ids: Iterable[str]) -> int:
        ids = set(ids)
        changed = 0
        with self._lock:
            logs = self.load_admin_logs()
            for log in logs:
                if log.id in ids and not log.synced:
                    log.synced = True
                    changed += 1
            if changed:
                self._write(ADMIN_LOGS_FILE, [log.model_dump() for log in logs])
        return changed

    def record_search(self, result: SearchResult) -> HistoryItem:
        """Everything a completed search leaves behind: history, admin log, counter."""
        item = self.add_history(result)
        self.add_admin_log(result)
        self.increment_request_count()
        return item
