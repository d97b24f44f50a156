"""Push admin logs to a Google Sheet."""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import gspread
import requests
from google.oauth2.service_account import Credentials

from funding_finder.config import AppConfig
from funding_finder.models import AdminLog
from funding_finder.storage import LocalStore

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

SHEET_COLUMNS = [
    "log_id",
    "timestamp",
    "type",
    "profile_name",
    "mode",
    "audit_status",
    "degraded",
    "opportunities",
    "top_opportunity",
    "executive_summary",
    "payload",
]

# Google Sheets rejects cells longer than 50000 characters
MAX_CELL_CHARS = 45000


class SheetsNotConfigured(RuntimeError):
    pass


class SheetSyncError(RuntimeError):
    pass


def _get_sheet(
    sheet_id: str,
    service_account: Dict[str, Any],
    retries: int = 3,
    delay: float = 1,
    sleep: Callable[[float], None] = time.sleep,
) -> gspread.Worksheet:

    def try_connect():
        creds = Credentials.from_service_account_info(service_account, scopes=SCOPES)
        client = gspread.authorize(creds)
        sh = client.open_by_key(sheet_id)  # network call
        return sh.sheet1

    for attempt in range(retries):
        try:
            return try_connect()
        except requests.exceptions.RequestException as e:
            # DNS / connectivity errors end up here
            if attempt == retries - 1:
                raise SheetSyncError(f"Network error while contacting Google: {e}") from e
            logger.warning("Google Sheets connection failed (%s); retrying", e)
            sleep(delay * (2 ** attempt))
    raise SheetSyncError("Could not connect to Google Sheets.")


def _fit_cell(text: str, limit: int = MAX_CELL_CHARS) -> str:
    if len(text) <= limit:
        return text
    marker = f"... [truncated, {len(text)} chars]"
    return text[:limit - len(marker)] + marker


def admin_log_row(log: AdminLog) -> List[Any]:
    data = log.data
    top = data.opportunities[0].title if data.opportunities else ""
    return [
        log.id,
        log.timestamp,
        log.type,
        _fit_cell(data.profile_name or ""),
        data.mode,
        data.audit_status,
        data.degraded,
        len(data.opportunities),
        _fit_cell(top),
        _fit_cell(data.executive_summary),
        _fit_cell(json.dumps(data.model_dump(), ensure_ascii=False)),
    ]


def sync_admin_logs(
    store: LocalStore,
    config: AppConfig,
    worksheet: Optional[gspread.Worksheet] = None,
) -> int:
    """Append every unsynced admin log to the sheet and mark them synced; returns the count."""
    pending = store.unsynced_admin_logs()
    if not pending:
        return 0

    if worksheet is None:
        if not config.sheets_enabled:
            raise SheetsNotConfigured("Set GOOGLE_SHEET_ID and a GCP service account to enable sheet sync.")
        worksheet = _get_sheet(config.google_sheet_id, config.gcp_service_account)

    try:
        worksheet.append_rows([admin_log_row(log) for log in pending], value_input_option="RAW")
    except gspread.exceptions.GSpreadException as e:
        raise SheetSyncError(f"Failed to write to Google Sheets: {e}") from e

    synced = store.mark_synced(log.id for log in pending)
    logger.info("Synced %d admin logs to Google Sheets", synced)
    return synced
