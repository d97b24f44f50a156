from fastapi import APIRouter, Depends, HTTPException, status

from api import dependencies
from api.schemas import StatsResponse, SyncResponse
from funding_finder.config import AppConfig
from funding_finder.sheets import SheetsNotConfigured, SheetSyncError, sync_admin_logs
from funding_finder.storage import LocalStore

router = APIRouter(tags=["admin"])


@router.get("/stats", response_model=StatsResponse)
def stats(store: LocalStore = Depends(dependencies.get_store)) -> StatsResponse:
    return StatsResponse(
        request_count=store.get_request_count(),
        history_size=len(store.load_history()),
        unsynced_admin_logs=len(store.unsynced_admin_logs()),
    )


@router.post("/admin/sync", response_model=SyncResponse)
def sync_to_sheet(
    store: LocalStore = Depends(dependencies.get_store),
    config: AppConfig = Depends(dependencies.get_settings),
) -> SyncResponse:
    """Append unsynced admin logs to the configured Google Sheet."""
    if not config.sheets_enabled:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Google Sheets sync is not configured")
    try:
        return SyncResponse(synced=sync_admin_logs(store, config))
    except SheetsNotConfigured as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
    except SheetSyncError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
