from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Response, status

from api import dependencies
from api.schemas import HistoryResponse
from funding_finder.models import HistoryItem
from funding_finder.storage import LocalStore

router = APIRouter(prefix="/history", tags=["history"])

MEDIA_TYPES = {"json": "application/json", "csv": "text/csv"}


@router.get("", response_model=HistoryResponse)
def list_history(store: LocalStore = Depends(dependencies.get_store)) -> HistoryResponse:
    return HistoryResponse(items=store.load_history())


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_history(store: LocalStore = Depends(dependencies.get_store)) -> Response:
    store.clear_history()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/export")
def export_history(
    fmt: Literal["json", "csv"] = "json",
    store: LocalStore = Depends(dependencies.get_store),
) -> Response:
    content = store.export_history(fmt)
    return Response(
        content=content,
        media_type=MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="funding_history.{fmt}"'},
    )


@router.get("/{item_id}", response_model=HistoryItem)
def get_history_item(item_id: str, store: LocalStore = Depends(dependencies.get_store)) -> HistoryItem:
    item = store.get_history_item(item_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="History item not found")
    return item
