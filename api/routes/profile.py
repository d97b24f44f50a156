from typing import Any, Dict

from fastapi import APIRouter, Depends

from api import dependencies
from api.schemas import EnrichRequest, ProfileDraft
from funding_finder.search import GrantSearchService
from funding_finder.storage import LocalStore

router = APIRouter(prefix="/profile", tags=["profile"])


@router.post("/enrich")
def enrich_profile(
    payload: EnrichRequest,
    service: GrantSearchService = Depends(dependencies.get_search_service),
) -> Dict[str, Any]:
    """Look the organisation up and return the fields it could fill in."""
    return service.enrich_profile_from_number(payload.enterprise_number)


@router.get("/draft")
def get_draft(store: LocalStore = Depends(dependencies.get_store)) -> Dict[str, Any]:
    return store.load_profile_draft()


@router.put("/draft")
def save_draft(payload: ProfileDraft, store: LocalStore = Depends(dependencies.get_store)) -> Dict[str, Any]:
    return store.save_profile_draft(payload.model_dump(exclude_none=True))
