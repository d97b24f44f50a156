from fastapi import APIRouter, Depends, HTTPException, status

from api import dependencies
from api.jobs import job_store
from api.schemas import JobCreatedResponse, JobStatusResponse, SearchRequest
from funding_finder.models import HistoryItem
from funding_finder.search import GrantSearchService
from funding_finder.storage import LocalStore

router = APIRouter(prefix="/search", tags=["search"])


def _check_profile(payload: SearchRequest) -> None:
    if not payload.profile.name.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="The organisation name is required")


@router.post("", response_model=HistoryItem, status_code=status.HTTP_200_OK)
def search(
    payload: SearchRequest,
    service: GrantSearchService = Depends(dependencies.get_search_service),
    store: LocalStore = Depends(dependencies.get_store),
) -> HistoryItem:
    """Run a full search (with audit passes) and wait for the result."""
    _check_profile(payload)
    result = service.search_and_refine_grants(payload.profile, payload.language)
    if result.degraded:
        # failed searches are reported but not kept in history or stats
        return HistoryItem(**result.model_dump())
    return store.record_search(result)


@router.post("/jobs", response_model=JobCreatedResponse, status_code=status.HTTP_202_ACCEPTED)
def start_search_job(
    payload: SearchRequest,
    service: GrantSearchService = Depends(dependencies.get_search_service),
    store: LocalStore = Depends(dependencies.get_store),
) -> JobCreatedResponse:
    _check_profile(payload)
    job = job_store.create(payload.profile, payload.language, service, store)
    return JobCreatedResponse(job_id=job.id, profile_name=payload.profile.name)


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
def job_status(job_id: str) -> JobStatusResponse:
    job = job_store.get(job_id)
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return JobStatusResponse(**job.snapshot())
