from fastapi import APIRouter, Depends

from api import dependencies
from api.schemas import HealthResponse
from funding_finder.config import AppConfig

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health(config: AppConfig = Depends(dependencies.get_settings)) -> HealthResponse:
    return HealthResponse(status="ok", provider=config.llm_provider, sheets_enabled=config.sheets_enabled)
