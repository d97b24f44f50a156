"""Pydantic schemas for the FastAPI service."""
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from funding_finder.models import AgentState, ASBLProfile, HistoryItem, ProfileStatus, SearchMode


class HealthResponse(BaseModel):
    status: str = "ok"
    provider: str
    sheets_enabled: bool = False


class SearchRequest(BaseModel):
    profile: ASBLProfile
    language: Literal["fr", "nl", "de", "ar", "en"] = Field("fr", description="Language of the generated texts")


class JobCreatedResponse(BaseModel):
    job_id: str
    profile_name: str


class JobStatusResponse(BaseModel):
    job_id: str
    done: bool
    state: AgentState
    thoughts: List[str] = Field(default_factory=list)
    result: Optional[HistoryItem] = None
    error: Optional[str] = None
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    total_elapsed_seconds: int = 0


class EnrichRequest(BaseModel):
    enterprise_number: str = Field(..., min_length=1, description="BCE/KBO number or organisation name")


class ProfileDraft(BaseModel):
    enterprise_number: Optional[str] = None
    name: Optional[str] = None
    website: Optional[str] = None
    sector: Optional[str] = None
    region: Optional[str] = None
    description: Optional[str] = None
    budget: Optional[str] = None
    search_mode: Optional[SearchMode] = None
    status: Optional[ProfileStatus] = None


class HistoryResponse(BaseModel):
    items: List[HistoryItem]


class StatsResponse(BaseModel):
    request_count: int
    history_size: int
    unsynced_admin_logs: int


class SyncResponse(BaseModel):
    synced: int


class UpdateApiKeyRequest(BaseModel):
    api_key: str = Field("", description="Model API key to use for this runtime session")


class UpdateApiKeyResponse(BaseModel):
    status: str = "ok"
    api_key_set: bool = True
