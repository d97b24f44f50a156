"""Domain models shared by the pipeline, the local store, the API and the dashboard."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from funding_finder.constants import ROLLING_DEADLINE, Sector

SearchMode = Literal["fast", "deep"]
ProfileStatus = Literal["base", "enriched", "error"]
GrantType = Literal["Subvention", "Appel à projets", "Mécénat", "Autre"]
AuditStatus = Literal["approved", "unverified", "skipped", "not_required"]
AgentStatus = Literal["idle", "searching", "analyzing", "complete", "error"]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ASBLProfile(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    enterprise_number: Optional[str] = None
    name: str
    website: Optional[str] = None
    sector: Sector = Sector.OTHER
    region: str = ""
    description: str = ""
    budget: str = ""
    search_mode: SearchMode = "deep"
    status: ProfileStatus = "base"

    @field_validator("sector", mode="before")
    @classmethod
    def _unknown_sector_is_other(cls, value):
        if isinstance(value, Sector):
            return value
        if value in {s.value for s in Sector}:
            return value
        return Sector.OTHER


class GroundingSource(BaseModel):
    uri: str
    title: str = ""


class GrantOpportunity(BaseModel):
    title: str
    provider: str
    deadline: str
    deadline_date: str = ROLLING_DEADLINE
    relevance_score: int = Field(0, ge=0, le=100)
    relevance_reason: str = ""
    type: GrantType = "Autre"
    url: Optional[str] = None
    url_verified: Optional[bool] = None
    page_title: Optional[str] = None


class SearchResult(BaseModel):
    executive_summary: str
    opportunities: List[GrantOpportunity] = Field(default_factory=list)
    strategic_advice: str
    sources: List[GroundingSource] = Field(default_factory=list)
    timestamp: str = Field(default_factory=utc_now_iso)
    profile_name: Optional[str] = None
    mode: SearchMode = "deep"
    attempts: int = 0
    audit_status: AuditStatus = "not_required"
    degraded: bool = False
    warnings: List[str] = Field(default_factory=list)


class HistoryItem(SearchResult):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))


class AdminLog(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = Field(default_factory=utc_now_iso)
    type: Literal["search"] = "search"
    data: SearchResult
    synced: bool = False


class AgentState(BaseModel):
    status: AgentStatus = "idle"
    message: str = ""
