"""In-memory tracking for background search jobs."""
from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from funding_finder.models import AgentState, ASBLProfile, HistoryItem
from funding_finder.search import GrantSearchService
from funding_finder.storage import LocalStore

logger = logging.getLogger(__name__)


@dataclass
class Job:
    id: str
    profile: ASBLProfile
    language: str
    state: AgentState = field(default_factory=lambda: AgentState(status="searching", message="Starting the search..."))
    thoughts: List[str] = field(default_factory=list)
    result: Optional[HistoryItem] = None
    error: Optional[str] = None
    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def add_thought(self, message: str) -> None:
        with self._lock:
            self.thoughts.append(message)
            self.state = AgentState(status="analyzing" if self.thoughts[1:] else "searching", message=message)

    def finish(self, result: Optional[HistoryItem] = None, error: Optional[str] = None) -> None:
        with self._lock:
            self.result = result
            self.error = error
            self.finished_at = time.time()
            if error:
                self.state = AgentState(status="error", message=error)
            else:
                self.state = AgentState(status="complete", message="Search complete.")

    def snapshot(self) -> Dict:
        with self._lock:
            now = time.time()
            return {
                "job_id": self.id,
                "done": self.finished_at is not None,
                "state": self.state,
                "thoughts": list(self.thoughts),
                "result": self.result,
                "error": self.error,
                "started_at": self.started_at,
                "finished_at": self.finished_at,
                "total_elapsed_seconds": int(max(0, (self.finished_at or now) - self.started_at)),
            }


def run_search_job(job: Job, service: GrantSearchService, store: LocalStore) -> None:
    try:
        result = service.search_and_refine_grants(job.profile, job.language, on_thought=job.add_thought)
        item = None if result.degraded else store.record_search(result)
    except Exception as e:  # the worker thread must always report back
        logger.exception("Search job %s failed", job.id)
        job.finish(error=str(e))
        return
    if item is None:
        # degraded searches stay out of history and stats
        job.finish(result=HistoryItem(**result.model_dump()), error=result.executive_summary or "Search failed.")
        return
    job.finish(result=item)


class JobStore:
    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()

    def create(self, profile: ASBLProfile, language: str, service: GrantSearchService, store: LocalStore) -> Job:
        job_id = uuid.uuid4().hex
        job = Job(id=job_id, profile=profile, language=language)
        with self._lock:
            self._jobs[job_id] = job
        thread = threading.Thread(target=run_search_job, args=(job, service, store), daemon=True)
        thread.start()
        return job

    def get(self, job_id: str) -> Job | None:
        with self._lock:
            return self._jobs.get(job_id)


job_store = JobStore()
