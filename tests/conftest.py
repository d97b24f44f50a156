from __future__ import annotations

import json
from datetime import date

import pytest

from funding_finder.llm import ModelClient, ModelResponse
from funding_finder.models import ASBLProfile
from funding_finder.normalize import LinkCheck
from funding_finder.storage import LocalStore

TODAY = date(2025, 6, 1)


class FakeClient(ModelClient):
    """Replays scripted answers; exceptions in the script are raised."""

    provider = "fake"

    def __init__(self, responses) -> None:
        self.responses = list(responses)
        self.prompts = []

    def generate(self, prompt: str, temperature: float = 0.4) -> ModelResponse:
        self.prompts.append(prompt)
        if not self.responses:
            raise AssertionError("FakeClient ran out of scripted responses")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, ModelResponse):
            return item
        return ModelResponse(text=item if isinstance(item, str) else json.dumps(item))


def opportunity(title: str, score: int = 80, url: str | None = "auto", deadline: str = "2099-12-31", **extra) -> dict:
    if url == "auto":
        url = f"https://example.be/{title.lower().replace(' ', '-')}"
    item = {
        "title": title,
        "provider": "SPW",
        "deadline": "Rolling",
        "deadlineDate": deadline,
        "relevanceScore": score,
        "relevanceReason": "Fits the mission.",
        "type": "Subvention",
        "url": url,
    }
    item.update(extra)
    return item


def payload(*opportunities: dict) -> dict:
    return {
        "executiveSummary": "I found several leads.",
        "opportunities": list(opportunities),
        "strategicAdvice": "Apply early.",
    }


def approve() -> dict:
    return {"verdict": "APPROVED", "feedback": "", "issues": []}


def refine(feedback: str = "Find more official calls.", issues=("Missing URLs",)) -> dict:
    return {"verdict": "REFINE", "feedback": feedback, "issues": list(issues)}


def all_reachable(url: str) -> LinkCheck:
    return LinkCheck(reachable=True, page_title="Official page")


@pytest.fixture
def store(tmp_path) -> LocalStore:
    return LocalStore(tmp_path / "data", max_history=50)


@pytest.fixture
def profile() -> ASBLProfile:
    return ASBLProfile(
        name="Centre Culturel Horizon",
        sector="Culture & Arts",
        region="Bruxelles-Capitale",
        description="ASBL active dans l'initiation artistique.",
        budget="50k€ - 200k€",
        website="https://www.horizon-culture.be",
        search_mode="deep",
    )
