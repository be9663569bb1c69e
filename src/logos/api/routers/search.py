"""AI-assisted endpoints: search ranking and onboarding packets.

Provides:

- ``POST /api/search/rank``: best-effort ranking of caller-supplied records
- ``POST /api/summaries/onboarding``: generated onboarding packet
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from logos.api.models import ApiMeta, ApiResponse
from logos.integrations.summarizer import SearchCandidate, Summarizer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["search"])


def _get_summarizer() -> Summarizer:
    """Dependency stub, overridden at app startup or in tests."""
    raise RuntimeError("Summarizer not initialized")


class RankRequest(BaseModel):
    query: str = Field(min_length=1)
    candidates: list[SearchCandidate] = Field(default_factory=list, max_length=2000)


class OnboardingRequest(BaseModel):
    client_name: str = Field(min_length=1)
    notes: list[str] = Field(default_factory=list)


class OnboardingPacket(BaseModel):
    client_name: str
    content: str


@router.post("/search/rank", response_model=ApiResponse[list[str]])
async def rank_records(
    body: RankRequest,
    summarizer: Summarizer = Depends(_get_summarizer),
) -> ApiResponse[list[str]]:
    """Ids of the matching candidates, best first.

    The ranking is advisory: an unavailable model yields an empty list, and
    ``meta.ranked`` tells callers whether the model was consulted at all.
    """
    ids = await summarizer.rank_ids(body.query, body.candidates)
    return ApiResponse[list[str]](data=ids, meta=ApiMeta(ranked=summarizer.configured))


@router.post("/summaries/onboarding", response_model=ApiResponse[OnboardingPacket])
async def onboarding_packet(
    body: OnboardingRequest,
    summarizer: Summarizer = Depends(_get_summarizer),
) -> ApiResponse[OnboardingPacket]:
    """Generate a markdown onboarding packet; 502 when the model is unavailable."""
    content = await summarizer.onboarding_packet(body.client_name, body.notes)
    return ApiResponse[OnboardingPacket](
        data=OnboardingPacket(client_name=body.client_name, content=content)
    )
