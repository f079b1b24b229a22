"""FastAPI routes for match processing, match feedback and alerts."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from petmatch.data.schemas import (
    Alert,
    Coordinates,
    MatchQualityStats,
    MatchRecord,
    MatchStatus,
    ProcessResult,
    ReprocessStats,
    ScoreResult,
)
from petmatch.errors import InputError, ProviderError, TransientFetchError
from petmatch.matching.quality import analyze_match_quality

logger = logging.getLogger(__name__)

router = APIRouter()


class MatchUpdate(BaseModel):
    status: MatchStatus | None = None
    checked: bool | None = None


class CompareRequest(BaseModel):
    photo_a: str
    photo_b: str


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint for monitoring.

    Returns:
        Dict with system health status.
    """
    es = request.app.state.es_client
    es_healthy = es.ping()
    return {
        "status": "healthy" if es_healthy else "degraded",
        "elasticsearch": "connected" if es_healthy else "disconnected",
    }


@router.post("/api/matches/process/{report_id}", response_model=ProcessResult)
def process_report(request: Request, report_id: str) -> ProcessResult:
    """Rank a newly spotted report and persist its matches."""
    service = request.app.state.service
    try:
        return service.process_spotted_report(report_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except TransientFetchError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.post("/api/matches/reprocess-all", response_model=ReprocessStats)
def reprocess_all(request: Request) -> ReprocessStats:
    try:
        return request.app.state.service.reprocess_all()
    except TransientFetchError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.get("/api/matches/user/{user_id}", response_model=list[MatchRecord])
def user_matches(
    request: Request,
    user_id: str,
    status: MatchStatus | None = None,
) -> list[MatchRecord]:
    """Matches for a lost-pet owner, newest first."""
    try:
        return request.app.state.match_store.list_for_owner(user_id, status=status)
    except TransientFetchError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.get("/api/matches/user/{user_id}/quality", response_model=MatchQualityStats)
def user_match_quality(request: Request, user_id: str) -> MatchQualityStats:
    try:
        records = request.app.state.match_store.list_for_owner(user_id, limit=500)
    except TransientFetchError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return analyze_match_quality(records)


@router.patch("/api/matches/{match_id}", response_model=MatchRecord)
def update_match(request: Request, match_id: str, update: MatchUpdate) -> MatchRecord:
    """Change a match's status and/or set or clear the owner's checked flag."""
    if update.status is None and update.checked is None:
        raise HTTPException(status_code=400, detail="No valid fields provided for update")

    match = request.app.state.service.update_match(
        match_id, status=update.status, checked=update.checked
    )
    if match is None:
        raise HTTPException(status_code=404, detail="Match not found")
    return match


@router.post("/api/matches/compare", response_model=ScoreResult)
def compare_photos(request: Request, body: CompareRequest) -> ScoreResult:
    """Visually compare two photos (URLs or data URIs)."""
    ranker = request.app.state.service.ranker
    try:
        return ranker.compare_photos(body.photo_a, body.photo_b)
    except (ProviderError, InputError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/api/alerts", response_model=list[Alert])
def alerts(
    request: Request,
    viewer_id: str,
    latitude: float = Query(ge=-90.0, le=90.0),
    longitude: float = Query(ge=-180.0, le=180.0),
    radius_km: float | None = Query(default=None, gt=0),
) -> list[Alert]:
    """Alerts for a viewer at the given location.

    A failed report fetch returns the viewer's previous alerts.
    """
    aggregator = request.app.state.aggregator
    coords = Coordinates(latitude=latitude, longitude=longitude)
    return aggregator.scan_alerts(viewer_id, coords, radius_km)
