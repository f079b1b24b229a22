"""FastAPI application factory with lifespan management."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from petmatch.alerts.aggregator import AlertAggregator
from petmatch.config import get_config
from petmatch.embeddings.provider import EmbeddingProvider
from petmatch.geocoding import NominatimGeocoder
from petmatch.matching.ranker import CandidateRanker
from petmatch.matching.service import MatchingService
from petmatch.store.es_client import create_es_client, ensure_indices
from petmatch.store.matches import MatchStore
from petmatch.store.reports import ReportStore


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize shared resources on startup, clean up on shutdown.

    The embedding provider is created here but loads its model lazily on
    the first ranking request.
    """
    config = get_config()

    es = create_es_client(config.elasticsearch_url)
    ensure_indices(es, config.reports_index, config.matches_index)

    report_store = ReportStore(es, config.reports_index, page_size=config.report_page_size)
    match_store = MatchStore(es, config.matches_index)
    provider = EmbeddingProvider(config)
    geocoder = NominatimGeocoder(
        url=config.geocoder_url,
        user_agent=config.geocoder_user_agent,
        timeout=config.geocoder_timeout_seconds,
    )

    app.state.config = config
    app.state.es_client = es
    app.state.match_store = match_store
    app.state.service = MatchingService(
        report_store, match_store, CandidateRanker(provider, config)
    )
    app.state.aggregator = AlertAggregator(report_store, geocoder, config)

    yield

    es.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="PetMatch",
        description="Lost-pet matching and nearby alerts",
        version="0.1.0",
        lifespan=lifespan,
    )

    from petmatch.api.routes import router

    app.include_router(router)

    return app
