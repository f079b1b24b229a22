"""Elasticsearch connection helpers and index definitions."""

from __future__ import annotations

import logging
import time

from elasticsearch import Elasticsearch

logger = logging.getLogger(__name__)

REPORT_INDEX_MAPPING = {
    "settings": {
        "number_of_shards": 1,
        "number_of_replicas": 0,
    },
    "mappings": {
        "properties": {
            "report_id": {"type": "keyword"},
            "kind": {"type": "keyword"},
            "animal_type": {"type": "keyword"},
            "breed": {"type": "text", "fields": {"keyword": {"type": "keyword"}}},
            "pet_name": {"type": "text"},
            "location": {"type": "geo_point"},
            "latitude": {"type": "double"},
            "longitude": {"type": "double"},
            "observed_at": {"type": "date"},
            "last_seen_date": {"type": "date"},
            "photos": {"type": "keyword", "index": False},
            "injured": {"type": "boolean"},
            "distinctive_marks": {"type": "text"},
            "additional_info": {"type": "text"},
            "reported_by": {"type": "keyword"},
            "created_at": {"type": "date"},
            "resolved": {"type": "boolean"},
        }
    },
}

MATCH_INDEX_MAPPING = {
    "settings": {
        "number_of_shards": 1,
        "number_of_replicas": 0,
    },
    "mappings": {
        "properties": {
            "match_id": {"type": "keyword"},
            "spotted_report_id": {"type": "keyword"},
            "lost_pet_id": {"type": "keyword"},
            "owner_id": {"type": "keyword"},
            "match_score": {"type": "integer"},
            "visual_similarity": {"type": "integer"},
            "status": {"type": "keyword"},
            "checked": {"type": "boolean"},
            "checked_at": {"type": "date"},
            "notified": {"type": "boolean"},
            "created_at": {"type": "date"},
        }
    },
}


def create_es_client(url: str = "http://localhost:9200") -> Elasticsearch:
    """Create and verify an Elasticsearch client connection.

    Args:
        url: Elasticsearch URL.

    Returns:
        Connected Elasticsearch client.

    Raises:
        ConnectionError: If unable to connect to Elasticsearch.
    """
    es = Elasticsearch(url)
    if not es.ping():
        raise ConnectionError(f"Cannot connect to Elasticsearch at {url}")
    logger.info("Connected to Elasticsearch at %s", url)
    return es


def wait_for_elasticsearch(url: str, timeout: int = 120, interval: float = 5.0) -> bool:
    """Wait for Elasticsearch to become healthy.

    Args:
        url: Elasticsearch URL.
        timeout: Maximum seconds to wait.
        interval: Seconds between pings.

    Returns:
        True if ES is healthy, False if timeout reached.
    """
    es = Elasticsearch(url)
    start = time.monotonic()

    while time.monotonic() - start < timeout:
        try:
            if es.ping():
                logger.info("Elasticsearch is ready at %s", url)
                return True
        except Exception as exc:
            logger.debug("Ping failed: %s", exc)
        logger.info("Waiting for Elasticsearch...")
        time.sleep(interval)

    logger.error("Elasticsearch not available at %s after %ds", url, timeout)
    return False


def ensure_indices(es: Elasticsearch, reports_index: str, matches_index: str) -> None:
    """Create the report and match indices if they do not exist yet.

    Unlike a full reindex, existing data is never dropped: Match history
    is part of a pet's route.
    """
    for name, mapping in (
        (reports_index, REPORT_INDEX_MAPPING),
        (matches_index, MATCH_INDEX_MAPPING),
    ):
        if es.indices.exists(index=name):
            continue
        es.indices.create(index=name, body=mapping)
        logger.info("Created index '%s'", name)
