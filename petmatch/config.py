"""Central application configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Config:
    """Central application configuration.

    Reads from environment variables with sensible defaults.
    Scoring constants that are calibration rather than math
    (cosine penalty, thresholds) are exposed here so they can be tuned
    without code changes.
    """

    # Elasticsearch
    elasticsearch_url: str = field(
        default_factory=lambda: os.getenv("ELASTICSEARCH_URL", "http://localhost:9200")
    )
    reports_index: str = "reports"
    matches_index: str = "matches"
    report_page_size: int = 500

    # CLIP model
    clip_model_name: str = "ViT-B-32"
    clip_pretrained: str = "laion2b_s34b_b79k"
    embedding_dim: int = 512

    # Embedding extraction
    embedding_workers: int = field(
        default_factory=lambda: int(os.getenv("EMBEDDING_WORKERS", "4"))
    )
    ranker_workers: int = 4
    photo_timeout_seconds: float = 10.0

    # Visual scoring
    match_threshold: int = field(
        default_factory=lambda: int(os.getenv("MATCH_THRESHOLD", "75"))
    )
    cosine_penalty: float = field(
        default_factory=lambda: float(os.getenv("COSINE_PENALTY", "0.85"))
    )
    cosine_cutoff: float = 95.0

    # Alerts
    alert_radius_km: float = field(
        default_factory=lambda: float(os.getenv("ALERT_RADIUS_KM", "2.0"))
    )
    alert_match_threshold: int = 75
    high_match_threshold: int = 90
    scan_interval_seconds: float = 300.0

    # Reverse geocoding
    geocoder_url: str = field(
        default_factory=lambda: os.getenv(
            "GEOCODER_URL", "https://nominatim.openstreetmap.org/reverse"
        )
    )
    geocoder_user_agent: str = "petmatch/0.1"
    geocoder_timeout_seconds: float = 5.0

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))

    @property
    def provider_version(self) -> str:
        """Identifier of the embedding space produced by the configured model."""
        return f"{self.clip_model_name}/{self.clip_pretrained}"


def get_config() -> Config:
    """Get application configuration.

    Returns:
        Config instance with values from environment or defaults.
    """
    return Config()
