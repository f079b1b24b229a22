"""Shared test fixtures for the PetMatch test suite."""

from __future__ import annotations

import base64
import io
import struct
import zlib
from collections.abc import Callable
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from PIL import Image

from petmatch.config import Config
from petmatch.data.schemas import Embedding, Report, ReportKind
from petmatch.errors import ProviderError

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeProvider:
    """Embedding provider backed by a dict of photo reference -> vector."""

    version = "fake/1"

    def __init__(self, vectors: dict[str, list[float]]) -> None:
        self.vectors = vectors
        self.calls: list[str] = []

    def extract(self, photo_ref: str) -> Embedding:
        self.calls.append(photo_ref)
        if photo_ref not in self.vectors:
            raise ProviderError(f"cannot load {photo_ref}")
        return Embedding(vector=self.vectors[photo_ref], provider_version=self.version)

    def extract_all(self, photo_refs: list[str]) -> list[Embedding]:
        out = []
        for ref in photo_refs:
            try:
                out.append(self.extract(ref))
            except ProviderError:
                continue
        return out


@pytest.fixture
def config() -> Config:
    """Config with defaults, independent of the environment."""
    return Config(
        elasticsearch_url="http://localhost:9200",
        embedding_workers=2,
        match_threshold=75,
        cosine_penalty=0.85,
        alert_radius_km=2.0,
    )


@pytest.fixture
def make_report() -> Callable[..., Report]:
    """Factory for reports with sensible defaults per kind."""

    def _make(report_id: str, kind: ReportKind = ReportKind.SPOTTED, **overrides) -> Report:
        fields: dict = {
            "report_id": report_id,
            "kind": kind,
            "animal_type": "DOG",
            "latitude": 0.0,
            "longitude": 0.0,
            "photos": [f"{report_id}.jpg"],
            "reported_by": "someone-else",
            "created_at": NOW,
        }
        if kind == ReportKind.LOST:
            fields.update(pet_name=f"Pet {report_id}", last_seen_date=NOW, reported_by="owner-1")
        else:
            fields.update(observed_at=NOW)
        fields.update(overrides)
        return Report(**fields)

    return _make


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider(
        {
            "spotted.jpg": [1.0, 0.0, 0.0],
            "same.jpg": [1.0, 0.0, 0.0],
            "ortho.jpg": [0.0, 1.0, 0.0],
        }
    )


@pytest.fixture
def mock_es_client() -> MagicMock:
    """Create a mock Elasticsearch client."""
    mock = MagicMock()
    mock.ping.return_value = True
    mock.indices.exists.return_value = False
    mock.indices.create.return_value = {"acknowledged": True}
    return mock


@pytest.fixture
def fake_embedding() -> list[float]:
    """Create a fake 512-dim embedding vector."""
    return [0.01] * 512


def _png_chunk(kind: bytes, data: bytes) -> bytes:
    return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", zlib.crc32(kind + data))


@pytest.fixture
def small_photo_ref() -> str:
    """Inline 16x16 PNG photo."""
    buf = io.BytesIO()
    Image.new("RGB", (16, 16), color="red").save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode()


@pytest.fixture
def oversized_photo_ref() -> str:
    """Inline PNG whose header declares 20000x20000 pixels."""
    header = struct.pack(">IIBBBBB", 20000, 20000, 8, 2, 0, 0, 0)
    data = b"\x89PNG\r\n\x1a\n" + _png_chunk(b"IHDR", header) + _png_chunk(b"IEND", b"")
    return "data:image/png;base64," + base64.b64encode(data).decode()
