"""Pydantic models for reports, embeddings, matches and alerts."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC so all comparisons are aware."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def match_key(spotted_report_id: str, lost_pet_id: str) -> str:
    """Natural key of a (spotted report, lost pet) pairing."""
    return f"{spotted_report_id}__{lost_pet_id}"


class ReportKind(str, Enum):
    LOST = "lost-from-home"
    SPOTTED = "spotted-on-streets"


class Coordinates(BaseModel):
    """A validated latitude/longitude pair in degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)


class Report(BaseModel):
    """A lost-pet or spotted-animal report.

    Lost-pet reports carry the pet's name, breed and last-seen date;
    spotted reports carry the observation time and the injury flag.
    Both kinds share the photo references and free-text fields.
    """

    report_id: str = Field(description="Unique report identifier")
    kind: ReportKind
    animal_type: str = Field(description="Species as entered, e.g. 'DOG'")
    breed: str | None = None
    pet_name: str | None = None
    latitude: float | None = Field(default=None, ge=-90.0, le=90.0)
    longitude: float | None = Field(default=None, ge=-180.0, le=180.0)
    observed_at: datetime | None = Field(
        default=None, description="When a spotted animal was seen"
    )
    last_seen_date: datetime | None = Field(
        default=None, description="When a lost pet was last seen"
    )
    photos: list[str] = Field(
        default_factory=list, description="Photo URLs or data URIs"
    )
    injured: bool = False
    distinctive_marks: str = ""
    additional_info: str = ""
    reported_by: str = "anonymous"
    created_at: datetime = Field(default_factory=_utcnow)
    resolved: bool = Field(default=False, description="Soft-deleted (pet found)")

    @field_validator("observed_at", "last_seen_date", "created_at")
    @classmethod
    def _ensure_aware(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @property
    def coordinates(self) -> Coordinates | None:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(latitude=self.latitude, longitude=self.longitude)

    @property
    def description(self) -> str:
        """Free text a breed name can be searched in."""
        parts = [self.additional_info, self.distinctive_marks]
        return " ".join(p for p in parts if p)

    @property
    def reference_time(self) -> datetime:
        """Time the animal was last seen (lost) or observed (spotted)."""
        if self.kind == ReportKind.LOST:
            return self.last_seen_date or self.created_at
        return self.observed_at or self.created_at


class Embedding(BaseModel):
    """A photo embedding tagged with the provider that produced it."""

    model_config = ConfigDict(frozen=True)

    vector: list[float] = Field(min_length=1)
    provider_version: str = "unknown"

    @field_validator("vector")
    @classmethod
    def _finite(cls, value: list[float]) -> list[float]:
        if not all(math.isfinite(x) for x in value):
            raise ValueError("embedding contains non-finite values")
        return value

    @property
    def dim(self) -> int:
        return len(self.vector)


class ScoreResult(BaseModel):
    """Visual similarity between two embeddings."""

    cosine_similarity: float = Field(ge=-1.0, le=1.0)
    euclidean_distance: float = Field(ge=0.0)
    cosine_score: float
    distance_score: float
    combined_score: int = Field(ge=0, le=100)


class MatchCandidate(BaseModel):
    """One ranked lost pet for a spotted report."""

    spotted_report_id: str
    lost_pet_id: str
    owner_id: str
    lost_pet_name: str | None = None
    match_score: int = Field(ge=0, le=100, description="Adjusted score")
    visual_similarity: int = Field(ge=0, le=100, description="Best combined score")
    bonuses: dict[str, int] = Field(default_factory=dict)

    @property
    def match_id(self) -> str:
        return match_key(self.spotted_report_id, self.lost_pet_id)


class MatchStatus(str, Enum):
    PENDING = "pending"
    VIEWED = "viewed"
    CONFIRMED = "confirmed"
    DISMISSED = "dismissed"


class MatchRecord(BaseModel):
    """A persisted Match between a spotted report and a lost pet."""

    match_id: str
    spotted_report_id: str
    lost_pet_id: str
    owner_id: str
    match_score: int = Field(ge=0, le=100)
    visual_similarity: int = Field(ge=0, le=100)
    status: MatchStatus = MatchStatus.PENDING
    checked: bool = False
    checked_at: datetime | None = None
    notified: bool = False
    created_at: datetime = Field(default_factory=_utcnow)


class AlertType(str, Enum):
    HIGH_MATCH = "high-match"
    MODERATE_MATCH = "moderate-match"
    INJURED = "injured"

    @property
    def priority(self) -> int:
        """Display priority, lower first."""
        return _ALERT_PRIORITY[self]


_ALERT_PRIORITY = {
    AlertType.HIGH_MATCH: 0,
    AlertType.MODERATE_MATCH: 1,
    AlertType.INJURED: 2,
}


class Alert(BaseModel):
    """A transient alert shown to a viewer; recomputed every scan."""

    alert_type: AlertType
    report_id: str = Field(description="Spotted report the alert is about")
    animal_type: str = "animal"
    location: str
    distance_km: float
    time_ago: str
    latitude: float
    longitude: float
    match_score: int | None = None
    lost_pet_id: str | None = None
    lost_pet_name: str | None = None

    @property
    def key(self) -> str:
        if self.alert_type == AlertType.INJURED or self.lost_pet_id is None:
            return self.report_id
        return match_key(self.report_id, self.lost_pet_id)


class GeocodeResult(BaseModel):
    """Outcome of a reverse-geocoding call."""

    label: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.label is not None


class MatchQualityStats(BaseModel):
    total: int = 0
    correct: int = 0
    false_positives: int = 0
    average_score: float = 0.0
    precision: float = 0.0
    recommendations: list[str] = Field(default_factory=list)


class ProcessResult(BaseModel):
    """Outcome of ranking one spotted report and persisting its matches."""

    spotted_report_id: str
    matches: list[MatchCandidate] = Field(default_factory=list)
    created: int = 0
    updated: int = 0


class ReprocessStats(BaseModel):
    processed: int = 0
    failed: int = 0
    created: int = 0
    updated: int = 0
