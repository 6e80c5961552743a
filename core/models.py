"""
Core Module - Domain Models.

============================================================
RESPONSIBILITY
============================================================
Defines the records shared by every tracker component.

- Entities with their rolling score history
- Feed events, sources and discovered-source candidates
- Scheduler state and provider/simulation configuration
- Enrichment records (aspirants, candidate context, profile changes)

All records serialize with to_dict()/from_dict() using snake_case
keys. from_dict() tolerates missing optional keys so that documents
written by older versions still load.

============================================================
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from core.constants import (
    BASELINE_SCORE,
    DEFAULT_FETCH_INTERVAL_MINUTES,
    DEFAULT_HISTORY_WINDOW_DAYS,
)


# ============================================================
# ENUMS
# ============================================================

class Sentiment(Enum):
    """Closed set of sentiment labels."""
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"

    @classmethod
    def coerce(cls, value: Any) -> "Sentiment":
        """Map any raw label into the closed set (unknown -> neutral)."""
        if isinstance(value, Sentiment):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.NEUTRAL

    @property
    def sign(self) -> int:
        if self is Sentiment.POSITIVE:
            return 1
        if self is Sentiment.NEGATIVE:
            return -1
        return 0


class SourceType(Enum):
    """Kind of outlet a source represents."""
    NEWS = "news"
    SOCIAL = "social"
    BLOG = "blog"
    TV = "tv"

    @classmethod
    def coerce(cls, value: Any) -> "SourceType":
        if isinstance(value, SourceType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.NEWS


class ProviderKind(Enum):
    """Supported provider backends."""
    GEMINI = "gemini"
    OLLAMA = "ollama"
    HUGGINGFACE = "huggingface"
    OPENROUTER = "openrouter"


class AspirantStatus(Enum):
    """Lifecycle status of a discovered aspirant."""
    ANNOUNCEMENT = "announcement"
    RUMOR = "rumor"
    CONFIRMED = "confirmed"
    WITHDRAWN = "withdrawn"
    STEPPED_DOWN = "stepped_down"

    @property
    def is_exit(self) -> bool:
        return self in (AspirantStatus.WITHDRAWN, AspirantStatus.STEPPED_DOWN)


# ============================================================
# HISTORY / ENTITY
# ============================================================

@dataclass
class HistoryPoint:
    """
    One score observation.

    An empty time marks a placeholder point carried over from seed or
    legacy data; it has no date and is skipped by time-based metrics.
    """
    time: str
    score: float
    reason: Optional[str] = None
    source_url: Optional[str] = None
    sentiment: Optional[Sentiment] = None

    @property
    def is_placeholder(self) -> bool:
        return not self.time

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "score": self.score,
            "reason": self.reason,
            "source_url": self.source_url,
            "sentiment": self.sentiment.value if self.sentiment else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryPoint":
        raw_sentiment = data.get("sentiment")
        return cls(
            time=data.get("time") or "",
            score=float(data.get("score", BASELINE_SCORE)),
            reason=data.get("reason"),
            source_url=data.get("source_url"),
            sentiment=Sentiment.coerce(raw_sentiment) if raw_sentiment else None,
        )


@dataclass
class ProfileChange:
    """A detected change to one descriptive field of an entity."""
    field: str
    old_value: str
    new_value: str
    detected_at: str
    source_url: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "detected_at": self.detected_at,
            "source_url": self.source_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProfileChange":
        return cls(
            field=data["field"],
            old_value=data.get("old_value", ""),
            new_value=data.get("new_value", ""),
            detected_at=data.get("detected_at", ""),
            source_url=data.get("source_url"),
        )


@dataclass
class Entity:
    """
    A tracked political figure.

    When history is non-empty, score equals the last history score
    after any successful update.
    """
    id: str
    name: str
    role: str = ""
    party: str = ""
    score: float = BASELINE_SCORE
    trend: float = 0.0
    color: str = "#3b82f6"
    image: str = ""
    history: list[HistoryPoint] = field(default_factory=list)

    # Descriptors
    bio: str = ""
    slogan: str = ""
    coalition: str = ""
    region: str = ""
    is_custom: bool = False
    endorsements: list[str] = field(default_factory=list)
    profile_changes: list[ProfileChange] = field(default_factory=list)
    last_profile_update: Optional[str] = None

    @property
    def has_real_history(self) -> bool:
        """True when at least one dated point exists."""
        return any(not point.is_placeholder for point in self.history)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "party": self.party,
            "score": self.score,
            "trend": self.trend,
            "color": self.color,
            "image": self.image,
            "history": [point.to_dict() for point in self.history],
            "bio": self.bio,
            "slogan": self.slogan,
            "coalition": self.coalition,
            "region": self.region,
            "is_custom": self.is_custom,
            "endorsements": list(self.endorsements),
            "profile_changes": [change.to_dict() for change in self.profile_changes],
            "last_profile_update": self.last_profile_update,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Entity":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            role=data.get("role", ""),
            party=data.get("party", ""),
            score=float(data.get("score", BASELINE_SCORE)),
            trend=float(data.get("trend", 0.0)),
            color=data.get("color", "#3b82f6"),
            image=data.get("image", ""),
            history=[HistoryPoint.from_dict(p) for p in data.get("history", [])],
            bio=data.get("bio", ""),
            slogan=data.get("slogan", ""),
            coalition=data.get("coalition", ""),
            region=data.get("region", ""),
            is_custom=bool(data.get("is_custom", False)),
            endorsements=list(data.get("endorsements", [])),
            profile_changes=[
                ProfileChange.from_dict(c) for c in data.get("profile_changes", [])
            ],
            last_profile_update=data.get("last_profile_update"),
        )


# ============================================================
# FEED / SOURCES
# ============================================================

@dataclass(frozen=True)
class FeedEvent:
    """
    An immutable scored news item about one entity.

    impact is the magnitude of the score effect; its sign is derived
    from sentiment (neutral events carry no effect).
    """
    id: str
    entity_id: str
    source_id: str
    source_name: str
    headline: str
    sentiment: Sentiment
    impact: float
    timestamp: str
    url: Optional[str] = None

    def __post_init__(self) -> None:
        if self.impact < 0:
            object.__setattr__(self, "impact", abs(self.impact))

    @property
    def signed_impact(self) -> float:
        return self.sentiment.sign * self.impact

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entity_id": self.entity_id,
            "source_id": self.source_id,
            "source_name": self.source_name,
            "headline": self.headline,
            "sentiment": self.sentiment.value,
            "impact": self.impact,
            "timestamp": self.timestamp,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeedEvent":
        return cls(
            id=str(data["id"]),
            entity_id=str(data["entity_id"]),
            source_id=str(data.get("source_id", "")),
            source_name=data.get("source_name", ""),
            headline=data.get("headline", ""),
            sentiment=Sentiment.coerce(data.get("sentiment")),
            impact=float(data.get("impact", 0.0)),
            timestamp=data.get("timestamp", ""),
            url=data.get("url"),
        )


@dataclass
class Source:
    """A configured outlet with a credibility weight (> 0)."""
    id: str
    name: str
    type: SourceType = SourceType.NEWS
    weight: float = 1.0
    active: bool = True

    def __post_init__(self) -> None:
        if self.weight <= 0:
            raise ValueError(f"Source weight must be positive, got {self.weight}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "weight": self.weight,
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Source":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            type=SourceType.coerce(data.get("type", "news")),
            weight=float(data.get("weight", 1.0)),
            active=bool(data.get("active", True)),
        )


@dataclass
class DiscoveredSource:
    """
    An outlet seen in search results, keyed by domain.

    accepted and rejected are mutually exclusive and terminal.
    """
    domain: str
    name: str
    type: SourceType = SourceType.NEWS
    weight: float = 1.0
    first_seen: str = ""
    last_seen: str = ""
    seen_count: int = 1
    accepted: bool = False
    rejected: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.accepted or self.rejected

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "name": self.name,
            "type": self.type.value,
            "weight": self.weight,
            "first_seen": self.first_seen,
            "last_seen": self.last_seen,
            "seen_count": self.seen_count,
            "accepted": self.accepted,
            "rejected": self.rejected,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DiscoveredSource":
        return cls(
            domain=data["domain"],
            name=data.get("name", data["domain"]),
            type=SourceType.coerce(data.get("type", "news")),
            weight=float(data.get("weight", 1.0)),
            first_seen=data.get("first_seen", ""),
            last_seen=data.get("last_seen", ""),
            seen_count=int(data.get("seen_count", 1)),
            accepted=bool(data.get("accepted", False)),
            rejected=bool(data.get("rejected", False)),
        )


# ============================================================
# SCHEDULE / CONFIG
# ============================================================

@dataclass
class ScheduleState:
    """Persisted state of the polling schedule."""
    last_run: Optional[str] = None
    next_run: Optional[str] = None
    run_count: int = 0
    interval_minutes: int = DEFAULT_FETCH_INTERVAL_MINUTES
    enabled: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_run": self.last_run,
            "next_run": self.next_run,
            "run_count": self.run_count,
            "interval_minutes": self.interval_minutes,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScheduleState":
        return cls(
            last_run=data.get("last_run"),
            next_run=data.get("next_run"),
            run_count=int(data.get("run_count", 0)),
            interval_minutes=int(data.get("interval_minutes", DEFAULT_FETCH_INTERVAL_MINUTES)),
            enabled=bool(data.get("enabled", False)),
        )


@dataclass
class ProviderConfig:
    """Selected provider backend plus the settings every backend needs."""
    provider: ProviderKind = ProviderKind.GEMINI
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "llama3"
    huggingface_api_key: str = ""
    openrouter_api_key: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider.value,
            "gemini_api_key": self.gemini_api_key,
            "gemini_model": self.gemini_model,
            "ollama_url": self.ollama_url,
            "ollama_model": self.ollama_model,
            "huggingface_api_key": self.huggingface_api_key,
            "openrouter_api_key": self.openrouter_api_key,
        }

    def cache_key(self) -> str:
        """Canonical serialized form; equal keys mean equal configs."""
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProviderConfig":
        defaults = cls()
        return cls(
            provider=ProviderKind(data.get("provider", defaults.provider.value)),
            gemini_api_key=data.get("gemini_api_key", ""),
            gemini_model=data.get("gemini_model", defaults.gemini_model),
            ollama_url=data.get("ollama_url", defaults.ollama_url),
            ollama_model=data.get("ollama_model", defaults.ollama_model),
            huggingface_api_key=data.get("huggingface_api_key", ""),
            openrouter_api_key=data.get("openrouter_api_key", ""),
        )


@dataclass
class SimulationConfig:
    """User-facing tracker settings persisted in the config collection."""
    scan_interval_seconds: int = 60
    is_paused: bool = False
    use_ai: bool = True
    auto_refresh_candidates: bool = True
    history_window_days: int = DEFAULT_HISTORY_WINDOW_DAYS
    provider: ProviderConfig = field(default_factory=ProviderConfig)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scan_interval_seconds": self.scan_interval_seconds,
            "is_paused": self.is_paused,
            "use_ai": self.use_ai,
            "auto_refresh_candidates": self.auto_refresh_candidates,
            "history_window_days": self.history_window_days,
            "provider": self.provider.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SimulationConfig":
        return cls(
            scan_interval_seconds=int(data.get("scan_interval_seconds", 60)),
            is_paused=bool(data.get("is_paused", False)),
            use_ai=bool(data.get("use_ai", True)),
            auto_refresh_candidates=bool(data.get("auto_refresh_candidates", True)),
            history_window_days=int(
                data.get("history_window_days", DEFAULT_HISTORY_WINDOW_DAYS)
            ),
            provider=ProviderConfig.from_dict(data.get("provider", {})),
        )


# ============================================================
# ENRICHMENT RECORDS
# ============================================================

@dataclass
class AspirantRecord:
    """An aspirant detected in news coverage."""
    name: str
    party: str
    role: str
    status: AspirantStatus
    first_seen: str
    last_seen: str
    source_url: Optional[str] = None
    source_name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "party": self.party,
            "role": self.role,
            "status": self.status.value,
            "first_seen": self.first_seen,
            "last_seen": self.last_seen,
            "source_url": self.source_url,
            "source_name": self.source_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AspirantRecord":
        return cls(
            name=data["name"],
            party=data.get("party", ""),
            role=data.get("role", ""),
            status=AspirantStatus(data.get("status", "rumor")),
            first_seen=data.get("first_seen", ""),
            last_seen=data.get("last_seen", ""),
            source_url=data.get("source_url"),
            source_name=data.get("source_name"),
        )


@dataclass
class CandidateContext:
    """Generated narrative about an entity's recent coverage."""
    entity_id: str
    narrative: str
    summary: str
    key_events: list[str] = field(default_factory=list)
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    controversies: list[str] = field(default_factory=list)
    allies: list[str] = field(default_factory=list)
    rivals: list[str] = field(default_factory=list)
    last_generated: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "narrative": self.narrative,
            "summary": self.summary,
            "key_events": list(self.key_events),
            "strengths": list(self.strengths),
            "weaknesses": list(self.weaknesses),
            "controversies": list(self.controversies),
            "allies": list(self.allies),
            "rivals": list(self.rivals),
            "last_generated": self.last_generated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CandidateContext":
        return cls(
            entity_id=str(data["entity_id"]),
            narrative=data.get("narrative", ""),
            summary=data.get("summary", ""),
            key_events=list(data.get("key_events", [])),
            strengths=list(data.get("strengths", [])),
            weaknesses=list(data.get("weaknesses", [])),
            controversies=list(data.get("controversies", [])),
            allies=list(data.get("allies", [])),
            rivals=list(data.get("rivals", [])),
            last_generated=data.get("last_generated", ""),
        )


# ============================================================
# DEFAULT SEEDS
# ============================================================

def default_sources() -> list[Source]:
    """Outlets tracked out of the box."""
    return [
        Source(id="s1", name="X (Twitter)", type=SourceType.SOCIAL, weight=1.0),
        Source(id="s2", name="Daily Nation", type=SourceType.NEWS, weight=2.5),
        Source(id="s3", name="The Standard", type=SourceType.NEWS, weight=2.5),
        Source(id="s4", name="Citizen Digital", type=SourceType.TV, weight=2.2),
        Source(id="s5", name="The Star", type=SourceType.NEWS, weight=1.8),
        Source(id="s6", name="Kenyans.co.ke", type=SourceType.BLOG, weight=1.5),
    ]
