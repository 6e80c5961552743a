"""
Pydantic Schemas for Provider Responses.

Every model response is decoded into one of these schemas before it
touches domain state. Sentiment is coerced into the closed set
(unknown -> neutral) and numeric fields are clamped into their
documented ranges. Field names accept both snake_case and the
camelCase keys generative models tend to emit.
"""

import json
import re
import uuid
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from core.constants import (
    DEFAULT_EVENT_IMPACT,
    DEFAULT_SOURCE_WEIGHT,
    EVENT_IMPACT_MAX,
    EVENT_IMPACT_MIN,
    HISTORY_IMPACT_MAX,
    HISTORY_IMPACT_MIN,
    SOURCE_WEIGHT_MAX,
    SOURCE_WEIGHT_MIN,
)
from core.models import FeedEvent, Sentiment, SourceType


_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


def parse_json(text: Optional[str]) -> Optional[Any]:
    """
    Decode a model response as JSON.

    Markdown code fences are stripped first. Returns None when the text
    is empty or not valid JSON.
    """
    if not text:
        return None
    cleaned = _FENCE_PATTERN.sub("", text).strip()
    if not cleaned:
        return None
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        return None


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _coerce_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


# =============================================================
# EVENT SCHEMAS
# =============================================================

class EventPayload(BaseModel):
    """A single live news event about an entity."""
    headline: str = Field(min_length=1)
    source_name: str = Field(
        default="Web Search",
        validation_alias=AliasChoices("source_name", "sourceName"),
    )
    sentiment: Sentiment = Sentiment.NEUTRAL
    impact: float = DEFAULT_EVENT_IMPACT
    published_date: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("published_date", "publishedDate"),
    )
    source_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("source_url", "sourceUrl", "url"),
    )

    @field_validator("sentiment", mode="before")
    @classmethod
    def _coerce_sentiment(cls, value: Any) -> Sentiment:
        return Sentiment.coerce(value)

    @field_validator("impact", mode="before")
    @classmethod
    def _clamp_impact(cls, value: Any) -> float:
        return _clamp(abs(_coerce_float(value, DEFAULT_EVENT_IMPACT)), EVENT_IMPACT_MIN, EVENT_IMPACT_MAX)

    @field_validator("source_name", mode="before")
    @classmethod
    def _default_source_name(cls, value: Any) -> str:
        return value or "Web Search"

    def to_feed_event(
        self,
        entity_id: str,
        source_id: str,
        timestamp: str,
    ) -> FeedEvent:
        """Build an immutable feed event; published_date wins over timestamp."""
        return FeedEvent(
            id=uuid.uuid4().hex,
            entity_id=entity_id,
            source_id=source_id,
            source_name=self.source_name,
            headline=self.headline,
            sentiment=self.sentiment,
            impact=self.impact,
            timestamp=self.published_date or timestamp,
            url=self.source_url,
        )


class HistoryEventPayload(BaseModel):
    """One dated historical event with a signed impact."""
    date: str
    headline: str = ""
    sentiment: Sentiment = Sentiment.NEUTRAL
    impact: float = 0.0
    source_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("source_url", "sourceUrl", "url"),
    )

    @field_validator("sentiment", mode="before")
    @classmethod
    def _coerce_sentiment(cls, value: Any) -> Sentiment:
        return Sentiment.coerce(value)

    @field_validator("impact", mode="before")
    @classmethod
    def _clamp_impact(cls, value: Any) -> float:
        return _clamp(_coerce_float(value, 0.0), HISTORY_IMPACT_MIN, HISTORY_IMPACT_MAX)


# =============================================================
# ENRICHMENT SCHEMAS
# =============================================================

class ImagePayload(BaseModel):
    image_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("image_url", "imageUrl"),
    )


class SuggestedSource(BaseModel):
    """A proposed new outlet with a credibility weight in [1, 3]."""
    name: str = Field(min_length=1)
    type: SourceType = SourceType.NEWS
    weight: float = DEFAULT_SOURCE_WEIGHT

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> SourceType:
        return SourceType.coerce(value)

    @field_validator("weight", mode="before")
    @classmethod
    def _clamp_weight(cls, value: Any) -> float:
        return _clamp(_coerce_float(value, DEFAULT_SOURCE_WEIGHT), SOURCE_WEIGHT_MIN, SOURCE_WEIGHT_MAX)


class SourceSuggestionPayload(BaseModel):
    sources: List[SuggestedSource] = Field(default_factory=list)


class ProfilePayload(BaseModel):
    """Current descriptive fields of an entity as reported by the model."""
    party: Optional[str] = None
    coalition: Optional[str] = None
    role: Optional[str] = None
    slogan: Optional[str] = None
    bio: Optional[str] = None
    region: Optional[str] = None
    endorsements: List[str] = Field(default_factory=list)
    source_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("source_url", "sourceUrl"),
    )


class ContextPayload(BaseModel):
    """Narrative context about an entity's recent coverage."""
    narrative: str = ""
    summary: str = ""
    key_events: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("key_events", "keyEvents"),
    )
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    controversies: List[str] = Field(default_factory=list)
    allies: List[str] = Field(default_factory=list)
    rivals: List[str] = Field(default_factory=list)


class SentimentScorePayload(BaseModel):
    """Sentiment scoring of an already-found article."""
    sentiment: Sentiment = Sentiment.NEUTRAL
    impact: float = DEFAULT_EVENT_IMPACT

    @field_validator("sentiment", mode="before")
    @classmethod
    def _coerce_sentiment(cls, value: Any) -> Sentiment:
        return Sentiment.coerce(value)

    @field_validator("impact", mode="before")
    @classmethod
    def _clamp_impact(cls, value: Any) -> float:
        return _clamp(abs(_coerce_float(value, DEFAULT_EVENT_IMPACT)), EVENT_IMPACT_MIN, EVENT_IMPACT_MAX)
