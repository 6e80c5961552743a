"""
Provider Prompts - Prompt builders shared by every backend.

Each builder names the JSON shape it expects back so that backends
without native schema support still produce decodable output.
"""

from datetime import datetime, timedelta
from typing import Iterable

from core.models import Entity, FeedEvent


SYSTEM_PROMPT = (
    "You are a political news analyst specializing in Kenyan politics and "
    "the 2027 presidential election. Always respond with valid JSON only, "
    "no markdown formatting, no explanation text outside the JSON."
)


def _background(entity: Entity) -> str:
    return f"Background: {entity.bio}" if entity.bio else ""


def event_prompt(entity: Entity, grounded: bool) -> str:
    lead = (
        "Search for the very latest news (last 24-72 hours only)"
        if grounded
        else "Based on your knowledge of recent Kenyan politics, describe the most recent notable event"
    )
    return f"""
{lead} regarding "{entity.name}", {entity.role or 'a politician'} from {entity.party or 'an unknown party'}.
{_background(entity)}
Focus on the 2027 Kenyan presidential election context. Ignore news older than 72 hours.

Return a JSON object:
{{
  "headline": "short summary of the event",
  "sourceName": "name of the publisher",
  "sentiment": "positive" | "negative" | "neutral",
  "impact": number between 0.1 and 3.0,
  "publishedDate": "YYYY-MM-DD",
  "sourceUrl": "direct link to the article"
}}
""".strip()


def history_prompt(entity: Entity, window_days: int, now: datetime) -> str:
    cutoff = (now - timedelta(days=window_days)).date().isoformat()
    return f"""
Research the political performance of "{entity.name}" ({entity.party}) in Kenya over the last
{window_days} days (from {cutoff} to today). Identify 8-12 distinct key events that affected
their popularity. Only include events after {cutoff}, each with its exact date and a valid source URL.

Return a JSON object:
{{
  "history": [
    {{
      "date": "YYYY-MM-DD",
      "headline": "very short summary",
      "sentiment": "positive" | "negative" | "neutral",
      "impact": number from -5.0 to +5.0,
      "sourceUrl": "link to the source"
    }}
  ]
}}
""".strip()


def image_prompt(entity: Entity) -> str:
    return f"""
Find a public profile image URL for Kenyan politician "{entity.name}".
Prefer official portraits or high quality news images.
Return a JSON object: {{"imageUrl": "https://..."}}
""".strip()


def suggested_sources_prompt(existing_names: Iterable[str]) -> str:
    return f"""
Suggest 3 new, unique and realistic political news sources relevant to Kenyan politics (2027 elections).
They must NOT be in this list: {", ".join(existing_names)}.
Assign a credibility weight between 1.0 (low) and 3.0 (high).

Return a JSON object:
{{"sources": [{{"name": "Source Name", "type": "news" | "social" | "blog" | "tv", "weight": 1.0}}]}}
""".strip()


def score_article_prompt(entity: Entity, headline: str, snippet: str) -> str:
    return f"""
Rate how this news item affects public sentiment towards "{entity.name}" ({entity.party}).

Headline: {headline}
Snippet: {snippet}

Return a JSON object:
{{"sentiment": "positive" | "negative" | "neutral", "impact": number between 0.1 and 3.0}}
""".strip()


def profile_prompt(entity: Entity) -> str:
    return f"""
Provide the CURRENT political profile of Kenyan politician "{entity.name}".
Currently recorded: party "{entity.party}", role "{entity.role}", coalition "{entity.coalition or 'unknown'}".

Return a JSON object:
{{
  "party": "current party",
  "coalition": "current coalition or alliance",
  "role": "current role or position",
  "slogan": "current campaign slogan, if any",
  "bio": "two sentence biography",
  "region": "home region",
  "endorsements": ["notable endorsers"],
  "sourceUrl": "link supporting the update"
}}
""".strip()


def context_prompt(
    entity: Entity,
    events: Iterable[FeedEvent],
    momentum: float = 0.0,
    trend_strength: float = 0.0,
) -> str:
    headlines = "\n".join(
        f"- [{event.sentiment.value}] {event.headline}" for event in events
    ) or "- (no recent coverage recorded)"
    direction = "Rising" if entity.trend > 0 else "Falling" if entity.trend < 0 else "Flat"
    return f"""
Write a political context briefing on "{entity.name}" ({entity.party}, {entity.role}).
{_background(entity)}

Data points:
- Coalition: {entity.coalition or 'Unknown'}
- Current popularity score: {entity.score}
- Trend: {direction} (strength {trend_strength})
- Momentum: {momentum}

Recent coverage:
{headlines}

Return a JSON object:
{{
  "narrative": "3-4 paragraph narrative of their current standing",
  "summary": "one sentence summary",
  "keyEvents": ["..."],
  "strengths": ["..."],
  "weaknesses": ["..."],
  "controversies": ["..."],
  "allies": ["..."],
  "rivals": ["..."]
}}
""".strip()
