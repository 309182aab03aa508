"""
Compatibility Insights

Turns a MashResult into a short human-readable write-up:
summary, highlights, patterns and recommendations.

With ANTHROPIC_API_KEY set, Claude writes it (asked for JSON). Without a key,
or when the API call fails, a rule-based fallback produces the same shape.
"""

import json
import re
from collections import Counter
from typing import Any, Optional

from app.core.logging import get_logger
from app.models.user import User
from app.schemas.insights import CompatibilityInsights
from app.schemas.matching import MashResult
from app.services.llm import LLMClient, is_llm_configured

logger = get_logger(__name__)

PROMPT_SHARED_ITEMS = 20
HIGH_RATING = 8

JSON_FENCE = re.compile(r"```(?:json)?\s*(\{.*\})\s*```", re.DOTALL)
BARE_BRACES = re.compile(r"\{.*\}", re.DOTALL)
BULLET = re.compile(r"^(?:[-•*]|\d+\.)\s+")


def _both_rated_high(item) -> bool:
    return (item.user1_rating or 0) >= HIGH_RATING and (item.user2_rating or 0) >= HIGH_RATING


def _fmt(rating: float) -> str:
    return f"{rating:g}"


# ================================
# Rule-based fallback
# ================================

def fallback_summary(result: MashResult) -> str:
    score, shared = result.score, result.shared_count
    if score >= 80:
        return (
            f"Exceptional compatibility with {score}% similarity! They share "
            f"{shared} media items, showing remarkably aligned tastes."
        )
    if score >= 60:
        return (
            f"Great compatibility! {score}% similarity with {shared} shared items "
            "suggests strong common interests."
        )
    if score >= 40:
        return (
            f"Moderate compatibility at {score}% with {shared} shared items. "
            "There's common ground but also room for discovery."
        )
    return (
        f"{score}% compatibility with {shared} shared items. Different tastes "
        "create opportunities for new discoveries!"
    )


def fallback_highlights(result: MashResult) -> list[str]:
    highlights = []

    top_rated = [item for item in result.shared_items if _both_rated_high(item)][:3]
    if top_rated:
        highlights.append(
            "Both highly rated: " + ", ".join(item.title for item in top_rated)
        )

    similar = [
        item for item in result.shared_items
        if item.user1_rating and item.user2_rating
        and abs(item.user1_rating - item.user2_rating) <= 1
    ]
    if len(similar) > 5:
        highlights.append(
            f"Similar ratings: {len(similar)} items rated within 1 point of each other"
        )

    if result.recommendations:
        highlights.append(
            f"{len(result.recommendations)} recommendations based on shared tastes"
        )

    return highlights or [f"Shared {result.shared_count} media items"]


def fallback_patterns(result: MashResult) -> list[str]:
    if not result.shared_items:
        return []
    counts = Counter(item.media_type.value for item in result.shared_items)
    mix = ", ".join(f"{count} {media_type}" for media_type, count in counts.most_common())
    return [f"Shared media mix: {mix}"]


def generate_fallback_insights(result: MashResult) -> CompatibilityInsights:
    return CompatibilityInsights(
        summary=fallback_summary(result),
        highlights=fallback_highlights(result),
        patterns=fallback_patterns(result),
        recommendations=[],
    )


# ================================
# LLM response parsing
# ================================

def parse_json_response(text: str) -> Optional[dict[str, Any]]:
    """Pull a JSON object out of a ```json fence, or the outermost braces."""
    match = JSON_FENCE.search(text) or BARE_BRACES.search(text)
    if not match:
        return None
    candidate = match.group(1) if match.re is JSON_FENCE else match.group(0)
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def extract_insights_from_text(text: str, result: MashResult) -> CompatibilityInsights:
    """
    Best-effort parse of a prose answer: the first lines become the summary,
    bullets under a "Highlights" heading become highlights.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    summary = " ".join(lines[:3])[:200]

    highlights = []
    in_highlights = False
    for line in lines:
        if re.match(r"^#*\s*(highlights?|fun facts?)", line, re.IGNORECASE):
            in_highlights = True
            continue
        if re.match(r"^#*\s*(patterns?|recommendations?)", line, re.IGNORECASE):
            break
        if in_highlights and BULLET.match(line):
            highlights.append(BULLET.sub("", line).strip())

    return CompatibilityInsights(
        summary=summary or fallback_summary(result),
        highlights=highlights[:5] or fallback_highlights(result),
        patterns=[],
        recommendations=[],
    )


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v]


class InsightsGenerator:
    """
    Usage:
    ------
        generator = InsightsGenerator()
        insights = await generator.generate(alice, bob, mash_result)
    """

    def __init__(self, llm: Optional[LLMClient] = None):
        self._llm = llm

    def _client(self) -> Optional[LLMClient]:
        if self._llm is None and is_llm_configured():
            self._llm = LLMClient(max_tokens=1024)
        return self._llm

    def build_prompt(self, user1: User, user2: User, result: MashResult) -> str:
        shared = result.shared_items[:PROMPT_SHARED_ITEMS]

        shared_lines = []
        for item in shared:
            ratings = []
            if item.user1_rating:
                ratings.append(f"{user1.username}: {_fmt(item.user1_rating)}/10")
            if item.user2_rating:
                ratings.append(f"{user2.username}: {_fmt(item.user2_rating)}/10")
            line = f'- "{item.title}" ({item.media_type.value})'
            if ratings:
                line += " - " + ", ".join(ratings)
            shared_lines.append(line)

        top_rated = ", ".join(item.title for item in shared if _both_rated_high(item)) or "None"
        recommendation_lines = "\n".join(
            f'- "{rec.title}" ({rec.media_type.value})' for rec in result.recommendations[:5]
        ) or "None"

        return f"""You are analyzing the media compatibility between two users on Kindred, a platform that connects people through their shared media tastes.

User 1: @{user1.username}
User 2: @{user2.username}

Compatibility Score: {result.score}%
Shared Items: {result.shared_count}

Shared Media Items:
{chr(10).join(shared_lines) or "No shared items"}

Top Highly-Rated Shared Items (both rated {HIGH_RATING}+): {top_rated}

Recommendations (items User 2 has that User 1 might like):
{recommendation_lines}

Generate personalized insights about their compatibility:
1. A brief summary (2-3 sentences) of their compatibility level and what drives it
2. 3-5 specific highlights (notable shared items, rating agreements)
3. 2-3 patterns (rating styles, genre or media-type preferences)
4. Optionally 2-3 recommendations based on their shared tastes

Keep the tone friendly and specific. Reference titles when interesting.

Respond with JSON only:
{{
  "summary": "...",
  "highlights": ["..."],
  "patterns": ["..."],
  "recommendations": ["..."]
}}"""

    async def generate(
        self,
        user1: User,
        user2: User,
        result: MashResult,
    ) -> CompatibilityInsights:
        client = self._client()
        if client is None:
            return generate_fallback_insights(result)

        try:
            text = await client.complete(
                messages=[{"role": "user", "content": self.build_prompt(user1, user2, result)}],
            )
        except Exception as e:
            logger.error(
                "insights_generation_failed",
                user1_id=user1.id,
                user2_id=user2.id,
                error=str(e),
            )
            return generate_fallback_insights(result)

        parsed = parse_json_response(text)
        if parsed is None:
            logger.warning("insights_json_parse_failed", user1_id=user1.id, user2_id=user2.id)
            return extract_insights_from_text(text, result)

        return CompatibilityInsights(
            summary=str(parsed.get("summary") or fallback_summary(result)),
            highlights=_string_list(parsed.get("highlights")),
            patterns=_string_list(parsed.get("patterns")),
            recommendations=_string_list(parsed.get("recommendations")),
        )
