"""
Tests for compatibility insights: rule-based fallback, LLM response parsing
and the generator's degrade-to-fallback behaviour.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.errors import AppError
from app.models.media import MediaType
from app.schemas.matching import LibraryEntry
from app.services.insights import (
    InsightsGenerator,
    extract_insights_from_text,
    fallback_highlights,
    fallback_summary,
    parse_json_response,
)
from app.services.llm import LLMClient, LLMUnavailableError
from app.services.matching import calculate_mash_score


def make_result(score_pairs):
    """MashResult from (title, rating1, rating2) triples shared by both users."""
    library1, library2 = [], []
    for media_id, (title, r1, r2) in enumerate(score_pairs, start=1):
        library1.append(LibraryEntry(media_type=MediaType.BOOK, media_id=media_id, rating=r1, title=title))
        library2.append(LibraryEntry(media_type=MediaType.BOOK, media_id=media_id, rating=r2, title=title))
    return calculate_mash_score(library1, library2, user2_name="bob")


@pytest.fixture
def users():
    return (
        SimpleNamespace(id=1, username="alice"),
        SimpleNamespace(id=2, username="bob"),
    )


class TestFallback:

    @pytest.mark.parametrize(
        "score,expected",
        [
            (95, "Exceptional compatibility"),
            (80, "Exceptional compatibility"),
            (65, "Great compatibility"),
            (40, "Moderate compatibility"),
            (10, "Different tastes"),
        ],
    )
    def test_summary_tiers(self, score, expected):
        result = make_result([("Dune", 9, 9)]).model_copy(update={"score": score})

        assert expected in fallback_summary(result)
        assert f"{score}%" in fallback_summary(result)

    def test_highlights_list_top_rated(self):
        result = make_result([("Dune", 9, 10), ("Emma", 3, 9)])

        highlights = fallback_highlights(result)

        assert highlights[0] == "Both highly rated: Dune"

    def test_highlights_default(self):
        result = make_result([("Dune", None, None)])

        assert fallback_highlights(result) == ["Shared 1 media items"]

    def test_similar_ratings_highlight(self):
        result = make_result([(f"Book {i}", 5, 6) for i in range(6)])

        assert "Similar ratings: 6 items rated within 1 point of each other" in fallback_highlights(result)


class TestParsing:

    def test_fenced_json(self):
        text = 'Here you go:\n```json\n{"summary": "Great", "highlights": ["a"]}\n```'

        assert parse_json_response(text) == {"summary": "Great", "highlights": ["a"]}

    def test_bare_json(self):
        assert parse_json_response('noise {"summary": "ok"} trailing') == {"summary": "ok"}

    def test_not_json(self):
        assert parse_json_response("no braces here") is None
        assert parse_json_response("{not valid}") is None

    def test_extract_from_prose(self):
        text = (
            "You two are very compatible.\n"
            "## Highlights\n"
            "- Both loved Dune\n"
            "* Similar rating styles\n"
            "## Patterns\n"
            "- ignored\n"
        )
        result = make_result([("Dune", 9, 9)])

        insights = extract_insights_from_text(text, result)

        assert insights.summary.startswith("You two are very compatible.")
        assert insights.highlights == ["Both loved Dune", "Similar rating styles"]


class TestInsightsGenerator:

    async def test_no_key_uses_fallback(self, users):
        result = make_result([("Dune", 9, 9)])

        insights = await InsightsGenerator().generate(*users, result)

        assert insights.summary == fallback_summary(result)
        assert insights.recommendations == []

    async def test_llm_json_answer(self, users):
        llm = MagicMock()
        llm.complete = AsyncMock(return_value=(
            '```json\n{"summary": "Kindred spirits", "highlights": ["Dune"], '
            '"patterns": ["Both rate high"], "recommendations": ["Read Hyperion"]}\n```'
        ))
        result = make_result([("Dune", 9, 9)])

        insights = await InsightsGenerator(llm=llm).generate(*users, result)

        assert insights.summary == "Kindred spirits"
        assert insights.highlights == ["Dune"]
        assert insights.patterns == ["Both rate high"]
        assert insights.recommendations == ["Read Hyperion"]

        prompt = llm.complete.call_args.kwargs["messages"][0]["content"]
        assert "@alice" in prompt
        assert '"Dune" (book) - alice: 9/10, bob: 9/10' in prompt

    async def test_llm_failure_falls_back(self, users):
        llm = MagicMock()
        llm.complete = AsyncMock(side_effect=RuntimeError("overloaded"))
        result = make_result([("Dune", 9, 9)])

        insights = await InsightsGenerator(llm=llm).generate(*users, result)

        assert insights.summary == fallback_summary(result)


class TestLLMClient:

    def test_missing_key_is_503(self, monkeypatch):
        monkeypatch.setattr("app.services.llm.settings.ANTHROPIC_API_KEY", "")

        with pytest.raises(LLMUnavailableError) as exc_info:
            LLMClient()

        assert isinstance(exc_info.value, AppError)
        assert exc_info.value.status_code == 503

    async def test_complete_returns_first_text_block(self):
        client = LLMClient(api_key="test-key")
        response = SimpleNamespace(
            content=[SimpleNamespace(text="hello")],
            usage=SimpleNamespace(input_tokens=3, output_tokens=1),
        )
        client.client = MagicMock()
        client.client.messages.create = AsyncMock(return_value=response)

        text = await client.complete(messages=[{"role": "user", "content": "hi"}], system="be brief")

        assert text == "hello"
        kwargs = client.client.messages.create.call_args.kwargs
        assert kwargs["system"] == "be brief"
        assert kwargs["max_tokens"] == client.max_tokens
