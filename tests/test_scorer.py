"""
Tests for the relevance scorer.

Tests each scoring term in isolation, then the ranked search:
- Exact phrase, scripture reference, token, fuzzy and multi-token terms
- Primary source multiplier and vector boost
- Minimum score filter, stable ordering, pagination, pre-filters
- Highlights and context windows
- Query suggestions and autocomplete

Usage:
    pytest tests/test_scorer.py -v
"""

import pytest

from sviesa.rag.models import SearchFilters, SearchOptions
from sviesa.rag.scorer import (
    DEFAULT_WEIGHTS,
    QueryProfile,
    RelevanceScorer,
    ScoreBreakdown,
    ScoringWeights,
    autocomplete,
    exact_phrase_term,
    multi_token_bonus,
    reference_term,
    source_multiplier,
    suggest_related_queries,
    token_terms,
    vector_boost,
)
from sviesa.rag.text import extract_reference

from conftest import make_chunk


BEATITUDE = "Palaiminti turintys vargdienio dvasią"


class TestScoringTerms:
    """Each term on its own."""

    def test_exact_phrase(self):
        assert exact_phrase_term("vargdienio dvasią", BEATITUDE.lower()) == 200.0
        assert exact_phrase_term("dangaus karalystė", BEATITUDE.lower()) == 0.0
        assert exact_phrase_term("", BEATITUDE.lower()) == 0.0

    def test_reference_book_and_chapter(self):
        chunk = make_chunk("Tekstas apie palaiminimus", book_or_section="Mato evangelija", chapter_or_ref="5 skyrius")
        assert reference_term(extract_reference("Mato 5, 3"), chunk) == 300.0

    def test_reference_book_only(self):
        chunk = make_chunk("Tekstas apie maldą", book_or_section="Mato evangelija", chapter_or_ref="6 skyrius")
        assert reference_term(extract_reference("Mato 5, 3"), chunk) == 150.0

    def test_reference_other_book(self):
        chunk = make_chunk("Tekstas", book_or_section="Evangelija pagal Joną", chapter_or_ref="5 skyrius")
        assert reference_term(extract_reference("Mato 5, 3"), chunk) == 0.0
        assert reference_term(None, chunk) == 0.0

    def test_token_terms(self):
        chunk = make_chunk(
            "Eucharistija yra krikščioniškojo gyvenimo versmė",
            book_or_section="KBK Eucharistija",
            tags=["eucharistija", "sakramentai"],
        )
        content, label, tag, fuzzy, matches = token_terms(
            ["eucharistija", "versmė"], chunk, chunk.content.lower(),
        )
        assert content == 40.0
        assert label == 50.0
        assert tag == 30.0
        assert fuzzy == 0.0
        assert matches == 2

    def test_fuzzy_term_only_when_enabled(self):
        chunk = make_chunk("Palaiminti turintys vargdienio dvasia")
        _, _, _, fuzzy_off, _ = token_terms(["dvasią"], chunk, chunk.content.lower(), fuzzy_match=False)
        content, _, _, fuzzy_on, matches = token_terms(["dvasią"], chunk, chunk.content.lower(), fuzzy_match=True)

        assert fuzzy_off == 0.0
        assert fuzzy_on == 10.0
        assert content == 0.0
        assert matches == 0

    def test_multi_token_bonus(self):
        assert multi_token_bonus(0) == 0.0
        assert multi_token_bonus(1) == 0.0
        assert multi_token_bonus(3) == 45.0

    def test_source_multiplier(self):
        assert source_multiplier(make_chunk("Tekstas", source="Biblija")) == 1.1
        assert source_multiplier(make_chunk("Tekstas", source="Katekizmas")) == 1.0

    def test_vector_boost(self):
        assert vector_boost([1.0, 0.0], [1.0, 0.0]) == pytest.approx(200.0)
        assert vector_boost([1.0, 0.0], [0.0, 1.0]) == 0.0
        assert vector_boost(None, [1.0, 0.0]) == 0.0
        assert vector_boost([1.0, 0.0], None) == 0.0

    def test_vector_boost_below_threshold(self):
        # cos ≈ 0.5
        assert vector_boost([1.0, 0.0], [0.5, 0.866]) == 0.0

    def test_custom_weights(self):
        weights = ScoringWeights(exact_phrase=10.0)
        assert exact_phrase_term("dvasią", "dvasią", weights) == 10.0


class TestScoreBreakdown:

    def test_multiplier_applies_before_vector(self):
        breakdown = ScoreBreakdown(exact_phrase=200.0, token_content=20.0, source_multiplier=1.1, vector=100.0)
        assert breakdown.lexical == 220.0
        assert breakdown.total == pytest.approx(342.0)

    def test_score_includes_exact_phrase(self):
        scorer = RelevanceScorer()
        breakdown = scorer.score("vargdienio dvasią", make_chunk(BEATITUDE))
        assert breakdown.exact_phrase == 200.0
        assert breakdown.matched_tokens == 2
        assert breakdown.multi_token == 30.0

    def test_query_profile(self):
        profile = QueryProfile.parse("Ką sako Mato 5, 3?")
        assert profile.normalized == "ką sako mato 5 3"
        assert profile.reference is not None
        assert profile.reference.book == "mato"


class TestSearch:
    """Ranked search over a chunk list."""

    def setup_method(self):
        self.scorer = RelevanceScorer()

    def test_empty_corpus(self):
        assert self.scorer.search([], "vargdienio dvasią") == []

    def test_blank_query(self):
        assert self.scorer.search([make_chunk(BEATITUDE)], "   ") == []

    def test_single_chunk_exact_match(self):
        results = self.scorer.search([make_chunk(BEATITUDE)], "vargdienio dvasią")

        assert len(results) == 1
        assert results[0].score >= 200
        # 200 exact + 2x20 content + 2x10 fuzzy + 15x2 multi-token
        assert results[0].score == pytest.approx(290.0)

    def test_below_minimum_dropped(self):
        chunks = [make_chunk("Visai kitas tekstas be sąsajų", id="a")]
        assert self.scorer.search(chunks, "eucharistija") == []

    def test_sorted_descending(self):
        chunks = [
            make_chunk("Malda yra sielos pakylėjimas", id="weak"),
            make_chunk("Malda yra sielos pakylėjimas į Dievą", id="strong", book_or_section="Malda"),
        ]
        results = self.scorer.search(chunks, "malda")
        assert [r.id for r in results] == ["strong", "weak"]

    def test_ties_keep_corpus_order(self):
        chunks = [
            make_chunk("Dievas yra meilė", id="first"),
            make_chunk("Dievas yra meilė", id="second"),
            make_chunk("Dievas yra meilė", id="third"),
        ]
        results = self.scorer.search(chunks, "meilė")
        assert [r.id for r in results] == ["first", "second", "third"]

    def test_pagination(self):
        chunks = [make_chunk("Dievas yra meilė", id=f"c{i}") for i in range(5)]
        results = self.scorer.search(chunks, "meilė", SearchOptions(limit=2, offset=2))
        assert [r.id for r in results] == ["c2", "c3"]

    def test_primary_source_ranks_higher(self):
        chunks = [
            make_chunk("Dievas yra meilė", id="kbk", source="Katekizmas"),
            make_chunk("Dievas yra meilė", id="bible", source="Biblija"),
        ]
        results = self.scorer.search(chunks, "meilė")
        assert results[0].id == "bible"
        assert results[0].score == pytest.approx(results[1].score * 1.1)

    def test_vector_boost_ranks_semantic_match(self):
        chunks = [
            make_chunk("Dievas yra meilė", id="lexical", embedding=[0.0, 1.0]),
            make_chunk("Dievas yra meilė", id="semantic", embedding=[1.0, 0.0]),
        ]
        results = self.scorer.search(chunks, "meilė", SearchOptions(query_embedding=[1.0, 0.0]))
        assert results[0].id == "semantic"

    def test_filters(self):
        chunks = [
            make_chunk("Dievas yra meilė", id="kbk", source="Katekizmas"),
            make_chunk("Dievas yra meilė", id="bible", source="Biblija"),
        ]
        options = SearchOptions(filters=SearchFilters(sources=["katekizmas"]))
        assert [r.id for r in self.scorer.search(chunks, "meilė", options)] == ["kbk"]

    def test_result_strips_source_tag_and_reads_verse(self):
        chunk = make_chunk("[Šaltinis: Evangelija pagal Matą, Biblija] [Mato 5:3] " + BEATITUDE, source="Biblija")
        result = self.scorer.search([chunk], "vargdienio dvasią")[0]

        assert result.content.startswith("[Mato 5:3]")
        assert result.metadata.verse_range == "Mato 5:3"
        assert result.metadata.word_count == 6

    def test_highlights(self):
        chunk = make_chunk(BEATITUDE + ". Jų yra dangaus karalystė.")
        result = self.scorer.search([chunk], "vargdienio dvasią")[0]

        assert result.highlights == ["Palaiminti turintys <mark>vargdienio</mark> <mark>dvasią</mark>"]

    def test_custom_highlight_marker(self):
        scorer = RelevanceScorer(highlight_marker=("**", "**"))
        snippets = scorer.highlights(BEATITUDE, ["dvasią"])
        assert snippets == ["Palaiminti turintys vargdienio **dvasią**"]

    def test_highlights_disabled(self):
        results = self.scorer.search(
            [make_chunk(BEATITUDE)], "vargdienio dvasią", SearchOptions(highlight_matches=False),
        )
        assert results[0].highlights == []

    def test_context_around_exact_match(self):
        context = self.scorer.extract_context("Pradžioje buvo Žodis ir Žodis buvo pas Dievą", "žodis")
        assert context.before == "Pradžioje buvo "
        assert context.after == " ir Žodis buvo pas Dievą"

    def test_context_without_match(self):
        content = "a" * 150 + "b" * 150
        context = self.scorer.extract_context(content, "nerasta")
        assert context.before == "a" * 100
        assert context.after == "b" * 100


class TestQueryAssistance:

    def test_suggest_related_from_history(self):
        history = ["Kas yra Eucharistija sakramentas?", "Kaip melstis rožinį?"]
        suggestions = suggest_related_queries("Eucharistija ir išpažintis", history)
        assert suggestions == ["Kas yra Eucharistija sakramentas?"]

    def test_suggest_neighbouring_verses(self):
        suggestions = suggest_related_queries("Mato 5, 3", [])
        assert suggestions == ["mato 5", "mato 5, 4"]

    def test_autocomplete_books_first(self):
        chunks = [make_chunk("Matote, kaip mato tikintieji")]
        suggestions = autocomplete("mat", chunks)
        assert suggestions[0] == "Mato"
        assert "matote" in suggestions

    def test_autocomplete_empty_prefix(self):
        assert autocomplete("  ", [make_chunk("Tekstas")]) == []


def test_default_weights_table():
    assert DEFAULT_WEIGHTS.exact_phrase == 200.0
    assert DEFAULT_WEIGHTS.reference_full == 300.0
    assert DEFAULT_WEIGHTS.reference_book == 150.0
    assert DEFAULT_WEIGHTS.vector_threshold == 0.6
    assert DEFAULT_WEIGHTS.min_score == 15.0
