"""Tests for FindReplaceService against an in-memory content store."""
import logging
from unittest.mock import patch

import pytest

from schemas.conversation import (
    ConversationContent,
    GeneratedAnalysis,
    SpeakerSegment,
    SummaryKeyPoint,
    SummaryV2,
)
from schemas.find_replace import FilterScope, FindOptions, ReplaceRequest
from services.exceptions import (
    ContentFetchFailedError,
    ConversationNotFoundError,
    InvalidQueryError,
    ReserializationFailedError,
)
from services.find_replace_service import FindReplaceService
from tests.conftest import InMemoryContentStore


def make_content() -> ConversationContent:
    return ConversationContent(
        conversation_id="c1",
        summary_v2=SummaryV2(
            title="Acme sync",
            intro="Acme reviewed the plan.",
            key_points=[SummaryKeyPoint(topic="Acme roadmap", description="Nothing new")],
        ),
        speaker_segments=[
            SpeakerSegment(speaker_tag="A", start_time=0.0, text="Welcome to Acme"),
            SpeakerSegment(speaker_tag="B", start_time=3.0, text="Thanks"),
            SpeakerSegment(speaker_tag="A", start_time=5.0, text="acme acme"),
        ],
        analyses=[
            GeneratedAnalysis(
                id="blog",
                template_name="Blog Post",
                content_type="structured",
                content={
                    "type": "blogPost",
                    "headline": "Acme launches",
                    "sections": [{"heading": "Intro", "paragraphs": ["Acme is here"]}],
                },
            ),
            GeneratedAnalysis(id="notes", template_name="Notes", content="Call Acme back"),
        ],
    )


@pytest.fixture
def store(memory_store: InMemoryContentStore) -> InMemoryContentStore:
    memory_store.add(make_content())
    return memory_store


@pytest.fixture
def service(store: InMemoryContentStore) -> FindReplaceService:
    return FindReplaceService(store)


class TestFindMatches:
    """Tests for FindReplaceService.find_matches."""

    async def test__find_matches__buckets_every_category(self, service: FindReplaceService) -> None:
        results = await service.find_matches("c1", "acme", FindOptions())
        assert len(results.summary) == 3
        assert len(results.transcript) == 3
        assert [(a.asset_id, len(a.matches)) for a in results.ai_assets] == [
            ("blog", 2),
            ("notes", 1),
        ]
        assert results.total_matches == 9

    async def test__find_matches__case_sensitive(self, service: FindReplaceService) -> None:
        results = await service.find_matches("c1", "acme", FindOptions(case_sensitive=True))
        assert results.total_matches == 2
        assert [m.location.segment_index for m in results.transcript] == [2, 2]

    async def test__find_matches__whole_word(self, store: InMemoryContentStore) -> None:
        store.add(ConversationContent(conversation_id="c2", summary="the cat concatenates"))
        service = FindReplaceService(store)
        results = await service.find_matches("c2", "cat", FindOptions(whole_word=True))
        assert results.total_matches == 1

    async def test__find_matches__scope(self, service: FindReplaceService) -> None:
        results = await service.find_matches(
            "c1", "acme", FindOptions(), FilterScope(type="ai_asset", asset_id="blog"),
        )
        assert results.total_matches == 2
        assert results.summary == []
        assert results.transcript == []

    async def test__find_matches__does_not_match_type_discriminator(
        self, service: FindReplaceService,
    ) -> None:
        results = await service.find_matches("c1", "blogPost", FindOptions())
        assert results.total_matches == 0

    async def test__find_matches__context_chars(self, store: InMemoryContentStore) -> None:
        service = FindReplaceService(store, context_chars=3)
        results = await service.find_matches("c1", "Thanks", FindOptions())
        assert results.transcript[0].context == "Thanks"

    @pytest.mark.parametrize("query", ["", "  ", "\t\n"])
    async def test__find_matches__invalid_query_does_not_fetch(
        self, service: FindReplaceService, store: InMemoryContentStore, query: str,
    ) -> None:
        with pytest.raises(InvalidQueryError):
            await service.find_matches("c1", query, FindOptions())
        assert store.fetch_count == 0

    async def test__find_matches__conversation_not_found(self, service: FindReplaceService) -> None:
        with pytest.raises(ConversationNotFoundError):
            await service.find_matches("missing", "acme", FindOptions())

    async def test__find_matches__fetch_failure_propagates(
        self, service: FindReplaceService, store: InMemoryContentStore,
    ) -> None:
        store.fetch_error = ContentFetchFailedError("c1", "connection reset")
        with pytest.raises(ContentFetchFailedError):
            await service.find_matches("c1", "acme", FindOptions())

    async def test__find_matches__reflects_current_content(
        self, service: FindReplaceService, store: InMemoryContentStore,
    ) -> None:
        """Every search re-reads the store."""
        await service.find_matches("c1", "acme", FindOptions())
        store.add(ConversationContent(conversation_id="c1", summary="no match"))
        results = await service.find_matches("c1", "acme", FindOptions())
        assert results.total_matches == 0
        assert store.fetch_count == 2


class TestReplaceMatches:
    """Tests for FindReplaceService.replace_matches."""

    async def test__replace_matches__replace_all_then_find_returns_nothing(
        self, service: FindReplaceService,
    ) -> None:
        response = await service.replace_matches(
            "c1", ReplaceRequest(find_text="acme", replace_text="Globex", replace_all=True),
        )
        assert response.replaced_count == 9
        assert response.requested_count == 9
        results = await service.find_matches("c1", "acme", FindOptions())
        assert results.total_matches == 0

    async def test__replace_matches__selected_ids_only(
        self, service: FindReplaceService, store: InMemoryContentStore,
    ) -> None:
        results = await service.find_matches("c1", "acme", FindOptions())
        chosen = [results.transcript[1].id]
        response = await service.replace_matches(
            "c1", ReplaceRequest(find_text="acme", replace_text="Globex", match_ids=chosen),
        )
        assert response.replaced_count == 1
        segments = store.get("c1").speaker_segments
        assert segments is not None
        assert segments[2].text == "Globex acme"
        assert segments[0].text == "Welcome to Acme"

    async def test__replace_matches__same_field_replaced_back_to_front(
        self, store: InMemoryContentStore,
    ) -> None:
        store.add(ConversationContent(conversation_id="c2", summary="aa bb aa"))
        service = FindReplaceService(store)
        await service.replace_matches(
            "c2", ReplaceRequest(find_text="aa", replace_text="Z", replace_all=True),
        )
        assert store.get("c2").summary == "Z bb Z"

    async def test__replace_matches__one_write_per_entity(
        self, service: FindReplaceService, store: InMemoryContentStore,
    ) -> None:
        await service.replace_matches(
            "c1", ReplaceRequest(find_text="acme", replace_text="Globex", replace_all=True),
        )
        assert store.writes == [
            ("summary", None),
            ("transcript", None),
            ("ai_asset", "blog"),
            ("ai_asset", "notes"),
        ]

    async def test__replace_matches__structured_asset_keeps_shape(
        self, service: FindReplaceService, store: InMemoryContentStore,
    ) -> None:
        await service.replace_matches(
            "c1",
            ReplaceRequest(
                find_text="Acme",
                replace_text="Globex",
                replace_all=True,
                scope=FilterScope(type="ai_asset", asset_id="blog"),
            ),
        )
        blog = store.get("c1").analyses[0]
        assert blog.content == {
            "type": "blogPost",
            "headline": "Globex launches",
            "sections": [{"heading": "Intro", "paragraphs": ["Globex is here"]}],
        }
        assert store.get("c1").analyses[1].content == "Call Acme back"

    async def test__replace_matches__summary_v2_keeps_untouched_fields(
        self, service: FindReplaceService, store: InMemoryContentStore,
    ) -> None:
        await service.replace_matches(
            "c1",
            ReplaceRequest(find_text="acme", replace_text="Globex", replace_categories=["summary"]),
        )
        summary = store.get("c1").summary_v2
        assert summary is not None
        assert summary.title == "Globex sync"
        assert summary.key_points[0].topic == "Globex roadmap"
        assert summary.key_points[0].description == "Nothing new"
        assert store.writes == [("summary", None)]

    async def test__replace_matches__transcript_text_rebuilt_from_segments(
        self, service: FindReplaceService, store: InMemoryContentStore,
    ) -> None:
        await service.replace_matches(
            "c1",
            ReplaceRequest(
                find_text="acme",
                replace_text="Globex",
                replace_all=True,
                scope=FilterScope(type="transcript"),
            ),
        )
        content = store.get("c1")
        assert content.transcript_text == "Welcome to Globex\n\nThanks\n\nGlobex Globex"
        assert content.speaker_segments is not None
        assert content.speaker_segments[1].start_time == 3.0

    async def test__replace_matches__replaced_locations(self, service: FindReplaceService) -> None:
        response = await service.replace_matches(
            "c1", ReplaceRequest(find_text="acme", replace_text="Globex", replace_all=True),
        )
        locations = response.replaced_locations
        assert locations.summary == 3
        assert locations.transcript == 3
        assert [(a.asset_id, a.count) for a in locations.ai_assets] == [("blog", 2), ("notes", 1)]

    async def test__replace_matches__stale_ids_are_ignored(
        self, service: FindReplaceService, store: InMemoryContentStore,
    ) -> None:
        response = await service.replace_matches(
            "c1",
            ReplaceRequest(find_text="acme", replace_text="x", match_ids=["summary-gone"]),
        )
        assert response.requested_count == 0
        assert response.replaced_count == 0
        assert response.outcomes == []
        assert store.writes == []

    async def test__replace_matches__ids_from_before_an_edit_are_dropped(
        self, service: FindReplaceService, store: InMemoryContentStore,
    ) -> None:
        """Offsets are recomputed: an id whose field shifted no longer matches."""
        results = await service.find_matches("c1", "acme", FindOptions())
        ids = [m.id for m in results.ai_assets[1].matches]
        store.add(
            make_content().model_copy(
                update={
                    "analyses": [
                        make_content().analyses[0],
                        GeneratedAnalysis(id="notes", template_name="Notes", content="Please call Acme"),
                    ],
                },
            ),
        )
        response = await service.replace_matches(
            "c1", ReplaceRequest(find_text="acme", replace_text="x", match_ids=ids),
        )
        assert response.replaced_count == 0
        assert store.get("c1").analyses[1].content == "Please call Acme"

    async def test__replace_matches__scope_limits_replace(
        self, service: FindReplaceService, store: InMemoryContentStore,
    ) -> None:
        results = await service.find_matches("c1", "acme", FindOptions())
        every_id = [
            *(m.id for m in results.summary),
            *(m.id for m in results.transcript),
            *(m.id for a in results.ai_assets for m in a.matches),
        ]
        response = await service.replace_matches(
            "c1",
            ReplaceRequest(
                find_text="acme",
                replace_text="x",
                match_ids=every_id,
                scope=FilterScope(type="ai_asset", asset_id="notes"),
            ),
        )
        assert response.replaced_count == 1
        assert store.writes == [("ai_asset", "notes")]

    async def test__replace_matches__replace_text_containing_find_text(
        self, store: InMemoryContentStore,
    ) -> None:
        store.add(ConversationContent(conversation_id="c2", summary="cat and cat"))
        service = FindReplaceService(store)
        response = await service.replace_matches(
            "c2", ReplaceRequest(find_text="cat", replace_text="cats", replace_all=True),
        )
        assert response.replaced_count == 2
        assert store.get("c2").summary == "cats and cats"
        results = await service.find_matches("c2", "cat", FindOptions())
        assert results.total_matches == 2

    async def test__replace_matches__empty_replacement_deletes(
        self, store: InMemoryContentStore,
    ) -> None:
        store.add(ConversationContent(conversation_id="c2", transcript_text="um so um yes"))
        service = FindReplaceService(store)
        await service.replace_matches(
            "c2",
            ReplaceRequest(find_text="um ", replace_text="", replace_all=True),
        )
        assert store.get("c2").transcript_text == "so yes"

    async def test__replace_matches__write_failure_isolated(
        self, service: FindReplaceService, store: InMemoryContentStore,
    ) -> None:
        store.failing_entities = {"transcript"}
        response = await service.replace_matches(
            "c1", ReplaceRequest(find_text="acme", replace_text="Globex", replace_all=True),
        )
        statuses = {(o.entity, o.asset_id): o.status for o in response.outcomes}
        assert statuses == {
            ("summary", None): "replaced",
            ("transcript", None): "failed",
            ("ai_asset", "blog"): "replaced",
            ("ai_asset", "notes"): "replaced",
        }
        assert response.replaced_count == 6
        assert response.requested_count == 9
        assert response.replaced_locations.transcript == 0
        segments = store.get("c1").speaker_segments
        assert segments is not None
        assert segments[0].text == "Welcome to Acme"
        assert store.get("c1").analyses[1].content == "Call Globex back"

    async def test__replace_matches__reserialization_failure_skips_entity(
        self, service: FindReplaceService, store: InMemoryContentStore,
    ) -> None:
        with patch(
            "services.find_replace_service.reserialize_analysis",
            side_effect=ReserializationFailedError("headline", "shape changed"),
        ):
            response = await service.replace_matches(
                "c1", ReplaceRequest(find_text="acme", replace_text="Globex", replace_all=True),
            )
        skipped = [o for o in response.outcomes if o.status == "skipped"]
        assert {o.asset_id for o in skipped} == {"blog", "notes"}
        assert all(o.reason and "shape changed" in o.reason for o in skipped)
        assert response.replaced_count == 6
        assert ("ai_asset", "blog") not in store.writes
        assert store.get("c1").transcript_text == "Welcome to Globex\n\nThanks\n\nGlobex Globex"

    async def test__replace_matches__logs_plan_size_per_entity(
        self, service: FindReplaceService, caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level(logging.DEBUG, logger="services.find_replace_service"):
            await service.replace_matches(
                "c1",
                ReplaceRequest(find_text="acme", replace_text="x", replace_categories=["summary"]),
            )
        assert "Planned 3 replacements across 3 fields of summary" in caplog.text

    async def test__replace_matches__nothing_selected(
        self, service: FindReplaceService, store: InMemoryContentStore,
    ) -> None:
        response = await service.replace_matches(
            "c1", ReplaceRequest(find_text="acme", replace_text="x"),
        )
        assert response.replaced_count == 0
        assert store.writes == []

    async def test__replace_matches__whitespace_query_does_not_fetch(
        self, service: FindReplaceService, store: InMemoryContentStore,
    ) -> None:
        with pytest.raises(InvalidQueryError):
            await service.replace_matches(
                "c1", ReplaceRequest(find_text="   ", replace_text="x", replace_all=True),
            )
        assert store.fetch_count == 0

    async def test__replace_matches__conversation_not_found(
        self, service: FindReplaceService,
    ) -> None:
        with pytest.raises(ConversationNotFoundError):
            await service.replace_matches(
                "missing", ReplaceRequest(find_text="a", replace_text="b", replace_all=True),
            )
