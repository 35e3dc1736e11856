"""
Conversation-wide find & replace across summary, transcript, and generated analyses.

Both operations re-fetch content from the store on every call; nothing is cached
between a search and a later replace. Replace re-runs the search against the
current content, so offsets supplied by a caller are never trusted: requested
match ids are intersected with the fresh matches.

Each modified entity (summary, transcript, or one analysis) is planned,
reserialized, and written independently. A failure for one entity is reported
in its outcome and does not stop the others.
"""
import logging
from collections.abc import Sequence
from typing import Any

from schemas.conversation import ConversationContent, SummaryV2
from schemas.find_replace import (
    AssetReplaceCount,
    EntityOutcome,
    FilterScope,
    FindOptions,
    FindReplaceResults,
    MatchCategory,
    ReplacedLocations,
    ReplaceRequest,
    ReplaceResponse,
)
from services.content_adapter import (
    TranscriptUpdate,
    extract_fields,
    reserialize_analysis,
    reserialize_summary,
    reserialize_transcript,
)
from services.content_store import ContentStore
from services.exceptions import ReserializationFailedError, WriteBackFailedError
from services.match_engine import (
    DEFAULT_CONTEXT_CHARS,
    FieldMatch,
    find_matches,
    group_results,
    validate_query,
)
from services.replace_planner import apply_field_plan, build_replace_plan, select_targets
from services.scope_filter import filter_results

logger = logging.getLogger(__name__)

EntityKey = tuple[MatchCategory, str | None]
EntityValue = str | SummaryV2 | TranscriptUpdate | dict[str, Any] | list[Any]


class FindReplaceService:
    """Search and replace text within one conversation's content."""

    def __init__(self, store: ContentStore, context_chars: int = DEFAULT_CONTEXT_CHARS) -> None:
        self._store = store
        self._context_chars = context_chars

    async def find_matches(
        self,
        conversation_id: str,
        find_text: str,
        options: FindOptions,
        scope: FilterScope | None = None,
    ) -> FindReplaceResults:
        """
        Find all matches in a conversation.

        Args:
            conversation_id: Conversation to search.
            find_text: Literal text to find.
            options: Case sensitivity and whole-word modifiers.
            scope: Optional scope; buckets outside it are returned empty.

        Returns:
            Results bucketed by summary, transcript, and AI asset.

        Raises:
            InvalidQueryError: If find_text is empty or whitespace-only.
            ConversationNotFoundError: If the conversation does not exist.
            ContentFetchFailedError: If content could not be fetched.
        """
        validate_query(find_text)
        content = await self._store.fetch(conversation_id)
        field_matches = self._search(content, find_text, options.case_sensitive, options.whole_word)
        results = group_results(
            conversation_id,
            find_text,
            options.case_sensitive,
            options.whole_word,
            field_matches,
        )
        return filter_results(results, scope)

    async def replace_matches(
        self,
        conversation_id: str,
        request: ReplaceRequest,
    ) -> ReplaceResponse:
        """
        Replace selected matches and persist each modified entity once.

        Match ids that are no longer present in the current content are dropped.
        Entities whose content cannot be rewritten are skipped; entities whose
        write fails are reported as failed. Neither raises.

        Raises:
            InvalidQueryError: If find_text is empty or whitespace-only.
            ConversationNotFoundError: If the conversation does not exist.
            ContentFetchFailedError: If content could not be fetched.
        """
        validate_query(request.find_text)
        content = await self._store.fetch(conversation_id)
        field_matches = self._search(
            content, request.find_text, request.case_sensitive, request.whole_word,
        )
        targets = select_targets(
            field_matches,
            replace_all=request.replace_all,
            match_ids=request.match_ids,
            categories=request.replace_categories,
            scope=request.scope,
        )

        outcomes = []
        for entity, entity_targets in _group_by_entity(targets).items():
            outcome = await self._replace_entity(
                content, entity, entity_targets, request.replace_text,
            )
            outcomes.append(outcome)

        response = _build_response(conversation_id, len(targets), outcomes)
        logger.info(
            "Replaced %d of %d matches in conversation %s",
            response.replaced_count,
            response.requested_count,
            conversation_id,
        )
        return response

    def _search(
        self,
        content: ConversationContent,
        find_text: str,
        case_sensitive: bool,
        whole_word: bool,
    ) -> list[FieldMatch]:
        return find_matches(
            extract_fields(content),
            find_text,
            case_sensitive=case_sensitive,
            whole_word=whole_word,
            context_chars=self._context_chars,
        )

    async def _replace_entity(
        self,
        content: ConversationContent,
        entity: EntityKey,
        targets: Sequence[FieldMatch],
        replace_text: str,
    ) -> EntityOutcome:
        category, asset_id = entity
        requested = len(targets)

        try:
            value = _reserialize_entity(content, entity, targets, replace_text)
        except ReserializationFailedError as e:
            logger.warning("Skipping %s %s: %s", category, asset_id or "", e)
            return EntityOutcome(
                entity=category,
                asset_id=asset_id,
                status="skipped",
                requested=requested,
                replaced=0,
                reason=str(e),
            )

        try:
            await self._write_entity(content.conversation_id, entity, value)
        except WriteBackFailedError as e:
            logger.warning("Write-back failed for %s %s: %s", category, asset_id or "", e)
            return EntityOutcome(
                entity=category,
                asset_id=asset_id,
                status="failed",
                requested=requested,
                replaced=0,
                reason=str(e),
            )

        return EntityOutcome(
            entity=category,
            asset_id=asset_id,
            status="replaced",
            requested=requested,
            replaced=requested,
        )

    async def _write_entity(
        self,
        conversation_id: str,
        entity: EntityKey,
        value: EntityValue,
    ) -> None:
        category, asset_id = entity
        if category == "summary":
            await self._store.write_summary(conversation_id, value)
        elif category == "transcript":
            await self._store.write_transcript(conversation_id, value)
        else:
            await self._store.write_analysis(conversation_id, asset_id, value)


def _group_by_entity(targets: Sequence[FieldMatch]) -> dict[EntityKey, list[FieldMatch]]:
    groups: dict[EntityKey, list[FieldMatch]] = {}
    for target in targets:
        provenance = target.field.provenance
        groups.setdefault((provenance.category, provenance.asset_id), []).append(target)
    return groups


def _reserialize_entity(
    content: ConversationContent,
    entity: EntityKey,
    targets: Sequence[FieldMatch],
    replace_text: str,
) -> EntityValue:
    """
    Compute the new value of one entity.

    Raises:
        ReserializationFailedError: If any targeted field cannot be rewritten;
            nothing of this entity is written in that case.
    """
    category, asset_id = entity
    plan = build_replace_plan(targets)
    logger.debug(
        "Planned %d replacements across %d fields of %s %s",
        plan.match_count,
        len(plan.field_plans),
        category,
        asset_id or "",
    )
    new_values = {
        field_plan.provenance: apply_field_plan(field_plan, replace_text)
        for field_plan in plan.field_plans
    }

    if category == "summary":
        return reserialize_summary(
            content, {provenance.path: value for provenance, value in new_values.items()},
        )
    if category == "transcript":
        return reserialize_transcript(
            content,
            {provenance.segment_index: value for provenance, value in new_values.items()},
        )

    analysis = next((a for a in content.analyses if a.id == asset_id), None)
    if analysis is None:
        raise ReserializationFailedError("", f"analysis {asset_id} not found")
    return reserialize_analysis(
        analysis, {provenance.path: value for provenance, value in new_values.items()},
    )


def _build_response(
    conversation_id: str,
    requested_count: int,
    outcomes: list[EntityOutcome],
) -> ReplaceResponse:
    locations = ReplacedLocations()
    for outcome in outcomes:
        if outcome.status != "replaced":
            continue
        if outcome.entity == "summary":
            locations.summary += outcome.replaced
        elif outcome.entity == "transcript":
            locations.transcript += outcome.replaced
        else:
            locations.ai_assets.append(
                AssetReplaceCount(asset_id=outcome.asset_id or "", count=outcome.replaced),
            )

    return ReplaceResponse(
        conversation_id=conversation_id,
        replaced_count=sum(o.replaced for o in outcomes),
        requested_count=requested_count,
        replaced_locations=locations,
        outcomes=outcomes,
    )
