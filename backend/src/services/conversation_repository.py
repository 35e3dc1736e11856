"""PostgreSQL-backed content store for conversations and their generated analyses."""
import logging
from typing import Any
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.conversation import Conversation
from models.generated_analysis import GeneratedAnalysis
from schemas.conversation import ConversationContent, SummaryV2
from schemas.conversation import GeneratedAnalysis as GeneratedAnalysisSchema
from services.content_adapter import TranscriptUpdate
from services.exceptions import (
    ContentFetchFailedError,
    ConversationNotFoundError,
    WriteBackFailedError,
)

logger = logging.getLogger(__name__)


class SqlContentStore:
    """
    Content store over the conversations and generated_analyses tables.

    Every fetch reloads rows from the database. Every write runs in its own
    savepoint, so a failed write is rolled back without affecting entities
    written earlier in the same request.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def fetch(self, conversation_id: str) -> ConversationContent:
        """
        Load the current content of a conversation.

        Raises:
            ConversationNotFoundError: If no conversation has this id.
            ContentFetchFailedError: If the query fails or stored content does not
                match the expected shapes.
        """
        parsed_id = _parse_id(conversation_id)
        if parsed_id is None:
            raise ConversationNotFoundError(conversation_id)

        try:
            result = await self._session.execute(
                select(Conversation)
                .options(selectinload(Conversation.analyses))
                .where(Conversation.id == parsed_id)
                .execution_options(populate_existing=True),
            )
            conversation = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise ContentFetchFailedError(conversation_id, str(e)) from e

        if conversation is None:
            raise ConversationNotFoundError(conversation_id)

        try:
            return ConversationContent(
                conversation_id=str(conversation.id),
                summary=conversation.summary,
                summary_v2=conversation.summary_v2,
                transcript_text=conversation.transcript_text,
                speaker_segments=conversation.speaker_segments,
                analyses=[
                    GeneratedAnalysisSchema(
                        id=str(analysis.id),
                        template_id=analysis.template_id,
                        template_name=analysis.template_name,
                        content_type=analysis.content_type,
                        content=analysis.content,
                    )
                    for analysis in conversation.analyses
                ],
            )
        except ValidationError as e:
            raise ContentFetchFailedError(conversation_id, str(e)) from e

    async def write_summary(self, conversation_id: str, summary: str | SummaryV2) -> None:
        """
        Persist a new summary (v2 object or v1 markdown).

        Only keys that were present when the summary was loaded are written, so
        keys unknown to the schema survive and missing ones are not defaulted.
        """
        if isinstance(summary, SummaryV2):
            values: dict[str, Any] = {
                "summary_v2": summary.model_dump(mode="json", exclude_unset=True),
            }
        else:
            values = {"summary": summary}
        await self._update_conversation(conversation_id, "summary", values)

    async def write_transcript(self, conversation_id: str, transcript: TranscriptUpdate) -> None:
        """Persist a new transcript; segments are written only for segmented transcripts."""
        values: dict[str, Any] = {"transcript_text": transcript.transcript_text}
        if transcript.speaker_segments is not None:
            values["speaker_segments"] = [
                segment.model_dump(mode="json", exclude_unset=True)
                for segment in transcript.speaker_segments
            ]
        await self._update_conversation(conversation_id, "transcript", values)

    async def write_analysis(
        self,
        conversation_id: str,
        analysis_id: str,
        content: str | dict[str, Any] | list[Any],
    ) -> None:
        """Persist new content for one generated analysis of this conversation."""
        entity = f"analysis {analysis_id}"
        parsed_conversation_id = _parse_id(conversation_id)
        parsed_analysis_id = _parse_id(analysis_id)
        if parsed_conversation_id is None or parsed_analysis_id is None:
            raise WriteBackFailedError(entity, "invalid id")

        statement = (
            update(GeneratedAnalysis)
            .where(
                GeneratedAnalysis.id == parsed_analysis_id,
                GeneratedAnalysis.conversation_id == parsed_conversation_id,
            )
            .values(content=content, updated_at=func.clock_timestamp())
        )
        await self._execute_write(entity, statement)

    async def _update_conversation(
        self,
        conversation_id: str,
        entity: str,
        values: dict[str, Any],
    ) -> None:
        parsed_id = _parse_id(conversation_id)
        if parsed_id is None:
            raise WriteBackFailedError(entity, "invalid conversation id")

        statement = (
            update(Conversation)
            .where(Conversation.id == parsed_id)
            .values(**values, updated_at=func.clock_timestamp())
        )
        await self._execute_write(entity, statement)

    async def _execute_write(self, entity: str, statement: Any) -> None:
        try:
            async with self._session.begin_nested():
                result = await self._session.execute(
                    statement.execution_options(synchronize_session=False),
                )
                if result.rowcount == 0:
                    raise WriteBackFailedError(entity, "row no longer exists")
        except SQLAlchemyError as e:
            logger.warning("Write-back failed for %s: %s", entity, e)
            raise WriteBackFailedError(entity, str(e)) from e


def _parse_id(value: str) -> UUID | None:
    try:
        return UUID(value)
    except ValueError:
        return None
