"""Content fetch and write-back contract used by the find & replace service."""
from typing import Any, Protocol

from schemas.conversation import ConversationContent, SummaryV2
from services.content_adapter import TranscriptUpdate


class ContentStore(Protocol):
    """
    Reads and writes the current content of a conversation.

    Implementations never cache across calls. Each write persists exactly one
    entity: the summary, the transcript, or one generated analysis.

    Errors:
        fetch raises ConversationNotFoundError or ContentFetchFailedError.
        write_* raise WriteBackFailedError.
    """

    async def fetch(self, conversation_id: str) -> ConversationContent:
        ...

    async def write_summary(self, conversation_id: str, summary: str | SummaryV2) -> None:
        ...

    async def write_transcript(self, conversation_id: str, transcript: TranscriptUpdate) -> None:
        ...

    async def write_analysis(
        self,
        conversation_id: str,
        analysis_id: str,
        content: str | dict[str, Any] | list[Any],
    ) -> None:
        ...
