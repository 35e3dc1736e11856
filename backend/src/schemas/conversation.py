"""Pydantic schemas for conversation content (summary, transcript, generated analyses)."""
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class SummaryKeyPoint(BaseModel):
    """A key discussion point in a structured summary."""

    model_config = ConfigDict(extra="allow")

    topic: str
    description: str


class SummaryDetailedSection(BaseModel):
    """A detailed paragraph expanding on a key point."""

    model_config = ConfigDict(extra="allow")

    topic: str
    content: str


class SummaryV2(BaseModel):
    """
    Structured (version 2) conversation summary.

    Keys outside the declared fields are kept as extras so that a write-back
    returns them unchanged; they are never searched.
    """

    model_config = ConfigDict(extra="allow")

    version: Literal[2] = 2
    title: str = ""
    intro: str = ""
    key_points: list[SummaryKeyPoint] = Field(default_factory=list)
    detailed_sections: list[SummaryDetailedSection] = Field(default_factory=list)
    decisions: list[str] | None = None
    next_steps: list[str] | None = None
    generated_at: datetime | None = None


class SpeakerSegment(BaseModel):
    """One diarized transcript segment."""

    model_config = ConfigDict(extra="allow")

    speaker_tag: str
    start_time: float = 0.0
    end_time: float = 0.0
    text: str = ""
    confidence: float | None = None


ContentType = Literal["markdown", "structured"]


class GeneratedAnalysis(BaseModel):
    """
    A generated AI asset attached to a conversation.

    `content` is a markdown string for `markdown` assets and a template-dependent
    object tree for `structured` assets. A structured asset whose payload failed
    to parse upstream may still carry a string.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    template_id: str | None = None
    template_name: str
    content_type: ContentType = "markdown"
    content: str | dict[str, Any] | list[Any] | None = None


class ConversationContent(BaseModel):
    """The current searchable state of one conversation."""

    conversation_id: str
    summary: str | None = None
    summary_v2: SummaryV2 | None = None
    transcript_text: str | None = None
    speaker_segments: list[SpeakerSegment] | None = None
    analyses: list[GeneratedAnalysis] = Field(default_factory=list)
