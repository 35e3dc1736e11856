"""Conversation model holding summary and transcript content."""
from typing import TYPE_CHECKING, Any

from sqlalchemy import String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin, UUIDv7Mixin

if TYPE_CHECKING:
    from models.generated_analysis import GeneratedAnalysis


class Conversation(Base, UUIDv7Mixin, TimestampMixin):
    """A transcribed conversation with its summary and transcript."""

    __tablename__ = "conversations"

    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    # v1 summary: markdown string
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    # v2 summary: structured object (title, intro, key_points, ...)
    summary_v2: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    transcript_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    speaker_segments: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONB, nullable=True)

    analyses: Mapped[list["GeneratedAnalysis"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="(GeneratedAnalysis.created_at, GeneratedAnalysis.id)",
    )
