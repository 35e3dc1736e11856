"""Generated analysis (AI asset) model."""
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import ForeignKey, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin, UUIDv7Mixin

if TYPE_CHECKING:
    from models.conversation import Conversation


class GeneratedAnalysis(Base, UUIDv7Mixin, TimestampMixin):
    """
    AI-generated output for a conversation.

    `content` holds a JSON string for markdown assets and a JSON object for
    structured assets.
    """

    __tablename__ = "generated_analyses"

    conversation_id: Mapped[UUID] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"),
        index=True,
    )
    template_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    template_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(String(20), nullable=False, default="markdown")
    content: Mapped[Any] = mapped_column(JSONB, nullable=True)

    conversation: Mapped["Conversation"] = relationship(back_populates="analyses")
