"""SQLAlchemy models."""
from models.base import Base, TimestampMixin, UUIDv7Mixin
from models.conversation import Conversation
from models.generated_analysis import GeneratedAnalysis

__all__ = [
    "Base",
    "Conversation",
    "GeneratedAnalysis",
    "TimestampMixin",
    "UUIDv7Mixin",
]
