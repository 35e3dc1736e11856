"""FastAPI dependencies for injection."""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from db.session import get_async_session
from services.content_store import ContentStore
from services.conversation_repository import SqlContentStore
from services.find_replace_service import FindReplaceService


def get_content_store(
    db: AsyncSession = Depends(get_async_session),
) -> ContentStore:
    """Content store bound to the request's database session."""
    return SqlContentStore(db)


def get_find_replace_service(
    store: ContentStore = Depends(get_content_store),
    settings: Settings = Depends(get_settings),
) -> FindReplaceService:
    """Find & replace service configured from settings."""
    return FindReplaceService(store, context_chars=settings.find_replace_context_chars)


__all__ = [
    "get_async_session",
    "get_content_store",
    "get_find_replace_service",
    "get_settings",
]
