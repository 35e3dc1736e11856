"""Conversation-wide find & replace endpoints."""
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError

from api.dependencies import get_find_replace_service
from core.config import Settings, get_settings
from schemas.errors import ContentFetchFailedErrorResponse, InvalidQueryErrorResponse
from schemas.find_replace import (
    FilterScope,
    FindOptions,
    FindReplaceResults,
    ReplaceRequest,
    ReplaceResponse,
)
from services.exceptions import (
    ContentFetchFailedError,
    ConversationNotFoundError,
    InvalidQueryError,
)
from services.find_replace_service import FindReplaceService

router = APIRouter(prefix="/conversations", tags=["find-replace"])


@router.get("/{conversation_id}/find", response_model=FindReplaceResults)
async def find_in_conversation(
    conversation_id: str,
    q: str = Query(min_length=1, description="Text to find (literal match)"),
    case_sensitive: bool = Query(default=False, description="Case-sensitive search"),
    whole_word: bool = Query(default=False, description="Match whole words only"),
    scope: Literal["summary", "transcript", "ai_asset"] | None = Query(
        default=None,
        description="Only return matches from this category",
    ),
    asset_id: str | None = Query(
        default=None,
        description="Asset to scope to (required when scope is 'ai_asset')",
    ),
    service: FindReplaceService = Depends(get_find_replace_service),
    settings: Settings = Depends(get_settings),
) -> FindReplaceResults:
    """
    Find every occurrence of `q` in a conversation's summary, transcript, and AI assets.

    Matching is literal (no pattern syntax). Each match carries an `id` that is
    stable across repeated searches of unchanged content; pass selected ids to
    the replace endpoint.

    Returns:
        - `summary`, `transcript`: matches in each category
        - `ai_assets`: matches grouped per asset (assets without matches are omitted)
        - `total_matches`: count across the returned buckets

    With `scope`, buckets outside the scope are returned empty and
    `total_matches` counts only the scoped matches.
    """
    _check_query_length(q, settings)

    filter_scope = None
    if scope is not None:
        try:
            filter_scope = FilterScope(type=scope, asset_id=asset_id)
        except ValidationError:
            raise HTTPException(
                status_code=400,
                detail="asset_id is required when scope is 'ai_asset'",
            )

    try:
        return await service.find_matches(
            conversation_id,
            q,
            FindOptions(case_sensitive=case_sensitive, whole_word=whole_word),
            scope=filter_scope,
        )
    except InvalidQueryError:
        raise HTTPException(status_code=400, detail=InvalidQueryErrorResponse().model_dump())
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    except ContentFetchFailedError:
        raise HTTPException(
            status_code=502, detail=ContentFetchFailedErrorResponse().model_dump(),
        )


@router.post("/{conversation_id}/replace", response_model=ReplaceResponse)
async def replace_in_conversation(
    conversation_id: str,
    data: ReplaceRequest,
    service: FindReplaceService = Depends(get_find_replace_service),
    settings: Settings = Depends(get_settings),
) -> ReplaceResponse:
    """
    Replace matches of `find_text` with `replace_text`.

    The search is re-run against the current content; offsets from an earlier
    search are never trusted.

    **Target selection (first one set wins):**
    - `replace_all: true` - every current match
    - `replace_categories` - every match in the listed buckets
    - `match_ids` - ids from a previous find call; ids no longer present
      (content changed since the search) are ignored, not an error

    `scope` further restricts whichever selection applies.

    **Partial success:**
    Each entity (summary, transcript, each asset) is written once. An entity
    whose content can no longer be rewritten is `skipped`; one whose write fails
    is `failed`. Other entities still proceed. `replaced_count` reports what was
    actually replaced and may be lower than `requested_count`.
    """
    _check_query_length(data.find_text, settings)

    try:
        return await service.replace_matches(conversation_id, data)
    except InvalidQueryError:
        raise HTTPException(status_code=400, detail=InvalidQueryErrorResponse().model_dump())
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    except ContentFetchFailedError:
        raise HTTPException(
            status_code=502, detail=ContentFetchFailedErrorResponse().model_dump(),
        )


def _check_query_length(query: str, settings: Settings) -> None:
    if len(query) > settings.find_replace_max_query_length:
        raise HTTPException(
            status_code=422,
            detail=f"Find text exceeds maximum length of "
            f"{settings.find_replace_max_query_length} characters",
        )
