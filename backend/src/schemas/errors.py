"""
Error response schemas for API endpoints.

Provides structured error responses for OpenAPI documentation and consistent
error handling across the find & replace endpoints.
"""
from typing import Literal

from pydantic import BaseModel, Field


class InvalidQueryErrorResponse(BaseModel):
    """Error response when the find text is empty or whitespace-only."""

    error: Literal["invalid_query"] = Field(
        default="invalid_query",
        description="Error type identifier",
    )
    message: str = Field(
        default="Find text must not be empty",
        description="Human-readable error message",
    )
    suggestion: str = Field(
        default="Enter the text to search for",
        description="Suggested action to resolve the error",
    )


class ContentFetchFailedErrorResponse(BaseModel):
    """Error response when conversation content could not be loaded."""

    error: Literal["content_fetch_failed"] = Field(
        default="content_fetch_failed",
        description="Error type identifier",
    )
    message: str = Field(
        default="Conversation content could not be loaded",
        description="Human-readable error message",
    )
    suggestion: str = Field(
        default="Retry the request; nothing was searched or replaced",
        description="Suggested action to resolve the error",
    )
