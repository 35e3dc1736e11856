"""Pydantic schemas for conversation-wide find & replace endpoints."""
from typing import Literal

from pydantic import BaseModel, Field, model_validator

MatchCategory = Literal["summary", "transcript", "ai_asset"]
ResultBucket = Literal["summary", "transcript", "ai_assets"]


class MatchLocation(BaseModel):
    """Where a match was found; enough to write a replacement back."""

    type: MatchCategory = Field(description="Content category of the match")
    field_path: str = Field(
        default="",
        description="Path into structured content (e.g. 'key_points[0].topic'); "
        "empty for flat text",
    )
    segment_index: int | None = Field(
        default=None,
        description="Transcript segment index (transcript matches in segmented transcripts)",
    )
    asset_id: str | None = Field(default=None, description="Generated asset id (AI asset matches)")


class FindReplaceMatch(BaseModel):
    """A single occurrence of the find text."""

    id: str = Field(description="Deterministic id, stable across searches of unchanged content")
    category: MatchCategory
    matched_text: str = Field(description="Exact text matched, with original casing")
    context: str = Field(description="Snippet around the match, for display only")
    location: MatchLocation
    start_offset: int = Field(description="Start offset into the field value at search time")
    end_offset: int = Field(description="End offset (exclusive) into the field value at search time")


class AssetMatches(BaseModel):
    """Matches within one generated AI asset."""

    asset_id: str
    asset_name: str
    matches: list[FindReplaceMatch]


class FindReplaceResults(BaseModel):
    """Response from the find endpoint, bucketed by content category."""

    conversation_id: str
    find_text: str
    case_sensitive: bool
    whole_word: bool
    summary: list[FindReplaceMatch] = Field(default_factory=list)
    transcript: list[FindReplaceMatch] = Field(default_factory=list)
    ai_assets: list[AssetMatches] = Field(default_factory=list)
    total_matches: int = Field(description="Sum of matches across all exposed buckets")


class FilterScope(BaseModel):
    """Restricts results or replacements to one category or one asset."""

    type: Literal["summary", "transcript", "ai_asset"]
    asset_id: str | None = None

    @model_validator(mode="after")
    def check_asset_id(self) -> "FilterScope":
        """An asset scope needs the asset it targets."""
        if self.type == "ai_asset" and not self.asset_id:
            raise ValueError("asset_id is required when scope type is 'ai_asset'")
        return self


class FindOptions(BaseModel):
    """Search modifiers."""

    case_sensitive: bool = False
    whole_word: bool = False


class ReplaceRequest(BaseModel):
    """
    Request body for the replace endpoint.

    Target selection precedence: `replace_all`, then `replace_categories`, then
    `match_ids`. `scope`, when given, further restricts any of them.
    """

    find_text: str = Field(min_length=1, description="Literal text to find")
    replace_text: str = Field(description="Replacement text (use empty string to delete)")
    case_sensitive: bool = False
    whole_word: bool = False
    replace_all: bool = False
    match_ids: list[str] | None = Field(
        default=None,
        description="Ids from a previous find call; ids no longer present are ignored",
    )
    replace_categories: list[ResultBucket] | None = Field(
        default=None,
        description="Replace every match in these buckets",
    )
    scope: FilterScope | None = None


class AssetReplaceCount(BaseModel):
    """Replacements performed in one generated asset."""

    asset_id: str
    count: int


class ReplacedLocations(BaseModel):
    """Per-category breakdown of replacements performed."""

    summary: int = 0
    transcript: int = 0
    ai_assets: list[AssetReplaceCount] = Field(default_factory=list)


class EntityOutcome(BaseModel):
    """Result of writing one entity (summary, transcript, or one asset)."""

    entity: MatchCategory
    asset_id: str | None = None
    status: Literal["replaced", "skipped", "failed"]
    requested: int = Field(description="Matches targeted in this entity")
    replaced: int = Field(description="Matches actually replaced in this entity")
    reason: str | None = None


class ReplaceResponse(BaseModel):
    """Response from the replace endpoint."""

    conversation_id: str
    replaced_count: int = Field(description="Matches actually replaced")
    requested_count: int = Field(description="Matches targeted after dropping stale ids")
    replaced_locations: ReplacedLocations = Field(default_factory=ReplacedLocations)
    outcomes: list[EntityOutcome] = Field(default_factory=list)
