"""
Selection and navigation state for find results.

Selection gates the replace step: the ids collected here are what callers send
as match_ids. Category toggles are all-or-nothing, so a category is never left
half-selected by a toggle.
"""
from collections.abc import Iterable, Iterator

from schemas.find_replace import (
    FilterScope,
    FindReplaceMatch,
    FindReplaceResults,
    ResultBucket,
)
from services.scope_filter import all_matches, matches_in_scope


def bucket_matches(results: FindReplaceResults, bucket: ResultBucket) -> list[FindReplaceMatch]:
    """Matches in one result bucket (all assets together for 'ai_assets')."""
    if bucket == "summary":
        return list(results.summary)
    if bucket == "transcript":
        return list(results.transcript)
    return [m for asset in results.ai_assets for m in asset.matches]


def asset_matches(results: FindReplaceResults, asset_id: str) -> list[FindReplaceMatch]:
    """Matches of a single asset, empty if it has none."""
    for asset in results.ai_assets:
        if asset.asset_id == asset_id:
            return list(asset.matches)
    return []


class MatchSelection:
    """A set of selected match ids with idempotent bulk operations."""

    def __init__(self, match_ids: Iterable[str] = ()) -> None:
        self._ids: set[str] = set(match_ids)

    @classmethod
    def default_for(
        cls,
        results: FindReplaceResults,
        scope: FilterScope | None = None,
    ) -> "MatchSelection":
        """Select every match within scope."""
        return cls(m.id for m in matches_in_scope(results, scope))

    @property
    def selected_ids(self) -> frozenset[str]:
        return frozenset(self._ids)

    def __contains__(self, match_id: object) -> bool:
        return match_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._ids))

    def toggle(self, match_id: str) -> None:
        """Select an unselected match, or deselect a selected one."""
        if match_id in self._ids:
            self._ids.discard(match_id)
        else:
            self._ids.add(match_id)

    def toggle_category(self, results: FindReplaceResults, bucket: ResultBucket) -> None:
        """
        Toggle a whole bucket.

        If every match in the bucket is selected, all of them are cleared;
        otherwise all of them are selected.
        """
        self._toggle_group({m.id for m in bucket_matches(results, bucket)})

    def is_category_selected(self, results: FindReplaceResults, bucket: ResultBucket) -> bool:
        """True when the bucket is non-empty and fully selected."""
        ids = {m.id for m in bucket_matches(results, bucket)}
        return bool(ids) and ids <= self._ids

    def toggle_asset(self, results: FindReplaceResults, asset_id: str) -> None:
        """Toggle every match of one asset with the same all-or-nothing rule."""
        self._toggle_group({m.id for m in asset_matches(results, asset_id)})

    def is_asset_selected(self, results: FindReplaceResults, asset_id: str) -> bool:
        """True when the asset has matches and all of them are selected."""
        ids = {m.id for m in asset_matches(results, asset_id)}
        return bool(ids) and ids <= self._ids

    def select_all(self, results: FindReplaceResults) -> None:
        self._ids |= {m.id for m in all_matches(results)}

    def clear(self) -> None:
        self._ids.clear()

    def retain_present(self, results: FindReplaceResults) -> None:
        """Drop ids that are not in results (e.g. after a fresh search)."""
        self._ids &= {m.id for m in all_matches(results)}

    def _toggle_group(self, ids: set[str]) -> None:
        if ids <= self._ids:
            self._ids -= ids
        else:
            self._ids |= ids


def next_match_index(current: int, count: int) -> int:
    """Index of the next match, wrapping to the first."""
    if count <= 0:
        return 0
    return (current + 1) % count


def previous_match_index(current: int, count: int) -> int:
    """Index of the previous match, wrapping to the last."""
    if count <= 0:
        return 0
    return count - 1 if current <= 0 else current - 1
