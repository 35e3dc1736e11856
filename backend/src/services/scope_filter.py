"""
Scope projection over find results.

Filtering never mutates the underlying matches: callers keep the full result
set so they can switch scope without searching again.
"""
from schemas.find_replace import FilterScope, FindReplaceMatch, FindReplaceResults


def filter_results(
    results: FindReplaceResults,
    scope: FilterScope | None,
) -> FindReplaceResults:
    """
    Expose only the buckets inside scope and recompute total_matches.

    Args:
        results: Unfiltered results.
        scope: Scope to apply; None returns results unchanged.

    Returns:
        A new FindReplaceResults sharing match objects with the input.
    """
    if scope is None:
        return results

    if scope.type == "summary":
        return results.model_copy(
            update={"transcript": [], "ai_assets": [], "total_matches": len(results.summary)},
        )
    if scope.type == "transcript":
        return results.model_copy(
            update={"summary": [], "ai_assets": [], "total_matches": len(results.transcript)},
        )

    assets = [a for a in results.ai_assets if a.asset_id == scope.asset_id]
    return results.model_copy(
        update={
            "summary": [],
            "transcript": [],
            "ai_assets": assets,
            "total_matches": sum(len(a.matches) for a in assets),
        },
    )


def all_matches(results: FindReplaceResults) -> list[FindReplaceMatch]:
    """Flatten results in display order: summary, transcript, then assets."""
    matches = [*results.summary, *results.transcript]
    for asset in results.ai_assets:
        matches.extend(asset.matches)
    return matches


def matches_in_scope(
    results: FindReplaceResults,
    scope: FilterScope | None,
) -> list[FindReplaceMatch]:
    """Matches that count toward navigation and default selection for a scope."""
    return all_matches(filter_results(results, scope))


def is_in_scope(match: FindReplaceMatch, scope: FilterScope | None) -> bool:
    """Check whether a single match falls inside scope."""
    if scope is None:
        return True
    if scope.type == "ai_asset":
        return match.category == "ai_asset" and match.location.asset_id == scope.asset_id
    return match.category == scope.type
