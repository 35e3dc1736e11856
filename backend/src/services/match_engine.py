"""
Literal find across normalized conversation fields.

Matching is literal substring search (user input is never interpreted as a
pattern) with two modifiers:

- case_sensitive: when False, comparison uses str.casefold
- whole_word: an occurrence counts only if neither adjacent character is an
  ASCII word character ([A-Za-z0-9_]) or the string boundary

Scanning is left-to-right and non-overlapping: after a match at [s, e) the scan
resumes at e. Each match gets an id derived only from its provenance and
offsets, so repeating a search against unchanged content yields identical ids.
"""
import hashlib
import json
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from schemas.find_replace import (
    AssetMatches,
    FindReplaceMatch,
    FindReplaceResults,
    MatchLocation,
)
from services.content_adapter import Provenance, TextField
from services.exceptions import InvalidQueryError

DEFAULT_CONTEXT_CHARS = 40
ELLIPSIS = "..."


@dataclass(frozen=True)
class FieldMatch:
    """A match together with the field it was found in."""

    field: TextField
    match: FindReplaceMatch


def validate_query(query: str) -> None:
    """
    Reject queries that would match nothing meaningful.

    Raises:
        InvalidQueryError: If query is empty or whitespace-only.
    """
    if not query or not query.strip():
        raise InvalidQueryError()


def find_matches(
    fields: Iterable[TextField],
    query: str,
    case_sensitive: bool = False,
    whole_word: bool = False,
    context_chars: int = DEFAULT_CONTEXT_CHARS,
) -> list[FieldMatch]:
    """
    Find all occurrences of query in every field.

    Results follow field order, and ascending offset within a field.

    Raises:
        InvalidQueryError: If query is empty or whitespace-only (no scan is done).
    """
    validate_query(query)
    results: list[FieldMatch] = []
    for field in fields:
        for start, end in find_spans(field.raw_value, query, case_sensitive, whole_word):
            match = FindReplaceMatch(
                id=build_match_id(field.provenance, start, end),
                category=field.provenance.category,
                matched_text=field.raw_value[start:end],
                context=get_match_context(field.raw_value, start, end, context_chars),
                location=MatchLocation(
                    type=field.provenance.category,
                    field_path=field.provenance.field_path,
                    segment_index=field.provenance.segment_index,
                    asset_id=field.provenance.asset_id,
                ),
                start_offset=start,
                end_offset=end,
            )
            results.append(FieldMatch(field=field, match=match))
    return results


def find_spans(
    text: str,
    query: str,
    case_sensitive: bool,
    whole_word: bool,
) -> list[tuple[int, int]]:
    """
    Find all non-overlapping occurrences of query in text.

    Returns:
        List of (start, end) offsets into text, ascending.
    """
    spans = []
    length = len(query)
    find = _candidate_finder(text, query, case_sensitive)
    start = 0
    while True:
        pos = find(start)
        if pos == -1:
            break
        end = pos + length
        if whole_word and not _is_whole_word(text, pos, end):
            # Rejected candidates don't consume text; a later overlapping one may qualify
            start = pos + 1
            continue
        spans.append((pos, end))
        start = end  # Non-overlapping
    return spans


def _candidate_finder(text: str, query: str, case_sensitive: bool) -> Callable[[int], int]:
    """Return a function giving the next candidate offset at or after a position."""
    if case_sensitive:
        return lambda start: text.find(query, start)

    needle = query.casefold()
    folded = text.casefold()
    if len(folded) == len(text) and len(needle) == len(query):
        return lambda start: folded.find(needle, start)

    # Folding changed lengths (e.g. 'ß' -> 'ss'); compare window by window so
    # offsets stay valid against the original text.
    length = len(query)

    def find_window(start: int) -> int:
        for pos in range(start, len(text) - length + 1):
            if text[pos:pos + length].casefold() == needle:
                return pos
        return -1

    return find_window


def _is_word_char(char: str) -> bool:
    return char.isascii() and (char.isalnum() or char == "_")


def _is_whole_word(text: str, start: int, end: int) -> bool:
    before_ok = start == 0 or not _is_word_char(text[start - 1])
    after_ok = end == len(text) or not _is_word_char(text[end])
    return before_ok and after_ok


def build_match_id(provenance: Provenance, start: int, end: int) -> str:
    """
    Build a deterministic match id from provenance and offsets.

    The id is a category prefix plus a digest of the canonical JSON encoding of
    the location, so distinct locations never share an id.
    """
    key = json.dumps(
        [
            provenance.category,
            provenance.asset_id,
            provenance.segment_index,
            list(provenance.path),
            start,
            end,
        ],
        separators=(",", ":"),
    )
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:20]
    return f"{provenance.category}-{digest}"


def get_match_context(
    text: str,
    start: int,
    end: int,
    context_chars: int = DEFAULT_CONTEXT_CHARS,
) -> str:
    """
    Get a snippet of up to context_chars characters on each side of a match.

    An ellipsis marks each side that was truncated.
    """
    context_start = max(0, start - context_chars)
    context_end = min(len(text), end + context_chars)
    context = text[context_start:context_end]
    if context_start > 0:
        context = ELLIPSIS + context
    if context_end < len(text):
        context = context + ELLIPSIS
    return context


def group_results(
    conversation_id: str,
    find_text: str,
    case_sensitive: bool,
    whole_word: bool,
    field_matches: Iterable[FieldMatch],
) -> FindReplaceResults:
    """
    Bucket matches by category.

    Assets keep the order in which their first match appears; assets without
    matches are omitted.
    """
    summary: list[FindReplaceMatch] = []
    transcript: list[FindReplaceMatch] = []
    assets: dict[str, AssetMatches] = {}

    for field_match in field_matches:
        match = field_match.match
        if match.category == "summary":
            summary.append(match)
        elif match.category == "transcript":
            transcript.append(match)
        else:
            asset_id = field_match.field.provenance.asset_id or ""
            if asset_id not in assets:
                assets[asset_id] = AssetMatches(
                    asset_id=asset_id,
                    asset_name=field_match.field.asset_name or "",
                    matches=[],
                )
            assets[asset_id].matches.append(match)

    ai_assets = list(assets.values())
    total = len(summary) + len(transcript) + sum(len(a.matches) for a in ai_assets)
    return FindReplaceResults(
        conversation_id=conversation_id,
        find_text=find_text,
        case_sensitive=case_sensitive,
        whole_word=whole_word,
        summary=summary,
        transcript=transcript,
        ai_assets=ai_assets,
        total_matches=total,
    )
