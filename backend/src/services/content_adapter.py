"""
Normalizes conversation content into a flat list of searchable text fields.

A conversation holds three kinds of content with different shapes:

1. Summary - a v1 markdown string or a structured v2 object
2. Transcript - a flat string or a list of speaker segments
3. Generated analyses - markdown strings or template-dependent object trees

Each atomic string location becomes one TextField tagged with a Provenance
that is precise enough to write a new value back to exactly that location.
The reserialize_* functions are the inverse: they take new values for some
fields of one entity and return the entity's new value, leaving everything
else untouched.
"""
import copy
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from schemas.conversation import (
    ConversationContent,
    GeneratedAnalysis,
    SpeakerSegment,
    SummaryV2,
)
from schemas.find_replace import MatchCategory
from services.exceptions import ReserializationFailedError

FieldPath = tuple[str | int, ...]

# Template discriminator in structured assets; never searched or rewritten.
DISCRIMINATOR_KEY = "type"

# Summary v2 metadata that is not user-facing text.
SUMMARY_METADATA_FIELDS = {"version", "generated_at"}

TRANSCRIPT_SEGMENT_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class Provenance:
    """Identifies one reserializable string location within a conversation."""

    category: MatchCategory
    path: FieldPath = ()
    segment_index: int | None = None
    asset_id: str | None = None

    @property
    def field_path(self) -> str:
        """Dotted/indexed rendering of path, e.g. 'sections[0].paragraphs[1]'."""
        return render_path(self.path)


@dataclass(frozen=True)
class TextField:
    """A single unit of searchable text extracted from content."""

    provenance: Provenance
    raw_value: str
    asset_name: str | None = None


@dataclass(frozen=True)
class TranscriptUpdate:
    """New transcript value; speaker_segments is None for flat transcripts."""

    transcript_text: str
    speaker_segments: list[SpeakerSegment] | None = None


def render_path(path: FieldPath) -> str:
    """Render a path tuple as 'key[0].child'."""
    rendered = ""
    for part in path:
        if isinstance(part, int):
            rendered += f"[{part}]"
        elif rendered:
            rendered += f".{part}"
        else:
            rendered = part
    return rendered


def iter_string_leaves(value: Any, path: FieldPath = ()) -> Iterator[tuple[FieldPath, str]]:
    """
    Yield (path, value) for every string leaf in a generic value tree.

    Strings inside lists are leaves too. Discriminator keys and non-string
    scalars are skipped.
    """
    if isinstance(value, str):
        yield path, value
    elif isinstance(value, list):
        for index, item in enumerate(value):
            yield from iter_string_leaves(item, (*path, index))
    elif isinstance(value, dict):
        for key, item in value.items():
            if key == DISCRIMINATOR_KEY:
                continue
            yield from iter_string_leaves(item, (*path, key))


def extract_fields(content: ConversationContent) -> list[TextField]:
    """
    Flatten conversation content into searchable fields.

    Order is summary, transcript, then analyses in fetch order; within each
    entity, fields follow document order. Empty strings produce no field.
    """
    fields: list[TextField] = []
    fields.extend(_summary_fields(content))
    fields.extend(_transcript_fields(content))
    for analysis in content.analyses:
        fields.extend(_analysis_fields(analysis))
    return fields


def _summary_fields(content: ConversationContent) -> Iterator[TextField]:
    if content.summary_v2 is not None:
        tree = _summary_tree(content.summary_v2)
        for path, value in iter_string_leaves(tree):
            if value:
                yield TextField(Provenance("summary", path=path), value)
    elif content.summary:
        yield TextField(Provenance("summary"), content.summary)


def _transcript_fields(content: ConversationContent) -> Iterator[TextField]:
    if content.speaker_segments:
        for index, segment in enumerate(content.speaker_segments):
            if segment.text:
                yield TextField(
                    Provenance("transcript", segment_index=index),
                    segment.text,
                )
    elif content.transcript_text:
        yield TextField(Provenance("transcript"), content.transcript_text)


def _analysis_fields(analysis: GeneratedAnalysis) -> Iterator[TextField]:
    # A structured asset whose payload is still a string is treated as markdown.
    for path, value in iter_string_leaves(analysis.content):
        if value:
            yield TextField(
                Provenance("ai_asset", path=path, asset_id=analysis.id),
                value,
                asset_name=analysis.template_name,
            )


def _summary_tree(summary: SummaryV2) -> dict[str, Any]:
    tree = _declared_tree(summary)
    return {key: value for key, value in tree.items() if key not in SUMMARY_METADATA_FIELDS}


def _declared_tree(value: Any) -> Any:
    # Declared fields only: extras ride along on write-back but are not text.
    if isinstance(value, BaseModel):
        return {name: _declared_tree(getattr(value, name)) for name in type(value).model_fields}
    if isinstance(value, list):
        return [_declared_tree(item) for item in value]
    return value


def set_field_value(root: Any, path: FieldPath, value: str) -> Any:
    """
    Return a deep copy of root with the string leaf at path replaced by value.

    Raises:
        ReserializationFailedError: If path does not resolve to a string leaf.
    """
    rendered = render_path(path)
    if not path:
        if not isinstance(root, str):
            raise ReserializationFailedError(rendered, "content is not a string")
        return value

    updated = copy.deepcopy(root)
    container = updated
    for depth, part in enumerate(path):
        is_last = depth == len(path) - 1
        if isinstance(part, int):
            if not isinstance(container, list) or not 0 <= part < len(container):
                raise ReserializationFailedError(rendered, f"no list item at index {part}")
        elif not isinstance(container, dict) or part not in container:
            raise ReserializationFailedError(rendered, f"no key '{part}'")
        if is_last:
            if not isinstance(container[part], str):
                raise ReserializationFailedError(rendered, "target is not a string")
            container[part] = value
        else:
            container = container[part]
    return updated


def reserialize_summary(
    content: ConversationContent,
    updates: Mapping[FieldPath, str],
) -> str | SummaryV2:
    """Apply new field values to the summary and return the new summary value."""
    if content.summary_v2 is not None:
        # Only keys present in storage (extras included) go back; unset defaults stay absent
        tree = content.summary_v2.model_dump(exclude_unset=True)
        for path, value in updates.items():
            tree = set_field_value(tree, path, value)
        return SummaryV2.model_validate(tree)

    if content.summary is None:
        raise ReserializationFailedError("", "conversation has no summary")
    summary: Any = content.summary
    for path, value in updates.items():
        summary = set_field_value(summary, path, value)
    return summary


def reserialize_transcript(
    content: ConversationContent,
    updates: Mapping[int | None, str],
) -> TranscriptUpdate:
    """
    Apply new segment texts (or a new flat text) and return the new transcript.

    For segmented transcripts the flat text is rebuilt from the segments.
    """
    if content.speaker_segments:
        segments = list(content.speaker_segments)
        for index, text in updates.items():
            if index is None or not 0 <= index < len(segments):
                raise ReserializationFailedError(
                    f"segments[{index}]", "no transcript segment at this index",
                )
            segments[index] = SpeakerSegment.model_validate(
                {**segments[index].model_dump(exclude_unset=True), "text": text},
            )
        transcript_text = TRANSCRIPT_SEGMENT_SEPARATOR.join(s.text for s in segments)
        return TranscriptUpdate(transcript_text=transcript_text, speaker_segments=segments)

    if content.transcript_text is None or set(updates) - {None}:
        raise ReserializationFailedError("", "transcript shape changed")
    return TranscriptUpdate(transcript_text=updates.get(None, content.transcript_text))


def reserialize_analysis(
    analysis: GeneratedAnalysis,
    updates: Mapping[FieldPath, str],
) -> str | dict[str, Any] | list[Any]:
    """Apply new field values to one analysis and return its new content."""
    if analysis.content is None:
        raise ReserializationFailedError("", "analysis has no content")
    updated: Any = analysis.content
    for path, value in updates.items():
        updated = set_field_value(updated, path, value)
    return updated
