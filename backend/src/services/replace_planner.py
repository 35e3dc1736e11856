"""
Plans and computes replacements for a set of targeted matches.

Replacements for one field are applied in a single pass sorted descending by
start offset, so a splice never shifts the offsets of spans still to be
applied. A field either gets every targeted span replaced or nothing.
"""
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from schemas.find_replace import FilterScope, ResultBucket
from services.content_adapter import Provenance, TextField
from services.exceptions import ReserializationFailedError
from services.match_engine import FieldMatch
from services.scope_filter import is_in_scope

logger = logging.getLogger(__name__)

_BUCKET_CATEGORIES = {
    "summary": "summary",
    "transcript": "transcript",
    "ai_assets": "ai_asset",
}


@dataclass(frozen=True)
class ReplaceSpan:
    """One [start, end) span of a field to substitute."""

    match_id: str
    start: int
    end: int
    matched_text: str


@dataclass
class FieldPlan:
    """All replacements for one field, sorted descending by start offset."""

    field: TextField
    spans: list[ReplaceSpan] = field(default_factory=list)

    @property
    def provenance(self) -> Provenance:
        return self.field.provenance


@dataclass
class ReplacePlan:
    """Replacements grouped by field, in field order."""

    field_plans: list[FieldPlan] = field(default_factory=list)

    @property
    def match_count(self) -> int:
        return sum(len(p.spans) for p in self.field_plans)


def select_targets(
    field_matches: Sequence[FieldMatch],
    replace_all: bool = False,
    match_ids: Iterable[str] | None = None,
    categories: Iterable[ResultBucket] | None = None,
    scope: FilterScope | None = None,
) -> list[FieldMatch]:
    """
    Choose which freshly found matches to replace.

    Precedence is replace_all, then categories, then match_ids. Requested ids
    that are not among the fresh matches are dropped without error: content may
    have changed since the caller searched.
    """
    if replace_all:
        targets = list(field_matches)
    elif categories:
        wanted = {_BUCKET_CATEGORIES[c] for c in categories}
        targets = [fm for fm in field_matches if fm.match.category in wanted]
    elif match_ids:
        requested = set(match_ids)
        targets = [fm for fm in field_matches if fm.match.id in requested]
        stale = len(requested) - len(targets)
        if stale:
            logger.debug("Dropped %d match ids not present in current content", stale)
    else:
        targets = []

    if scope is not None:
        targets = [fm for fm in targets if is_in_scope(fm.match, scope)]
    return targets


def build_replace_plan(targets: Iterable[FieldMatch]) -> ReplacePlan:
    """
    Group targeted matches by field and order each field's spans for splicing.

    Raises:
        ReserializationFailedError: If spans overlap or a span no longer matches
            the field value it was found in.
    """
    plans: dict[Provenance, FieldPlan] = {}
    for target in targets:
        plan = plans.setdefault(target.field.provenance, FieldPlan(field=target.field))
        match = target.match
        plan.spans.append(
            ReplaceSpan(
                match_id=match.id,
                start=match.start_offset,
                end=match.end_offset,
                matched_text=match.matched_text,
            ),
        )

    for plan in plans.values():
        plan.spans.sort(key=lambda span: span.start, reverse=True)
        _validate_spans(plan)
    return ReplacePlan(field_plans=list(plans.values()))


def _validate_spans(plan: FieldPlan) -> None:
    value = plan.field.raw_value
    previous_start = len(value)
    for span in plan.spans:
        if span.end > previous_start:
            raise ReserializationFailedError(
                plan.provenance.field_path, f"overlapping replacement at offset {span.start}",
            )
        if value[span.start:span.end] != span.matched_text:
            raise ReserializationFailedError(
                plan.provenance.field_path, f"text changed at offset {span.start}",
            )
        previous_start = span.start


def splice(value: str, spans: Sequence[ReplaceSpan], replace_text: str) -> str:
    """
    Substitute replace_text over each span.

    Spans must be sorted descending by start; each splice then leaves the
    offsets of the remaining (earlier) spans intact.
    """
    for span in spans:
        value = value[:span.start] + replace_text + value[span.end:]
    return value


def apply_field_plan(plan: FieldPlan, replace_text: str) -> str:
    """Compute the new value of one field."""
    return splice(plan.field.raw_value, plan.spans, replace_text)
