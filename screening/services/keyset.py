"""
Keyset cursor resolver.

Given a sort field, sort order, filters and the id of the row currently shown,
returns the next row of the filtered, sorted parcel set of a register.

- Rows are ordered by (key, id); id breaks ties in the same direction as key.
- The cursor row is loaded ignoring filters, so a cursor that no longer passes
  the filters still anchors its position.
- A cursor that does not exist anchors before the first row.
- Stored-column keys are resolved in the database with a keyset predicate and
  LIMIT 1. ``matchPriority`` is computed per row in Python.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from django.db.models import F, Q, QuerySet, Value
from django.db.models.functions import Coalesce

from screening.models import CheckStatus, Parcel, ParcelKind
from screening.services.match_ranking import load_catalogue, match_priority

logger = logging.getLogger(__name__)

ALL_KINDS = (ParcelKind.WBR, ParcelKind.OZON)
PRIORITY_CHUNK_SIZE = 2000


@dataclass(frozen=True)
class SortField:
    name: str
    column: Optional[str]
    kinds: Tuple[str, ...] = ALL_KINDS
    text: bool = False

    @property
    def computed(self) -> bool:
        return self.column is None


SORT_FIELDS: Dict[str, SortField] = {
    field.name.lower(): field
    for field in (
        SortField("id", "id"),
        SortField("statusId", "status_id"),
        SortField("checkStatusId", "check_status_id"),
        SortField("commodityCode", "commodity_code", text=True),
        SortField("trackingCode", "tracking_code", kinds=(ParcelKind.WBR,), text=True),
        SortField("postingNumber", "posting_number", kinds=(ParcelKind.OZON,), text=True),
        SortField("matchPriority", None),
    )
}


@dataclass
class ParcelFilters:
    """Optional, conjunctive parcel filters."""

    status_id: Optional[int] = None
    check_status_id: Optional[int] = None
    commodity_code: Optional[str] = None
    with_issues: bool = False

    def apply(self, queryset: QuerySet) -> QuerySet:
        if self.status_id is not None:
            queryset = queryset.filter(status_id=self.status_id)
        if self.check_status_id is not None:
            queryset = queryset.filter(check_status_id=self.check_status_id)
        if self.commodity_code and self.commodity_code.strip():
            queryset = queryset.filter(commodity_code__icontains=self.commodity_code.strip())
        if self.with_issues:
            queryset = queryset.filter(
                check_status_id__gte=CheckStatus.HAS_ISSUES,
                check_status_id__lt=CheckStatus.NO_ISSUES,
            )
        return queryset


def resolve_sort_field(kind: str, sort_field: Optional[str]) -> Optional[SortField]:
    """Sort field for a parcel kind, or None if unknown or not applicable."""
    field = SORT_FIELDS.get((sort_field or "").strip().lower())
    if field is None or kind not in field.kinds:
        return None
    return field


def is_valid_sort_field(kind: str, sort_field: Optional[str]) -> bool:
    return resolve_sort_field(kind, sort_field) is not None


def _is_descending(sort_order: Optional[str]) -> bool:
    return (sort_order or "").strip().lower() == "desc"


def _column_key(field: SortField):
    if field.text:
        return Coalesce(F(field.column), Value(""))
    return F(field.column)


def _next_by_column(
    candidates: QuerySet,
    field: SortField,
    cursor: Optional[Parcel],
    descending: bool,
) -> Optional[Parcel]:
    queryset = candidates.annotate(sort_key=_column_key(field))

    if cursor is not None:
        key = getattr(cursor, field.column)
        if field.text and key is None:
            key = ""
        if descending:
            queryset = queryset.filter(Q(sort_key__lt=key) | Q(sort_key=key, id__lt=cursor.id))
        else:
            queryset = queryset.filter(Q(sort_key__gt=key) | Q(sort_key=key, id__gt=cursor.id))

    if descending:
        queryset = queryset.order_by("-sort_key", "-id")
    else:
        queryset = queryset.order_by("sort_key", "id")
    return queryset.first()


def _next_by_priority(
    candidates: QuerySet,
    cursor: Optional[Parcel],
    descending: bool,
) -> Optional[Parcel]:
    catalogue = load_catalogue()

    anchor = None
    if cursor is not None:
        anchor = (int(match_priority(cursor, catalogue)), cursor.id)

    queryset = candidates.prefetch_related("key_word_links__key_word__codes").order_by("id")

    best = None
    best_key = None
    for parcel in queryset.iterator(chunk_size=PRIORITY_CHUNK_SIZE):
        key = (int(match_priority(parcel, catalogue)), parcel.id)
        if anchor is not None:
            if descending and key >= anchor:
                continue
            if not descending and key <= anchor:
                continue
        if best_key is None or (key > best_key if descending else key < best_key):
            best, best_key = parcel, key
    return best


def next_parcel(
    kind: str,
    register_id: int,
    filters: Optional[ParcelFilters] = None,
    sort_field: str = "id",
    sort_order: str = "asc",
    cursor_id: Optional[int] = None,
) -> Optional[Parcel]:
    """
    Return the parcel that follows ``cursor_id`` in the requested order.

    Args:
        kind: Parcel kind (wbr or ozon)
        register_id: Register the parcels belong to
        filters: Optional filters; None means no filtering
        sort_field: Sort field name, case-insensitive
        sort_order: "asc" or "desc", case-insensitive; anything else is asc
        cursor_id: Id of the current row; None or a missing id starts at the top

    Returns:
        The next Parcel, or None when there is none or the sort field is not
        valid for ``kind`` (use is_valid_sort_field to tell these apart).
    """
    field = resolve_sort_field(kind, sort_field)
    if field is None:
        logger.debug(f"Sort field {sort_field!r} is not valid for {kind} parcels")
        return None

    descending = _is_descending(sort_order)
    base = Parcel.objects.filter(kind=kind, register_id=register_id)

    cursor = None
    if cursor_id is not None:
        cursor_queryset = base.filter(pk=cursor_id)
        if field.computed:
            cursor_queryset = cursor_queryset.prefetch_related("key_word_links__key_word__codes")
        cursor = cursor_queryset.first()

    candidates = (filters or ParcelFilters()).apply(base)

    if field.computed:
        return _next_by_priority(candidates, cursor, descending)
    return _next_by_column(candidates, field, cursor, descending)
