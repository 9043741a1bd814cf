"""
Screening services.

- word_matcher: compiled stop-word/keyword matching
- morphology: port to the external morphology engine
- code_classifier: commodity code prefix/range rules
- match_ranking: keyword-to-code match priority
- parcel_screening: per-parcel screening and check status
- keyset: next-row resolution for sorted, filtered parcel lists
- register_screening: cancellable bulk re-screening jobs
"""

from .parcel_screening import (
    ScreeningContext,
    ScreeningOutcome,
    screen_parcel,
    screen_parcel_words,
    screen_parcel_codes,
)
from .keyset import ParcelFilters, next_parcel, is_valid_sort_field
from .match_ranking import MatchPriority, match_priority, match_priority_display
from .register_screening import (
    ScreeningProgress,
    start_register_screening,
    get_screening_progress,
    cancel_register_screening,
)

__all__ = [
    "ScreeningContext",
    "ScreeningOutcome",
    "screen_parcel",
    "screen_parcel_words",
    "screen_parcel_codes",
    "ParcelFilters",
    "next_parcel",
    "is_valid_sort_field",
    "MatchPriority",
    "match_priority",
    "match_priority_display",
    "ScreeningProgress",
    "start_register_screening",
    "get_screening_progress",
    "cancel_register_screening",
]
