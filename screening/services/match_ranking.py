"""
Match priority ranking.

Ranks how well a parcel's declared commodity code agrees with the codes its
matched keywords point to. Lower is better. One computation yields the
8-tier value; the 6-tier display view is derived from it.

    tier  keywords  distinct codes  own code among them  own code in catalogue
    1     yes       1               yes                  -
    2     yes       > 1             yes                  -
    3     yes       1               no                   yes
    4     yes       > 1             no                   yes
    5     yes       1               no                   no
    6     yes       > 1             no                   no
    7     no        -               -                    yes
    8     otherwise
"""

import logging
from enum import IntEnum
from typing import Container, Iterable, List, Optional, Set

from screening.models import CatalogueCode

logger = logging.getLogger(__name__)


class MatchPriority(IntEnum):
    SINGLE_CODE_MATCH = 1
    MULTIPLE_CODES_MATCH = 2
    SINGLE_CODE_KNOWN = 3
    MULTIPLE_CODES_KNOWN = 4
    SINGLE_CODE_UNKNOWN = 5
    MULTIPLE_CODES_UNKNOWN = 6
    NO_KEYWORDS_KNOWN = 7
    NO_MATCH = 8


DISPLAY_TIERS = {
    MatchPriority.SINGLE_CODE_MATCH: 1,
    MatchPriority.MULTIPLE_CODES_MATCH: 2,
    MatchPriority.SINGLE_CODE_KNOWN: 3,
    MatchPriority.SINGLE_CODE_UNKNOWN: 3,
    MatchPriority.MULTIPLE_CODES_KNOWN: 4,
    MatchPriority.MULTIPLE_CODES_UNKNOWN: 4,
    MatchPriority.NO_KEYWORDS_KNOWN: 5,
    MatchPriority.NO_MATCH: 6,
}


def rank(
    parcel_code: Optional[str],
    linked_codes_per_keyword: Iterable[Iterable[str]],
    catalogue: Container[str],
) -> MatchPriority:
    """
    Compute the 8-tier match priority.

    Args:
        parcel_code: The parcel's own commodity code (blank never matches)
        linked_codes_per_keyword: For every keyword matched on the parcel,
            the codes linked to that keyword
        catalogue: Known commodity codes

    Returns:
        MatchPriority tier
    """
    code = (parcel_code or "").strip()
    in_catalogue = bool(code) and code in catalogue

    keywords = list(linked_codes_per_keyword)
    if not keywords:
        return MatchPriority.NO_KEYWORDS_KNOWN if in_catalogue else MatchPriority.NO_MATCH

    union = {linked for codes in keywords for linked in codes}
    if not union:
        return MatchPriority.NO_MATCH

    single = len(union) == 1
    if code and code in union:
        return MatchPriority.SINGLE_CODE_MATCH if single else MatchPriority.MULTIPLE_CODES_MATCH
    if in_catalogue:
        return MatchPriority.SINGLE_CODE_KNOWN if single else MatchPriority.MULTIPLE_CODES_KNOWN
    return MatchPriority.SINGLE_CODE_UNKNOWN if single else MatchPriority.MULTIPLE_CODES_UNKNOWN


def to_display_tier(priority: int) -> int:
    """Collapse an 8-tier value into the 6-tier display view."""
    return DISPLAY_TIERS[MatchPriority(priority)]


def load_catalogue() -> Set[str]:
    """Codes of the catalogue that are in force today."""
    return set(CatalogueCode.objects.current().values_list("code", flat=True))


def linked_codes(parcel) -> List[List[str]]:
    """
    Codes per matched keyword of a stored parcel.

    Uses prefetched ``key_word_links__key_word__codes`` when present.
    """
    return [
        [kw_code.code for kw_code in link.key_word.codes.all()]
        for link in parcel.key_word_links.all()
    ]


def match_priority(parcel, catalogue: Optional[Container[str]] = None) -> MatchPriority:
    """8-tier match priority of a stored parcel."""
    if catalogue is None:
        catalogue = load_catalogue()
    return rank(parcel.commodity_code, linked_codes(parcel), catalogue)


def match_priority_display(parcel, catalogue: Optional[Container[str]] = None) -> int:
    """6-tier match priority of a stored parcel."""
    return to_display_tier(match_priority(parcel, catalogue))
