"""
Tests for match priority ranking.
"""

from datetime import timedelta

import pytest
from django.utils import timezone

from screening.models import CatalogueCode, ParcelKeyWord
from screening.services.match_ranking import (
    MatchPriority,
    load_catalogue,
    match_priority,
    match_priority_display,
    rank,
    to_display_tier,
)

CODE = "1234567890"
OTHER = "0987654321"
THIRD = "1111111111"


class TestRank:
    """All eight tiers of the ranking table."""

    @pytest.mark.parametrize(
        "linked, in_catalogue, expected",
        [
            ([[CODE]], False, 1),
            ([[CODE, OTHER]], False, 2),
            ([[OTHER]], True, 3),
            ([[OTHER, THIRD]], True, 4),
            ([[OTHER]], False, 5),
            ([[OTHER, THIRD]], False, 6),
            ([], True, 7),
            ([], False, 8),
        ],
    )
    def test_tiers(self, linked, in_catalogue, expected):
        catalogue = {CODE} if in_catalogue else set()
        assert rank(CODE, linked, catalogue) == expected

    def test_union_across_keywords(self):
        # Two keywords pointing at the same code count as one distinct code
        assert rank(CODE, [[CODE], [CODE]], set()) == MatchPriority.SINGLE_CODE_MATCH
        assert rank(CODE, [[OTHER], [CODE]], set()) == MatchPriority.MULTIPLE_CODES_MATCH

    def test_matched_tiers_ignore_catalogue(self):
        assert rank(CODE, [[CODE]], {CODE}) == 1
        assert rank(CODE, [[CODE, OTHER]], {CODE}) == 2

    def test_keywords_without_codes(self):
        assert rank(CODE, [[]], {CODE}) == MatchPriority.NO_MATCH

    @pytest.mark.parametrize("code", [None, "", "   "])
    def test_blank_code(self, code):
        assert rank(code, [[""]], {""}) == MatchPriority.SINGLE_CODE_UNKNOWN
        assert rank(code, [], {""}) == MatchPriority.NO_MATCH


class TestDisplayTier:
    """Six-tier view derived from the eight-tier value."""

    @pytest.mark.parametrize(
        "priority, display",
        [(1, 1), (2, 2), (3, 3), (5, 3), (4, 4), (6, 4), (7, 5), (8, 6)],
    )
    def test_mapping(self, priority, display):
        assert to_display_tier(priority) == display

    def test_invalid_priority(self):
        with pytest.raises(ValueError):
            to_display_tier(9)


class TestStoredParcel:
    """Ranking a parcel from its stored keyword links."""

    @pytest.mark.django_db
    def test_match_priority_from_links(self, register, make_parcel, key_word):
        parcel = make_parcel(register, commodity_code=CODE)
        kw = key_word("pistol", codes=[CODE])
        ParcelKeyWord.objects.create(parcel=parcel, key_word=kw)

        assert match_priority(parcel) == MatchPriority.SINGLE_CODE_MATCH
        assert match_priority_display(parcel) == 1

    @pytest.mark.django_db
    def test_catalogue_loaded_when_not_given(self, register, make_parcel):
        parcel = make_parcel(register, commodity_code=CODE)
        CatalogueCode.objects.create(code=CODE, name="Known code")

        assert match_priority(parcel) == MatchPriority.NO_KEYWORDS_KNOWN
        assert match_priority(parcel, catalogue=set()) == MatchPriority.NO_MATCH
        assert match_priority_display(parcel) == 5

    @pytest.mark.django_db
    def test_catalogue_respects_validity(self):
        today = timezone.localdate()
        CatalogueCode.objects.create(code=CODE)
        CatalogueCode.objects.create(code=OTHER, valid_to=today)
        CatalogueCode.objects.create(code=THIRD, valid_from=today + timedelta(days=1))
        CatalogueCode.objects.create(code="2222222222", valid_from=today, valid_to=today + timedelta(days=1))

        assert load_catalogue() == {CODE, "2222222222"}
