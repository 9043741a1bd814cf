"""
Tests for the keyset cursor resolver.
"""

import pytest

from screening.models import CatalogueCode, CheckStatus, ParcelKeyWord
from screening.services.keyset import ParcelFilters, is_valid_sort_field, next_parcel


def walk(kind, register_id, filters=None, sort_field="id", sort_order="asc", cursor_id=None):
    """Follow next_parcel from ``cursor_id`` until it returns None."""
    ids = []
    parcel = next_parcel(kind, register_id, filters, sort_field, sort_order, cursor_id)
    while parcel is not None:
        ids.append(parcel.id)
        assert len(ids) < 100, "resolver did not terminate"
        parcel = next_parcel(kind, register_id, filters, sort_field, sort_order, parcel.id)
    return ids


class TestSortFields:
    """Sort field validation per parcel kind."""

    @pytest.mark.parametrize("field", ["id", "statusId", "STATUSID", "checkstatusid", "commodityCode", "matchPriority"])
    def test_common_fields(self, field):
        assert is_valid_sort_field("wbr", field)
        assert is_valid_sort_field("ozon", field)

    def test_subtype_fields(self):
        assert is_valid_sort_field("wbr", "trackingCode")
        assert not is_valid_sort_field("ozon", "trackingCode")
        assert is_valid_sort_field("ozon", "postingNumber")
        assert not is_valid_sort_field("wbr", "postingNumber")

    def test_unknown_field(self):
        assert not is_valid_sort_field("wbr", "weight")
        assert not is_valid_sort_field("wbr", None)

    @pytest.mark.django_db
    def test_invalid_field_returns_none(self, register, make_parcel):
        make_parcel(register, commodity_code="1111111111")
        assert next_parcel("wbr", register.id, sort_field="postingNumber") is None
        assert next_parcel("wbr", register.id, sort_field="weight") is None


@pytest.mark.django_db
class TestIdOrdering:
    """Enumeration and cursor anchoring by id."""

    def test_enumerates_all_rows_once(self, register, make_parcel):
        ids = [make_parcel(register).id for _ in range(5)]
        assert walk("wbr", register.id) == ids

    def test_descending(self, register, make_parcel):
        ids = [make_parcel(register).id for _ in range(4)]
        assert walk("wbr", register.id, sort_order="DESC") == list(reversed(ids))

    def test_unknown_sort_order_is_ascending(self, register, make_parcel):
        ids = [make_parcel(register).id for _ in range(3)]
        assert walk("wbr", register.id, sort_order="sideways") == ids

    def test_missing_cursor_returns_first_row(self, register, make_parcel):
        first = make_parcel(register)
        make_parcel(register)
        assert next_parcel("wbr", register.id, cursor_id=999999).id == first.id

    def test_cursor_from_other_register_is_missing(self, register, ozon_register, make_parcel):
        first = make_parcel(register)
        make_parcel(register)
        foreign = make_parcel(ozon_register)
        assert next_parcel("wbr", register.id, cursor_id=foreign.id).id == first.id

    def test_register_and_kind_scoped(self, register, ozon_register, make_parcel):
        own = make_parcel(register)
        make_parcel(ozon_register)
        assert walk("wbr", register.id) == [own.id]
        assert walk("ozon", register.id) == []

    def test_filtered_out_cursor_anchors_position(self, register, make_parcel):
        p10 = make_parcel(register, status_id=1)
        p20 = make_parcel(register, status_id=2)
        p30 = make_parcel(register, status_id=1)

        result = next_parcel("wbr", register.id, ParcelFilters(status_id=1), "id", "asc", p20.id)

        assert result.id == p30.id
        assert p10.id < p20.id < p30.id

    def test_last_row_returns_none(self, register, make_parcel):
        make_parcel(register)
        last = make_parcel(register)
        assert next_parcel("wbr", register.id, cursor_id=last.id) is None


@pytest.mark.django_db
class TestColumnOrdering:
    """Stored-column keys with id tie-break."""

    def test_status_ties_broken_by_id(self, register, make_parcel):
        a = make_parcel(register, status_id=2)
        b = make_parcel(register, status_id=1)
        c = make_parcel(register, status_id=2)
        d = make_parcel(register, status_id=1)

        assert walk("wbr", register.id, sort_field="statusId") == [b.id, d.id, a.id, c.id]
        assert walk("wbr", register.id, sort_field="statusId", sort_order="desc") == [c.id, a.id, d.id, b.id]

    def test_commodity_code_nulls_sort_as_empty(self, register, make_parcel):
        a = make_parcel(register, commodity_code="2222222222")
        b = make_parcel(register, commodity_code=None)
        c = make_parcel(register, commodity_code="1111111111")
        d = make_parcel(register, commodity_code=None)

        assert walk("wbr", register.id, sort_field="commodityCode") == [b.id, d.id, c.id, a.id]
        assert walk("wbr", register.id, sort_field="commoditycode", sort_order="desc") == [a.id, c.id, d.id, b.id]

    def test_tracking_code(self, register, make_parcel):
        a = make_parcel(register, tracking_code="WB-2")
        b = make_parcel(register, tracking_code="WB-1")
        assert walk("wbr", register.id, sort_field="trackingCode") == [b.id, a.id]

    def test_posting_number(self, ozon_register, make_parcel):
        a = make_parcel(ozon_register, posting_number="0002")
        b = make_parcel(ozon_register, posting_number="0001")
        assert walk("ozon", ozon_register.id, sort_field="postingNumber") == [b.id, a.id]

    def test_filtered_out_cursor_with_column_key(self, register, make_parcel):
        a = make_parcel(register, status_id=1, commodity_code="1000000000")
        hidden = make_parcel(register, status_id=2, commodity_code="2000000000")
        c = make_parcel(register, status_id=1, commodity_code="3000000000")
        filters = ParcelFilters(status_id=1)

        assert next_parcel("wbr", register.id, filters, "commodityCode", "asc", hidden.id).id == c.id
        assert next_parcel("wbr", register.id, filters, "commodityCode", "desc", hidden.id).id == a.id


@pytest.mark.django_db
class TestFilters:
    """Conjunctive filters."""

    def test_with_issues_band(self, register, make_parcel):
        below = make_parcel(register, check_status_id=CheckStatus.NOT_CHECKED)
        lower = make_parcel(register, check_status_id=CheckStatus.HAS_ISSUES)
        blocked = make_parcel(register, check_status_id=CheckStatus.BLOCKED_BY_STOP_WORD)
        clean = make_parcel(register, check_status_id=CheckStatus.NO_ISSUES)
        approved = make_parcel(register, check_status_id=CheckStatus.APPROVED)

        ids = walk("wbr", register.id, ParcelFilters(with_issues=True))

        assert ids == [lower.id, blocked.id]
        assert below.id not in ids and clean.id not in ids and approved.id not in ids

    def test_commodity_code_contains(self, register, make_parcel):
        a = make_parcel(register, commodity_code="8471300000")
        make_parcel(register, commodity_code="6109100000")
        b = make_parcel(register, commodity_code="0084710000")
        make_parcel(register, commodity_code=None)

        assert walk("wbr", register.id, ParcelFilters(commodity_code="8471")) == [a.id, b.id]

    def test_filters_combine(self, register, make_parcel):
        make_parcel(register, status_id=1, check_status_id=CheckStatus.NO_ISSUES)
        match = make_parcel(register, status_id=2, check_status_id=CheckStatus.NO_ISSUES)
        make_parcel(register, status_id=2, check_status_id=CheckStatus.BLOCKED_BY_STOP_WORD)

        filters = ParcelFilters(status_id=2, check_status_id=CheckStatus.NO_ISSUES)
        assert walk("wbr", register.id, filters) == [match.id]


@pytest.mark.django_db
class TestMatchPriorityOrdering:
    """Computed matchPriority key."""

    @pytest.fixture
    def ranked(self, register, make_parcel, key_word):
        CatalogueCode.objects.create(code="5555555555")
        single = key_word("socks", codes=["1111111111"])

        tier8 = make_parcel(register, commodity_code="9999999999")
        tier1 = make_parcel(register, commodity_code="1111111111")
        tier7 = make_parcel(register, commodity_code="5555555555")
        tier1b = make_parcel(register, commodity_code="1111111111")
        tier5 = make_parcel(register, commodity_code="2222222222")

        for parcel in (tier1, tier1b, tier5):
            ParcelKeyWord.objects.create(parcel=parcel, key_word=single)

        return tier1, tier1b, tier5, tier7, tier8

    def test_ascending(self, register, ranked):
        tier1, tier1b, tier5, tier7, tier8 = ranked
        assert walk("wbr", register.id, sort_field="matchPriority") == [
            tier1.id, tier1b.id, tier5.id, tier7.id, tier8.id,
        ]

    def test_descending(self, register, ranked):
        tier1, tier1b, tier5, tier7, tier8 = ranked
        assert walk("wbr", register.id, sort_field="MATCHPRIORITY", sort_order="desc") == [
            tier8.id, tier7.id, tier5.id, tier1b.id, tier1.id,
        ]

    def test_filtered_out_cursor(self, register, ranked):
        tier1, tier1b, tier5, tier7, tier8 = ranked
        filters = ParcelFilters(commodity_code="1111")
        assert next_parcel("wbr", register.id, filters, "matchPriority", "asc", tier5.id) is None
        assert next_parcel("wbr", register.id, filters, "matchPriority", "desc", tier5.id).id == tier1b.id
