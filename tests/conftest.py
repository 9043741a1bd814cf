"""
Pytest configuration and fixtures for the Parcel Screening test suite.
"""

import pytest


@pytest.fixture(scope="session")
def django_db_setup(django_db_blocker):
    """Configure the test database and run migrations."""
    from django.core.management import call_command

    with django_db_blocker.unblock():
        call_command("migrate", verbosity=0)


@pytest.fixture(autouse=True)
def reset_rule_cache():
    """Start every test with no rule generations and no compiled matchers."""
    from django.core.cache import cache
    from screening.services.word_matcher import clear_matcher_cache

    cache.clear()
    clear_matcher_cache()
    yield
    cache.clear()
    clear_matcher_cache()


@pytest.fixture
def register(db):
    """Create a register of WBR parcels."""
    from screening.models import Register, ParcelKind

    return Register.objects.create(name="WBR register", parcel_kind=ParcelKind.WBR)


@pytest.fixture
def ozon_register(db):
    """Create a register of Ozon parcels."""
    from screening.models import Register, ParcelKind

    return Register.objects.create(name="Ozon register", parcel_kind=ParcelKind.OZON)


@pytest.fixture
def make_parcel(db):
    """Factory creating parcels in a register; kind follows the register."""
    from screening.models import Parcel

    def _make(register, **fields):
        fields.setdefault("kind", register.parcel_kind)
        return Parcel.objects.create(register=register, **fields)

    return _make


@pytest.fixture
def stop_word(db):
    """Factory creating stop words."""
    from screening.models import StopWord, WordMatchType

    def _make(word, match_type=WordMatchType.EXACT_SYMBOLS):
        return StopWord.objects.create(word=word, match_type=match_type)

    return _make


@pytest.fixture
def key_word(db):
    """Factory creating keywords with linked commodity codes."""
    from screening.models import KeyWord, KeyWordCode, WordMatchType

    def _make(word, codes=(), match_type=WordMatchType.EXACT_WORD):
        kw = KeyWord.objects.create(word=word, match_type=match_type)
        for code in codes:
            KeyWordCode.objects.create(key_word=kw, code=code)
        return kw

    return _make


@pytest.fixture
def code_prefix(db):
    """Factory creating commodity code prefix rules."""
    from screening.models import CodePrefix, CodePrefixException

    def _make(code, interval_code=None, exceptions=(), order=None):
        prefix = CodePrefix.objects.create(code=code, interval_code=interval_code, order=order)
        for exception in exceptions:
            CodePrefixException.objects.create(prefix=prefix, code=exception)
        return prefix

    return _make
