"""
Tests for the word rule compiler and matcher.
"""

import pytest
from django.db import transaction

from screening.models import KeyWord, KeyWordCode, StopWord, WordMatchType
from screening.services.word_matcher import (
    WordRuleMatcher,
    bump_rule_generation,
    exact_word_pattern,
    get_matcher,
    phrase_pattern,
    rule_generation,
)


def rule(pk, word, match_type):
    return StopWord(id=pk, word=word, match_type=match_type)


def matched_ids(matcher, text):
    return [r.id for r in matcher.matching_words(text)]


class TestExactSymbols:
    """Case-insensitive substring containment."""

    def test_substring_matches_inside_word(self):
        matcher = WordRuleMatcher([rule(1, "cat", WordMatchType.EXACT_SYMBOLS)])
        assert matched_ids(matcher, "Category of goods") == [1]

    def test_case_insensitive(self):
        matcher = WordRuleMatcher([rule(1, "ЛИТИЙ", WordMatchType.EXACT_SYMBOLS)])
        assert matched_ids(matcher, "батарея литий-ионная") == [1]

    def test_empty_word_ignored(self):
        matcher = WordRuleMatcher([rule(1, "", WordMatchType.EXACT_SYMBOLS)])
        assert matched_ids(matcher, "anything") == []
        assert matcher.skipped == 1


class TestExactWord:
    """Whole-word matching with letter/digit/underscore/hyphen as word characters."""

    @pytest.fixture
    def matcher(self):
        return WordRuleMatcher([rule(1, "cat", WordMatchType.EXACT_WORD)])

    def test_does_not_match_inside_longer_word(self, matcher):
        assert matched_ids(matcher, "category") == []

    def test_matches_at_text_boundaries(self, matcher):
        assert matched_ids(matcher, "cat") == [1]
        assert matched_ids(matcher, "black cat") == [1]
        assert matched_ids(matcher, "cat food") == [1]

    def test_matches_next_to_punctuation(self, matcher):
        assert matched_ids(matcher, "toy (cat), plush") == [1]
        assert matched_ids(matcher, "cat.") == [1]

    def test_hyphen_is_a_word_character(self, matcher):
        assert matched_ids(matcher, "cat-toy") == []
        assert matched_ids(matcher, "bob_cat") == []

    def test_case_insensitive(self, matcher):
        assert matched_ids(matcher, "Big CAT") == [1]

    def test_word_is_trimmed_and_escaped(self):
        matcher = WordRuleMatcher([rule(1, "  c++ ", WordMatchType.EXACT_WORD)])
        assert matched_ids(matcher, "learn c++ now") == [1]

    def test_blank_word_skipped(self):
        assert exact_word_pattern("   ") is None

    def test_cyrillic_word_boundaries(self):
        matcher = WordRuleMatcher([rule(1, "нож", WordMatchType.EXACT_WORD)])
        assert matched_ids(matcher, "кухонный нож") == [1]
        assert matched_ids(matcher, "ножницы") == []


class TestPhrase:
    """Token sequences separated by one or more boundary characters."""

    def test_matches_with_varied_separators(self):
        matcher = WordRuleMatcher([rule(1, "lithium battery", WordMatchType.PHRASE)])
        assert matched_ids(matcher, "LITHIUM,  battery pack") == [1]
        assert matched_ids(matcher, "lithium / battery") == [1]

    def test_tokens_must_be_adjacent(self):
        matcher = WordRuleMatcher([rule(1, "lithium battery", WordMatchType.PHRASE)])
        assert matched_ids(matcher, "lithium ion battery") == []

    def test_anchored_at_word_boundaries(self):
        matcher = WordRuleMatcher([rule(1, "air gun", WordMatchType.PHRASE)])
        assert matched_ids(matcher, "hair gun") == []
        assert matched_ids(matcher, "air guns") == []

    def test_phrase_without_tokens_is_skipped(self):
        assert phrase_pattern(" , ; ") is None
        matcher = WordRuleMatcher([rule(1, " ,; ", WordMatchType.PHRASE)])
        assert matcher.skipped == 1
        assert matched_ids(matcher, ", ;") == []


class TestMatcher:
    """Bucket compilation and result assembly."""

    def test_morphology_rules_not_compiled(self):
        matcher = WordRuleMatcher([
            rule(1, "knife", WordMatchType.WEAK_MORPHOLOGY),
            rule(2, "knife", WordMatchType.STRONG_MORPHOLOGY),
        ])
        assert matched_ids(matcher, "knife") == []
        assert [r.id for r in matcher.morphology_rules] == [1, 2]

    def test_union_of_strategies_each_rule_once(self):
        matcher = WordRuleMatcher([
            rule(1, "gun", WordMatchType.EXACT_SYMBOLS),
            rule(2, "air gun", WordMatchType.PHRASE),
            rule(3, "air", WordMatchType.EXACT_WORD),
            rule(4, "rifle", WordMatchType.EXACT_WORD),
        ])
        assert sorted(matched_ids(matcher, "air gun, gun oil")) == [1, 2, 3]

    def test_empty_text(self):
        matcher = WordRuleMatcher([rule(1, "cat", WordMatchType.EXACT_SYMBOLS)])
        assert matcher.matching_words("") == []
        assert matcher.matching_words(None) == []


class TestMatcherCache:
    """Compiled matchers cached per rule-set generation."""

    @pytest.mark.django_db(transaction=True)
    def test_same_generation_reuses_matcher(self, stop_word):
        stop_word("cat")
        assert get_matcher(StopWord) is get_matcher(StopWord)

    @pytest.mark.django_db(transaction=True)
    def test_rule_change_recompiles(self, stop_word):
        stop_word("cat")
        first = get_matcher(StopWord)
        assert matched_ids(first, "dog") == []

        stop_word("dog")
        second = get_matcher(StopWord)
        assert second is not first
        assert len(matched_ids(second, "dog")) == 1

    @pytest.mark.django_db(transaction=True)
    def test_delete_recompiles(self, stop_word):
        word = stop_word("cat")
        assert len(get_matcher(StopWord).rules) == 1

        word.delete()
        assert get_matcher(StopWord).rules == []

    @pytest.mark.django_db(transaction=True)
    def test_key_word_code_change_moves_key_word_generation(self, key_word):
        kw = key_word("socks")
        before = rule_generation(KeyWord)

        KeyWordCode.objects.create(key_word=kw, code="6115950000")

        assert rule_generation(KeyWord) > before

    @pytest.mark.django_db(transaction=True)
    def test_generations_are_per_table(self, stop_word):
        key_generation = rule_generation(KeyWord)
        stop_word("cat")
        assert rule_generation(KeyWord) == key_generation

    def test_bump_moves_generation(self):
        before = rule_generation(StopWord)
        assert bump_rule_generation(StopWord) > before
        assert rule_generation(StopWord) > before


class TestMatcherCacheTransactions:
    """Rule changes reach cached matchers only once committed."""

    @pytest.mark.django_db(transaction=True)
    def test_rolled_back_rule_is_not_cached(self):
        with pytest.raises(RuntimeError):
            with transaction.atomic():
                StopWord.objects.create(word="phantom", match_type=WordMatchType.EXACT_WORD)
                inside = get_matcher(StopWord)
                assert [r.word for r in inside.matching_words("phantom item")] == ["phantom"]
                raise RuntimeError("rolled back")

        assert StopWord.objects.count() == 0
        assert get_matcher(StopWord).matching_words("phantom item") == []

    @pytest.mark.django_db(transaction=True)
    def test_generation_moves_only_after_commit(self):
        before = rule_generation(StopWord)
        with transaction.atomic():
            StopWord.objects.create(word="knife", match_type=WordMatchType.EXACT_WORD)
            assert rule_generation(StopWord) == before

        assert rule_generation(StopWord) > before

    @pytest.mark.django_db(transaction=True)
    def test_matcher_compiled_before_commit_is_replaced(self):
        stale = get_matcher(StopWord)
        with transaction.atomic():
            StopWord.objects.create(word="knife", match_type=WordMatchType.EXACT_WORD)
            generation = rule_generation(StopWord)
        fresh = get_matcher(StopWord)

        assert rule_generation(StopWord) > generation
        assert stale.matching_words("kitchen knife") == []
        assert fresh is not stale
        assert [r.word for r in fresh.matching_words("kitchen knife")] == ["knife"]
