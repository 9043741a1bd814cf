"""
Parcel screening.

Recomputes a parcel's stop-word, keyword and code-prefix links and decides its
check status from the resulting link state:

    invalid code format          -> BLOCKED_BY_INVALID_CODE_FORMAT (+ _AND_STOP_WORD)
    prefix and/or stop word hit  -> BLOCKED_BY_CODE_PREFIX / _STOP_WORD / _AND_STOP_WORD
    nothing                      -> NO_ISSUES

Keyword links never influence the check status; they feed match ranking.
Parcels marked by the partner are left untouched.

Link rows are replaced (delete then insert) inside one transaction while the
parcel row is locked, so concurrent re-screens of a parcel serialize.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from django.db import transaction

from screening.models import (
    CheckStatus,
    KeyWord,
    Parcel,
    ParcelCodePrefix,
    ParcelKeyWord,
    ParcelStopWord,
    StopWord,
)
from screening.services.code_classifier import (
    ClassificationStatus,
    CodePrefixContext,
    classify,
    is_valid_code_format,
)
from screening.services.morphology import MorphologyMatcher, get_morphology_matcher
from screening.services.word_matcher import WordRuleMatcher, get_matcher

logger = logging.getLogger(__name__)


@dataclass
class ScreeningContext:
    """
    Everything screening needs, loaded once and reused across parcels.

    Parts that a job does not need are left as None.
    """

    stop_words: Optional[WordRuleMatcher] = None
    key_words: Optional[WordRuleMatcher] = None
    prefixes: Optional[CodePrefixContext] = None
    morphology: Optional[MorphologyMatcher] = None
    stop_words_morphology: Any = None
    key_words_morphology: Any = None

    @classmethod
    def load(cls, words: bool = True, codes: bool = True) -> "ScreeningContext":
        context = cls()
        if words:
            context.stop_words = get_matcher(StopWord)
            context.key_words = get_matcher(KeyWord)
            context.morphology = get_morphology_matcher()
            context.stop_words_morphology = context.morphology.initialize_context(
                context.stop_words.morphology_rules
            )
            context.key_words_morphology = context.morphology.initialize_context(
                context.key_words.morphology_rules
            )
        if codes:
            context.prefixes = CodePrefixContext.load()
        return context

    @property
    def has_words(self) -> bool:
        return self.stop_words is not None and self.key_words is not None

    @property
    def has_codes(self) -> bool:
        return self.prefixes is not None


@dataclass
class ScreeningOutcome:
    """Result of screening one parcel."""

    parcel_id: int
    check_status_id: int
    stop_word_ids: List[int] = field(default_factory=list)
    key_word_ids: List[int] = field(default_factory=list)
    prefix_ids: List[int] = field(default_factory=list)
    invalid_code: bool = False
    skipped: bool = False

    @property
    def has_issues(self) -> bool:
        return CheckStatus.has_issues(self.check_status_id)


def decide_check_status(invalid_code: bool, has_stop_words: bool, has_prefixes: bool) -> int:
    """Map the link state of a parcel to its check status."""
    if invalid_code:
        if has_stop_words:
            return CheckStatus.BLOCKED_BY_INVALID_CODE_FORMAT_AND_STOP_WORD
        return CheckStatus.BLOCKED_BY_INVALID_CODE_FORMAT
    if has_prefixes and has_stop_words:
        return CheckStatus.BLOCKED_BY_CODE_PREFIX_AND_STOP_WORD
    if has_prefixes:
        return CheckStatus.BLOCKED_BY_CODE_PREFIX
    if has_stop_words:
        return CheckStatus.BLOCKED_BY_STOP_WORD
    return CheckStatus.NO_ISSUES


def find_rules(
    matcher: WordRuleMatcher,
    morphology: Optional[MorphologyMatcher],
    morphology_context: Any,
    texts: Iterable[str],
) -> list:
    """
    Rules matching any of ``texts``, deduplicated by rule id.

    Compiled matches and morphology matches are merged; morphology ids that
    are not part of the compiled rule set are ignored.
    """
    found: Dict[int, object] = {}
    for text in texts:
        if not text:
            continue
        for rule in matcher.matching_words(text):
            found.setdefault(rule.id, rule)
        if morphology is None:
            continue
        for rule_id in morphology.check_text(morphology_context, text):
            rule = matcher.rules_by_id.get(rule_id)
            if rule is not None:
                found.setdefault(rule_id, rule)
    return list(found.values())


def _replace_links(link_model, parcel: Parcel, field_name: str, ids: List[int]) -> None:
    link_model.objects.filter(parcel=parcel).delete()
    if ids:
        link_model.objects.bulk_create(
            [link_model(parcel=parcel, **{f"{field_name}_id": pk}) for pk in ids]
        )


def _screen(parcel: Parcel, context: ScreeningContext, words: bool, codes: bool) -> ScreeningOutcome:
    with transaction.atomic():
        locked = Parcel.objects.select_for_update().get(pk=parcel.pk)

        if locked.is_marked_by_partner:
            logger.debug(f"Parcel {locked.id} is marked by partner, skipping")
            return ScreeningOutcome(
                parcel_id=locked.id,
                check_status_id=locked.check_status_id,
                skipped=True,
            )

        outcome = ScreeningOutcome(parcel_id=locked.id, check_status_id=locked.check_status_id)

        if words:
            texts = locked.screened_texts()
            stop_words = find_rules(
                context.stop_words, context.morphology, context.stop_words_morphology, texts
            )
            key_words = find_rules(
                context.key_words, context.morphology, context.key_words_morphology, texts
            )
            outcome.stop_word_ids = [rule.id for rule in stop_words]
            outcome.key_word_ids = [rule.id for rule in key_words]
            _replace_links(ParcelStopWord, locked, "stop_word", outcome.stop_word_ids)
            _replace_links(ParcelKeyWord, locked, "key_word", outcome.key_word_ids)
        else:
            outcome.stop_word_ids = list(
                locked.stop_word_links.values_list("stop_word_id", flat=True)
            )
            outcome.key_word_ids = list(
                locked.key_word_links.values_list("key_word_id", flat=True)
            )

        if codes:
            result = classify(locked.commodity_code, context.prefixes)
            outcome.invalid_code = result.status_hint == ClassificationStatus.INVALID_FORMAT
            outcome.prefix_ids = result.matched_ids
            _replace_links(ParcelCodePrefix, locked, "prefix", outcome.prefix_ids)
        else:
            outcome.invalid_code = not is_valid_code_format(locked.commodity_code)
            outcome.prefix_ids = list(
                locked.code_prefix_links.values_list("prefix_id", flat=True)
            )

        outcome.check_status_id = decide_check_status(
            invalid_code=outcome.invalid_code,
            has_stop_words=bool(outcome.stop_word_ids),
            has_prefixes=bool(outcome.prefix_ids),
        )
        if locked.check_status_id != outcome.check_status_id:
            locked.check_status_id = outcome.check_status_id
            locked.save(update_fields=["check_status_id"])

    parcel.check_status_id = outcome.check_status_id
    logger.debug(
        f"Screened parcel {outcome.parcel_id}: status={outcome.check_status_id} "
        f"stop_words={len(outcome.stop_word_ids)} key_words={len(outcome.key_word_ids)} "
        f"prefixes={len(outcome.prefix_ids)}"
    )
    return outcome


def screen_parcel(parcel: Parcel, context: Optional[ScreeningContext] = None) -> ScreeningOutcome:
    """
    Screen a parcel against word rules and commodity code prefixes.

    Args:
        parcel: Parcel to screen; its check_status_id is updated in place
        context: Preloaded rules; loaded from the store when omitted

    Returns:
        ScreeningOutcome with the new check status and link ids
    """
    if context is None or not (context.has_words and context.has_codes):
        context = ScreeningContext.load()
    return _screen(parcel, context, words=True, codes=True)


def screen_parcel_words(parcel: Parcel, context: Optional[ScreeningContext] = None) -> ScreeningOutcome:
    """Recompute stop-word and keyword links only; prefix links are kept."""
    if context is None or not context.has_words:
        context = ScreeningContext.load(words=True, codes=False)
    return _screen(parcel, context, words=True, codes=False)


def screen_parcel_codes(parcel: Parcel, context: Optional[ScreeningContext] = None) -> ScreeningOutcome:
    """Recompute code-prefix links only; word links are kept."""
    if context is None or not context.has_codes:
        context = ScreeningContext.load(words=False, codes=True)
    return _screen(parcel, context, words=False, codes=True)
