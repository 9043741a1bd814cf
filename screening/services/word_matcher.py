"""
Word rule compiler and matcher.

Compiles StopWord/KeyWord rules into three buckets by declared match type and
evaluates free text against them:

- ExactSymbols: case-insensitive substring containment
- ExactWord: the trimmed word bounded by start/end of text or by any character
  that is not a letter, digit, underscore or hyphen
- Phrase: the rule's tokens in order, separated by one or more boundary
  characters, bounded the same way as ExactWord

Morphology match types are left to the morphology backend.

Compiled matchers are cached in-process per rule table and invalidated through
a generation counter kept in the Django cache (see screening.signals).
"""

import logging
import re
import threading
import time
from typing import Dict, Iterable, List, Optional, Tuple

from django.conf import settings
from django.core.cache import cache
from django.db import transaction

from screening.models import MORPHOLOGY_THRESHOLD, WordMatchType

logger = logging.getLogger(__name__)

# A boundary character is anything that cannot be part of a word.
BOUNDARY_CLASS = r"[^\w-]"
TOKEN_SPLIT_RE = re.compile(BOUNDARY_CLASS + "+")

# Fixed-width lookarounds: "preceded by start of text or a boundary char".
PATTERN_PREFIX = r"(?<![\w-])"
PATTERN_SUFFIX = r"(?![\w-])"


def exact_word_pattern(word: str) -> Optional[re.Pattern]:
    """Compile the whole-word pattern for ``word``; None for blank words."""
    word = (word or "").strip()
    if not word:
        return None
    return re.compile(PATTERN_PREFIX + re.escape(word) + PATTERN_SUFFIX, re.IGNORECASE)


def phrase_pattern(phrase: str) -> Optional[re.Pattern]:
    """Compile the token-sequence pattern for ``phrase``; None if it has no tokens."""
    tokens = [t for t in TOKEN_SPLIT_RE.split((phrase or "").strip()) if t.strip()]
    if not tokens:
        return None
    body = (BOUNDARY_CLASS + "+").join(re.escape(t) for t in tokens)
    return re.compile(PATTERN_PREFIX + body + PATTERN_SUFFIX, re.IGNORECASE)


class WordRuleMatcher:
    """
    Compiled form of a word rule set.

    ``rules`` keeps every rule passed in, morphology ones included, so callers
    can hand the same set to the morphology backend and resolve its ids.
    """

    def __init__(self, words: Iterable):
        self.rules = list(words)
        self.rules_by_id = {rule.id: rule for rule in self.rules}
        self.exact_symbols: List[Tuple[object, str]] = []
        self.patterns: List[Tuple[object, re.Pattern]] = []
        self.skipped = 0

        for rule in self.rules:
            if rule.match_type >= MORPHOLOGY_THRESHOLD:
                continue

            if rule.match_type == WordMatchType.EXACT_SYMBOLS:
                if rule.word:
                    self.exact_symbols.append((rule, rule.word.casefold()))
                    continue
                pattern = None
            elif rule.match_type == WordMatchType.EXACT_WORD:
                pattern = exact_word_pattern(rule.word)
            elif rule.match_type == WordMatchType.PHRASE:
                pattern = phrase_pattern(rule.word)
            else:
                pattern = None

            if pattern is None:
                self.skipped += 1
                logger.debug(f"Skipping unusable word rule {rule.id}: {rule.word!r}")
                continue
            self.patterns.append((rule, pattern))

    @property
    def morphology_rules(self) -> list:
        return [rule for rule in self.rules if rule.match_type >= MORPHOLOGY_THRESHOLD]

    def matching_words(self, text: Optional[str]) -> list:
        """
        Return the rules matching ``text``.

        Each rule appears at most once, in compilation order.
        """
        if not text:
            return []

        folded = text.casefold()
        result = [rule for rule, word in self.exact_symbols if word in folded]
        result.extend(rule for rule, pattern in self.patterns if pattern.search(text))
        return result


def compile_rules(words: Iterable) -> WordRuleMatcher:
    """Compile a rule set without touching the cache."""
    return WordRuleMatcher(words)


# ============================================================
# Generation-keyed cache
# ============================================================

_compiled: Dict[str, Tuple[int, WordRuleMatcher]] = {}
_compiled_lock = threading.Lock()


def _generation_key(model) -> str:
    return f"screening:rules:{model._meta.label_lower}:generation"


def rule_generation(model) -> int:
    """Current generation of a rule table, initialising the counter if missing."""
    key = _generation_key(model)
    generation = cache.get(key)
    if generation is None:
        # Seeded from the clock so a counter lost to eviction never repeats an old value.
        cache.add(key, int(time.time() * 1000), timeout=settings.SCREENING_RULE_CACHE_TIMEOUT)
        generation = cache.get(key)
    return generation


def bump_rule_generation(model) -> int:
    """Invalidate compiled matchers of ``model`` in every process."""
    key = _generation_key(model)
    try:
        generation = cache.incr(key)
    except ValueError:
        generation = rule_generation(model) + 1
        cache.set(key, generation, timeout=settings.SCREENING_RULE_CACHE_TIMEOUT)
    logger.debug(f"Rule generation for {model._meta.label} is now {generation}")
    return generation


def get_matcher(model) -> WordRuleMatcher:
    """
    Return the compiled matcher for a rule model (StopWord or KeyWord).

    Recompiles when the table's generation moved since the last compilation.
    A matcher compiled inside a transaction is returned but not cached, since
    it may include rule rows that are later rolled back.
    """
    label = model._meta.label_lower
    generation = rule_generation(model)

    with _compiled_lock:
        cached = _compiled.get(label)
        if cached and cached[0] == generation:
            return cached[1]

    matcher = compile_rules(model.objects.all())
    logger.info(
        f"Compiled {len(matcher.rules)} {model._meta.verbose_name_plural} "
        f"(generation {generation}, skipped {matcher.skipped})"
    )

    if transaction.get_connection(model.objects.db).in_atomic_block:
        return matcher

    with _compiled_lock:
        _compiled[label] = (generation, matcher)
    return matcher


def clear_matcher_cache() -> None:
    """Drop every in-process compiled matcher."""
    with _compiled_lock:
        _compiled.clear()
