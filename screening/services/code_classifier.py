"""
Commodity code range classifier.

Matches a 10-digit commodity code against prefix rules. A rule whose low and
high bounds are both non-zero is an inclusive numeric range; any other rule is
a literal prefix. Exception codes attached to a rule veto it for codes that
start with them.

Usage:
    context = CodePrefixContext.load()
    result = classify(parcel.commodity_code, context)
    if result.status_hint == ClassificationStatus.INVALID_FORMAT:
        ...
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from django.db.models import Q, Prefetch

from screening.models import COMMODITY_CODE_LENGTH, CodePrefix, CodePrefixException

logger = logging.getLogger(__name__)

INDEX_KEY_LENGTH = 2


class ClassificationStatus(str, Enum):
    INVALID_FORMAT = "invalid_format"
    HAS_ISSUES = "has_issues"
    NO_ISSUES = "no_issues"


def is_valid_code_format(code: Optional[str]) -> bool:
    """True for exactly ten ASCII digits."""
    return (
        code is not None
        and len(code) == COMMODITY_CODE_LENGTH
        and code.isascii()
        and code.isdigit()
    )


@dataclass(frozen=True)
class PrefixRule:
    """Immutable snapshot of a CodePrefix with its exception codes."""

    id: int
    code: str
    low: int = 0
    high: int = 0
    exceptions: Tuple[str, ...] = ()

    @classmethod
    def from_model(cls, prefix: CodePrefix) -> "PrefixRule":
        return cls(
            id=prefix.id,
            code=prefix.code,
            low=prefix.low_value,
            high=prefix.high_value,
            exceptions=tuple(e.code for e in prefix.exceptions.all() if e.code),
        )

    @property
    def has_range(self) -> bool:
        return self.low != 0 and self.high != 0

    def matches(self, code: str) -> bool:
        """Match a code already known to be ten digits."""
        if self.has_range:
            if not self.low <= int(code) <= self.high:
                return False
        elif not code.startswith(self.code):
            return False

        return not any(code.startswith(exception) for exception in self.exceptions if exception)


@dataclass
class ClassificationResult:
    matched: List[PrefixRule] = field(default_factory=list)
    status_hint: ClassificationStatus = ClassificationStatus.NO_ISSUES

    @property
    def matched_ids(self) -> List[int]:
        return [rule.id for rule in self.matched]


class CodePrefixContext:
    """
    Prefix rules indexed by their first two characters.

    Rules shorter than two characters are never indexed and so never match.
    """

    def __init__(self, rules: Iterable[PrefixRule] = ()):
        self._index: Dict[str, List[PrefixRule]] = defaultdict(list)
        self.size = 0
        for rule in rules:
            self.add(rule)

    def add(self, rule: PrefixRule) -> None:
        if not rule.code or len(rule.code) < INDEX_KEY_LENGTH:
            return
        self._index[rule.code[:INDEX_KEY_LENGTH]].append(rule)
        self.size += 1

    def candidates(self, code: str) -> List[PrefixRule]:
        return self._index.get(code[:INDEX_KEY_LENGTH], [])

    @classmethod
    def load(cls) -> "CodePrefixContext":
        """
        Build the context from the store.

        Prefixes attached to a disabled order are left out; prefixes without
        an order are always active. Exceptions are loaded in one query.
        """
        prefixes = (
            CodePrefix.objects
            .filter(Q(order__isnull=True) | Q(order__enabled=True))
            .exclude(code="")
            .prefetch_related(
                Prefetch("exceptions", queryset=CodePrefixException.objects.only("id", "prefix_id", "code"))
            )
        )
        context = cls(PrefixRule.from_model(prefix) for prefix in prefixes)
        logger.debug(f"Loaded {context.size} commodity code prefix rules")
        return context


def classify(code: Optional[str], prefix_rules) -> ClassificationResult:
    """
    Classify a commodity code against prefix rules.

    Args:
        code: Commodity code of a parcel (may be None or malformed)
        prefix_rules: CodePrefixContext, or an iterable of PrefixRule

    Returns:
        ClassificationResult; an invalid code short-circuits with
        INVALID_FORMAT and no matches.
    """
    if not is_valid_code_format(code):
        return ClassificationResult(status_hint=ClassificationStatus.INVALID_FORMAT)

    if not isinstance(prefix_rules, CodePrefixContext):
        prefix_rules = CodePrefixContext(prefix_rules)

    matched = [rule for rule in prefix_rules.candidates(code) if rule.matches(code)]
    status = ClassificationStatus.HAS_ISSUES if matched else ClassificationStatus.NO_ISSUES
    return ClassificationResult(matched=matched, status_hint=status)
