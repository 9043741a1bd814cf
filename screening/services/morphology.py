"""
Morphology port.

Rules declared with a morphology match type (WeakMorphology, StrongMorphology)
are matched by an external engine that knows word derivation. The service only
talks to it through ``MorphologyMatcher``; the concrete class is chosen with
the SCREENING_MORPHOLOGY_BACKEND setting.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, Set

from django.conf import settings
from django.utils.module_loading import import_string

from screening.exceptions import MorphologyBackendError

logger = logging.getLogger(__name__)


class MorphologyMatcher(ABC):
    """Interface of the external morphology engine."""

    @abstractmethod
    def initialize_context(self, words: Iterable) -> Any:
        """
        Prepare a lookup context for a rule set.

        Args:
            words: Word rules (StopWord or KeyWord instances). Implementations
                pick the ones whose match type they support.

        Returns:
            Opaque context passed back to check_text.
        """

    @abstractmethod
    def check_text(self, context: Any, text: str) -> Set[int]:
        """Return ids of the rules in ``context`` that match ``text``."""


class NullMorphologyMatcher(MorphologyMatcher):
    """Default backend: no morphology support, never matches."""

    def initialize_context(self, words: Iterable) -> Any:
        return None

    def check_text(self, context: Any, text: str) -> Set[int]:
        return set()


def get_morphology_matcher() -> MorphologyMatcher:
    """
    Instantiate the configured morphology backend.

    Raises:
        MorphologyBackendError: the dotted path cannot be imported or does not
            name a MorphologyMatcher subclass.
    """
    path = settings.SCREENING_MORPHOLOGY_BACKEND
    try:
        backend_class = import_string(path)
    except ImportError as e:
        raise MorphologyBackendError(f"Cannot load morphology backend {path}: {e}") from e

    if not (isinstance(backend_class, type) and issubclass(backend_class, MorphologyMatcher)):
        raise MorphologyBackendError(f"{path} is not a MorphologyMatcher")

    logger.debug(f"Using morphology backend {path}")
    return backend_class()
