"""
Django signals for the screening application.

Any change to a word rule table (StopWord, KeyWord, KeyWordCode) moves that
table's generation counter so compiled matchers are rebuilt on next use.
The counter moves only once the change is committed; a rolled-back change
leaves it alone.
"""

from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from screening.models import KeyWord, KeyWordCode, StopWord
from screening.services.word_matcher import bump_rule_generation


def _bump_on_commit(model, using):
    transaction.on_commit(lambda: bump_rule_generation(model), using=using)


@receiver(post_save, sender=StopWord)
@receiver(post_delete, sender=StopWord)
def stop_word_changed(sender, instance, using, **kwargs):
    _bump_on_commit(StopWord, using)


@receiver(post_save, sender=KeyWord)
@receiver(post_delete, sender=KeyWord)
def key_word_changed(sender, instance, using, **kwargs):
    _bump_on_commit(KeyWord, using)


@receiver(post_save, sender=KeyWordCode)
@receiver(post_delete, sender=KeyWordCode)
def key_word_code_changed(sender, instance, using, **kwargs):
    """Code changes count as keyword rule changes."""
    _bump_on_commit(KeyWord, using)
