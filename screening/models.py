"""
Django models for the Parcel Screening Service.

Models: Register, Parcel, StopWord, KeyWord, KeyWordCode, CodeOrder,
        CodePrefix, CodePrefixException, CatalogueCode, ParcelStopWord,
        ParcelKeyWord, ParcelCodePrefix, ScreeningJob

Parcels are a tagged union: one table, a ``kind`` discriminator and
subtype-only columns (``tracking_code`` for WBR parcels, ``posting_number``
for Ozon parcels). Link tables are rebuilt from scratch on every screening.
"""

import uuid
from datetime import timedelta

from django.core.validators import RegexValidator
from django.db import models
from django.utils import timezone


COMMODITY_CODE_LENGTH = 10

commodity_code_validator = RegexValidator(
    regex=r"^\d{10}$",
    message="Commodity code must consist of exactly 10 digits",
)


class ParcelKind(models.TextChoices):
    """Parcel subtypes handled by the service."""

    WBR = "wbr", "WBR"
    OZON = "ozon", "Ozon"


class WordMatchType(models.IntegerChoices):
    """Match strategies for word rules.

    Values at or above MORPHOLOGY_THRESHOLD are delegated to the morphology
    matcher; the rest are compiled by the word rule matcher.
    """

    EXACT_SYMBOLS = 1, "Exact symbols"
    EXACT_WORD = 11, "Exact word"
    PHRASE = 21, "Phrase"
    WEAK_MORPHOLOGY = 41, "Weak morphology"
    STRONG_MORPHOLOGY = 51, "Strong morphology"


MORPHOLOGY_THRESHOLD = WordMatchType.WEAK_MORPHOLOGY


class CheckStatus(models.IntegerChoices):
    """
    Outcome of parcel screening.

    Every value in [HAS_ISSUES, NO_ISSUES) means the parcel is held for
    manual review. Blocking sub-codes are 128 plus a bit mask:
    1 = code prefix, 2 = stop word, 8 = invalid code format.
    """

    NOT_CHECKED = 1, "Not checked"
    HAS_ISSUES = 101, "Has issues"
    BLOCKED_BY_CODE_PREFIX = 129, "Blocked by commodity code"
    BLOCKED_BY_STOP_WORD = 130, "Blocked by stop word"
    BLOCKED_BY_CODE_PREFIX_AND_STOP_WORD = 131, "Blocked by commodity code and stop word"
    BLOCKED_BY_INVALID_CODE_FORMAT = 136, "Invalid commodity code format"
    BLOCKED_BY_INVALID_CODE_FORMAT_AND_STOP_WORD = 138, "Invalid commodity code format and stop word"
    MARKED_BY_PARTNER = 200, "Marked by partner"
    NO_ISSUES = 201, "No issues"
    APPROVED = 301, "Approved"
    APPROVED_WITH_EXCISE = 399, "Approved with excise"

    @classmethod
    def has_issues(cls, value: int) -> bool:
        """Return True if the value lies in the half-open has-issues band."""
        return cls.HAS_ISSUES <= value < cls.NO_ISSUES


class ScreeningJobKind(models.TextChoices):
    """What a register re-screening job recomputes."""

    FULL = "full", "Words and commodity codes"
    WORDS = "words", "Stop words and keywords"
    CODES = "codes", "Commodity code prefixes"


class ScreeningJobStatus(models.TextChoices):
    """Status of a register re-screening job."""

    PENDING = "pending", "Pending"
    RUNNING = "running", "Running"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"


ACTIVE_JOB_STATUSES = (ScreeningJobStatus.PENDING, ScreeningJobStatus.RUNNING)


class Register(models.Model):
    """An imported shipment register; holds parcels of a single kind."""

    name = models.CharField(max_length=255)
    parcel_kind = models.CharField(
        max_length=10, choices=ParcelKind.choices, default=ParcelKind.WBR
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "registers"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.name} ({self.parcel_kind})"


class Parcel(models.Model):
    """
    A single shipment record.

    ``kind`` selects which subtype-only column is meaningful. Screening
    mutates ``check_status_id`` and the link tables; manual review mutates
    ``status_id``.
    """

    register = models.ForeignKey(
        Register, on_delete=models.CASCADE, related_name="parcels"
    )
    kind = models.CharField(max_length=10, choices=ParcelKind.choices)

    status_id = models.IntegerField(default=1)
    check_status_id = models.IntegerField(
        default=CheckStatus.NOT_CHECKED, choices=CheckStatus.choices
    )

    commodity_code = models.CharField(max_length=20, blank=True, null=True)
    product_name = models.TextField(blank=True, null=True)
    description = models.TextField(blank=True, null=True)

    # WBR only
    tracking_code = models.CharField(max_length=64, blank=True, null=True)
    # Ozon only
    posting_number = models.CharField(max_length=64, blank=True, null=True)

    stop_words = models.ManyToManyField(
        "StopWord", through="ParcelStopWord", related_name="parcels"
    )
    key_words = models.ManyToManyField(
        "KeyWord", through="ParcelKeyWord", related_name="parcels"
    )
    code_prefixes = models.ManyToManyField(
        "CodePrefix", through="ParcelCodePrefix", related_name="parcels"
    )

    class Meta:
        db_table = "parcels"
        indexes = [
            models.Index(fields=["commodity_code"], name="parcels_commodi_5b8e21_idx"),
            models.Index(
                fields=["register", "check_status_id", "id"],
                name="parcels_registe_c7a0f4_idx",
            ),
        ]

    def __str__(self):
        return f"Parcel {self.id} ({self.kind}) {self.commodity_code or '-'}"

    @property
    def is_marked_by_partner(self) -> bool:
        return self.check_status_id == CheckStatus.MARKED_BY_PARTNER

    def screened_texts(self):
        """Texts screened against word rules, in evaluation order."""
        texts = [self.product_name or ""]
        if self.kind == ParcelKind.WBR and self.description and self.description.strip():
            texts.append(self.description)
        return texts


class WordRule(models.Model):
    """Abstract base for configured words with a declared match strategy."""

    word = models.CharField(max_length=255, unique=True)
    match_type = models.IntegerField(
        choices=WordMatchType.choices, default=WordMatchType.EXACT_SYMBOLS
    )

    class Meta:
        abstract = True
        ordering = ["word"]

    def __str__(self):
        return f"{self.word} ({self.get_match_type_display()})"

    @property
    def is_morphology(self) -> bool:
        return self.match_type >= MORPHOLOGY_THRESHOLD


class StopWord(WordRule):
    """A word whose presence in a parcel's text puts the parcel on hold."""

    class Meta(WordRule.Meta):
        db_table = "stop_words"


class KeyWord(WordRule):
    """A word that implies one or more commodity codes."""

    class Meta(WordRule.Meta):
        db_table = "key_words"


class KeyWordCode(models.Model):
    """Commodity code implied by a keyword."""

    key_word = models.ForeignKey(
        KeyWord, on_delete=models.CASCADE, related_name="codes"
    )
    code = models.CharField(
        max_length=COMMODITY_CODE_LENGTH, validators=[commodity_code_validator]
    )

    class Meta:
        db_table = "key_word_codes"
        unique_together = ["key_word", "code"]
        indexes = [
            models.Index(fields=["code"], name="key_word_co_code_9a1c5b_idx"),
        ]

    def __str__(self):
        return f"{self.key_word.word} -> {self.code}"


class CodeOrder(models.Model):
    """Regulatory order a group of prefix rules comes from; can be switched off."""

    title = models.CharField(max_length=500)
    url = models.CharField(max_length=500, blank=True)
    comment = models.TextField(blank=True)
    enabled = models.BooleanField(default=True)

    class Meta:
        db_table = "code_orders"

    def __str__(self):
        return self.title


class CodePrefix(models.Model):
    """
    Commodity-code prefix rule.

    When both ``low_value`` and ``high_value`` are non-zero the rule is an
    inclusive numeric range; otherwise it is a literal prefix.
    """

    code = models.CharField(max_length=COMMODITY_CODE_LENGTH)
    interval_code = models.CharField(
        max_length=COMMODITY_CODE_LENGTH, blank=True, null=True
    )
    description = models.TextField(blank=True)
    comment = models.TextField(blank=True)
    order = models.ForeignKey(
        CodeOrder,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="prefixes",
    )

    class Meta:
        db_table = "code_prefixes"
        indexes = [
            models.Index(fields=["code"], name="code_prefix_code_2d4e7a_idx"),
        ]

    def __str__(self):
        if self.interval_code:
            return f"{self.code}-{self.interval_code}"
        return self.code

    @staticmethod
    def _padded_value(code) -> int:
        if not code:
            return 0
        padded = code.ljust(COMMODITY_CODE_LENGTH, "0")
        if not padded.isascii() or not padded.isdigit():
            return 0
        return int(padded)

    @property
    def low_value(self) -> int:
        return self._padded_value(self.code)

    @property
    def high_value(self) -> int:
        return self._padded_value(self.interval_code)

    @property
    def has_range(self) -> bool:
        return self.low_value != 0 and self.high_value != 0


class CodePrefixException(models.Model):
    """Code prefix that vetoes a match of its parent prefix rule."""

    prefix = models.ForeignKey(
        CodePrefix, on_delete=models.CASCADE, related_name="exceptions"
    )
    code = models.CharField(max_length=COMMODITY_CODE_LENGTH)

    class Meta:
        db_table = "code_prefix_exceptions"

    def __str__(self):
        return f"{self.prefix} except {self.code}"


class CatalogueCodeQuerySet(models.QuerySet):
    def valid_on(self, day):
        """Codes in force on the given day."""
        return self.filter(
            models.Q(valid_from__isnull=True) | models.Q(valid_from__lte=day),
            models.Q(valid_to__isnull=True) | models.Q(valid_to__gt=day),
        )

    def current(self):
        return self.valid_on(timezone.localdate())


class CatalogueCode(models.Model):
    """An existing commodity code from the official classification."""

    code = models.CharField(
        max_length=COMMODITY_CODE_LENGTH, validators=[commodity_code_validator]
    )
    name = models.TextField(blank=True)
    valid_from = models.DateField(null=True, blank=True)
    valid_to = models.DateField(null=True, blank=True)

    objects = CatalogueCodeQuerySet.as_manager()

    class Meta:
        db_table = "catalogue_codes"
        indexes = [
            models.Index(fields=["code"], name="catalogue_c_code_6f3b1e_idx"),
        ]

    def __str__(self):
        return f"{self.code} {self.name[:50]}"


class ParcelStopWord(models.Model):
    parcel = models.ForeignKey(
        Parcel, on_delete=models.CASCADE, related_name="stop_word_links"
    )
    stop_word = models.ForeignKey(
        StopWord, on_delete=models.CASCADE, related_name="parcel_links"
    )

    class Meta:
        db_table = "parcel_stop_words"
        unique_together = ["parcel", "stop_word"]


class ParcelKeyWord(models.Model):
    parcel = models.ForeignKey(
        Parcel, on_delete=models.CASCADE, related_name="key_word_links"
    )
    key_word = models.ForeignKey(
        KeyWord, on_delete=models.CASCADE, related_name="parcel_links"
    )

    class Meta:
        db_table = "parcel_key_words"
        unique_together = ["parcel", "key_word"]


class ParcelCodePrefix(models.Model):
    parcel = models.ForeignKey(
        Parcel, on_delete=models.CASCADE, related_name="code_prefix_links"
    )
    prefix = models.ForeignKey(
        CodePrefix, on_delete=models.CASCADE, related_name="parcel_links"
    )

    class Meta:
        db_table = "parcel_code_prefixes"
        unique_together = ["parcel", "prefix"]


class ScreeningJob(models.Model):
    """
    Progress record of a register re-screening.

    Created when a re-screening is requested; updated by the worker between
    parcels. ``cancel_requested`` is polled by the worker between parcels.
    """

    handle = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    register = models.ForeignKey(
        Register, on_delete=models.CASCADE, related_name="screening_jobs"
    )
    kind = models.CharField(
        max_length=10, choices=ScreeningJobKind.choices, default=ScreeningJobKind.FULL
    )
    status = models.CharField(
        max_length=20,
        choices=ScreeningJobStatus.choices,
        default=ScreeningJobStatus.PENDING,
    )

    total = models.IntegerField(default=0)
    processed = models.IntegerField(default=0)
    finished = models.BooleanField(default=False)
    error = models.TextField(blank=True, null=True)
    cancel_requested = models.BooleanField(default=False)

    created_at = models.DateTimeField(default=timezone.now)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "screening_jobs"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["register", "status"], name="screening_j_registe_4e2b9d_idx"),
        ]

    def __str__(self):
        return f"Screening {self.handle} - register {self.register_id} ({self.status})"

    @property
    def duration_seconds(self):
        """Calculate job duration."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def is_stale(self, time_limit: int) -> bool:
        """True if the job has been in flight longer than ``time_limit`` seconds."""
        if self.finished:
            return False
        since = self.started_at or self.created_at
        return timezone.now() - since > timedelta(seconds=time_limit)

    def start(self, total: int):
        """Mark job as started."""
        self.status = ScreeningJobStatus.RUNNING
        self.total = total
        self.started_at = timezone.now()
        self.save(update_fields=["status", "total", "started_at"])

    def complete(self, status: str, error_message: str = None):
        """Mark job as finished with the given terminal status."""
        self.status = status
        self.finished = True
        self.completed_at = timezone.now()
        if error_message:
            self.error = error_message
        self.save(update_fields=["status", "finished", "completed_at", "error"])
