import django.core.validators
import django.db.models.deletion
import django.utils.timezone
import uuid
from django.db import migrations, models


CODE_VALIDATOR = django.core.validators.RegexValidator(
    message="Commodity code must consist of exactly 10 digits", regex="^\\d{10}$"
)

PARCEL_KIND_CHOICES = [("wbr", "WBR"), ("ozon", "Ozon")]

MATCH_TYPE_CHOICES = [
    (1, "Exact symbols"),
    (11, "Exact word"),
    (21, "Phrase"),
    (41, "Weak morphology"),
    (51, "Strong morphology"),
]

CHECK_STATUS_CHOICES = [
    (1, "Not checked"),
    (101, "Has issues"),
    (129, "Blocked by commodity code"),
    (130, "Blocked by stop word"),
    (131, "Blocked by commodity code and stop word"),
    (136, "Invalid commodity code format"),
    (138, "Invalid commodity code format and stop word"),
    (200, "Marked by partner"),
    (201, "No issues"),
    (301, "Approved"),
    (399, "Approved with excise"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Register",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("parcel_kind", models.CharField(choices=PARCEL_KIND_CHOICES, default="wbr", max_length=10)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "db_table": "registers",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="StopWord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("word", models.CharField(max_length=255, unique=True)),
                ("match_type", models.IntegerField(choices=MATCH_TYPE_CHOICES, default=1)),
            ],
            options={
                "db_table": "stop_words",
                "ordering": ["word"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="KeyWord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("word", models.CharField(max_length=255, unique=True)),
                ("match_type", models.IntegerField(choices=MATCH_TYPE_CHOICES, default=1)),
            ],
            options={
                "db_table": "key_words",
                "ordering": ["word"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="CodeOrder",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=500)),
                ("url", models.CharField(blank=True, max_length=500)),
                ("comment", models.TextField(blank=True)),
                ("enabled", models.BooleanField(default=True)),
            ],
            options={
                "db_table": "code_orders",
            },
        ),
        migrations.CreateModel(
            name="CatalogueCode",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=10, validators=[CODE_VALIDATOR])),
                ("name", models.TextField(blank=True)),
                ("valid_from", models.DateField(blank=True, null=True)),
                ("valid_to", models.DateField(blank=True, null=True)),
            ],
            options={
                "db_table": "catalogue_codes",
                "indexes": [models.Index(fields=["code"], name="catalogue_c_code_6f3b1e_idx")],
            },
        ),
        migrations.CreateModel(
            name="CodePrefix",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=10)),
                ("interval_code", models.CharField(blank=True, max_length=10, null=True)),
                ("description", models.TextField(blank=True)),
                ("comment", models.TextField(blank=True)),
                (
                    "order",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="prefixes",
                        to="screening.codeorder",
                    ),
                ),
            ],
            options={
                "db_table": "code_prefixes",
                "indexes": [models.Index(fields=["code"], name="code_prefix_code_2d4e7a_idx")],
            },
        ),
        migrations.CreateModel(
            name="CodePrefixException",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=10)),
                (
                    "prefix",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="exceptions",
                        to="screening.codeprefix",
                    ),
                ),
            ],
            options={
                "db_table": "code_prefix_exceptions",
            },
        ),
        migrations.CreateModel(
            name="KeyWordCode",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=10, validators=[CODE_VALIDATOR])),
                (
                    "key_word",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="codes",
                        to="screening.keyword",
                    ),
                ),
            ],
            options={
                "db_table": "key_word_codes",
                "indexes": [models.Index(fields=["code"], name="key_word_co_code_9a1c5b_idx")],
                "unique_together": {("key_word", "code")},
            },
        ),
        migrations.CreateModel(
            name="Parcel",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("kind", models.CharField(choices=PARCEL_KIND_CHOICES, max_length=10)),
                ("status_id", models.IntegerField(default=1)),
                ("check_status_id", models.IntegerField(choices=CHECK_STATUS_CHOICES, default=1)),
                ("commodity_code", models.CharField(blank=True, max_length=20, null=True)),
                ("product_name", models.TextField(blank=True, null=True)),
                ("description", models.TextField(blank=True, null=True)),
                ("tracking_code", models.CharField(blank=True, max_length=64, null=True)),
                ("posting_number", models.CharField(blank=True, max_length=64, null=True)),
                (
                    "register",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="parcels",
                        to="screening.register",
                    ),
                ),
            ],
            options={
                "db_table": "parcels",
                "indexes": [
                    models.Index(fields=["commodity_code"], name="parcels_commodi_5b8e21_idx"),
                    models.Index(fields=["register", "check_status_id", "id"], name="parcels_registe_c7a0f4_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ParcelStopWord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "parcel",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stop_word_links",
                        to="screening.parcel",
                    ),
                ),
                (
                    "stop_word",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="parcel_links",
                        to="screening.stopword",
                    ),
                ),
            ],
            options={
                "db_table": "parcel_stop_words",
                "unique_together": {("parcel", "stop_word")},
            },
        ),
        migrations.CreateModel(
            name="ParcelKeyWord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "key_word",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="parcel_links",
                        to="screening.keyword",
                    ),
                ),
                (
                    "parcel",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="key_word_links",
                        to="screening.parcel",
                    ),
                ),
            ],
            options={
                "db_table": "parcel_key_words",
                "unique_together": {("parcel", "key_word")},
            },
        ),
        migrations.CreateModel(
            name="ParcelCodePrefix",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "parcel",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="code_prefix_links",
                        to="screening.parcel",
                    ),
                ),
                (
                    "prefix",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="parcel_links",
                        to="screening.codeprefix",
                    ),
                ),
            ],
            options={
                "db_table": "parcel_code_prefixes",
                "unique_together": {("parcel", "prefix")},
            },
        ),
        migrations.AddField(
            model_name="parcel",
            name="stop_words",
            field=models.ManyToManyField(
                related_name="parcels", through="screening.ParcelStopWord", to="screening.stopword"
            ),
        ),
        migrations.AddField(
            model_name="parcel",
            name="key_words",
            field=models.ManyToManyField(
                related_name="parcels", through="screening.ParcelKeyWord", to="screening.keyword"
            ),
        ),
        migrations.AddField(
            model_name="parcel",
            name="code_prefixes",
            field=models.ManyToManyField(
                related_name="parcels", through="screening.ParcelCodePrefix", to="screening.codeprefix"
            ),
        ),
        migrations.CreateModel(
            name="ScreeningJob",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("handle", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("full", "Words and commodity codes"),
                            ("words", "Stop words and keywords"),
                            ("codes", "Commodity code prefixes"),
                        ],
                        default="full",
                        max_length=10,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("running", "Running"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("total", models.IntegerField(default=0)),
                ("processed", models.IntegerField(default=0)),
                ("finished", models.BooleanField(default=False)),
                ("error", models.TextField(blank=True, null=True)),
                ("cancel_requested", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "register",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="screening_jobs",
                        to="screening.register",
                    ),
                ),
            ],
            options={
                "db_table": "screening_jobs",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["register", "status"], name="screening_j_registe_4e2b9d_idx")],
            },
        ),
    ]
