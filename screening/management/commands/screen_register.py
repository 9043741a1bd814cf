"""
Management command to re-screen the parcels of a register.

Usage:
    python manage.py screen_register 42                # Queue a full re-screening
    python manage.py screen_register 42 --kind=words   # Stop words and keywords only
    python manage.py screen_register 42 --kind=codes --sync  # Run in this process
"""

from django.core.management.base import BaseCommand, CommandError

from screening.exceptions import ScreeningAlreadyRunning
from screening.models import Register, ScreeningJobKind, ScreeningJobStatus
from screening.services.register_screening import (
    get_screening_progress,
    run_screening_job,
    start_register_screening,
)


class Command(BaseCommand):
    help = "Re-screen the parcels of a register against word and commodity code rules"

    def add_arguments(self, parser):
        parser.add_argument("register_id", type=int, help="Register to re-screen")
        parser.add_argument(
            "--kind",
            type=str,
            default=ScreeningJobKind.FULL.value,
            choices=[choice.value for choice in ScreeningJobKind],
            help="What to recompute: full, words or codes (default: full)",
        )
        parser.add_argument(
            "--sync",
            action="store_true",
            help="Run the job in this process instead of queueing it",
        )

    def handle(self, *args, **options):
        register_id = options["register_id"]
        kind = options["kind"]
        sync = options["sync"]

        try:
            job = start_register_screening(register_id, kind, run_async=not sync)
        except Register.DoesNotExist:
            raise CommandError(f"Register {register_id} does not exist")
        except ScreeningAlreadyRunning as e:
            raise CommandError(str(e))

        self.stdout.write(f"Screening {job.handle} ({kind}) for register {register_id}")

        if not sync:
            self.stdout.write(self.style.SUCCESS("Queued"))
            return

        if job.status == ScreeningJobStatus.PENDING:
            job = run_screening_job(job.handle)

        progress = get_screening_progress(job.handle)
        summary = f"{progress.processed}/{progress.total} parcels, status {progress.status}"
        if progress.error:
            raise CommandError(f"Screening failed after {summary}: {progress.error}")
        self.stdout.write(self.style.SUCCESS(f"Done: {summary}"))
