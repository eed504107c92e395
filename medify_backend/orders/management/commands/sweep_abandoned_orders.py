# orders/management/commands/sweep_abandoned_orders.py

from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from orders.services.cleanup import pending_age_minutes, sweep_abandoned_orders


class Command(BaseCommand):
    help = "Mark PENDING_PAYMENT orders older than the pending age threshold as ABANDONED."

    def add_arguments(self, parser):
        parser.add_argument(
            "--age-minutes",
            type=int,
            default=None,
            help="Override ORDERS_PENDING_AGE_MINUTES for this run.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only count candidates, do not change anything.",
        )

    def handle(self, *args, **options):
        age = options.get("age_minutes")
        if age is None:
            age = pending_age_minutes()
        if age < 1:
            raise CommandError("--age-minutes must be >= 1")

        dry_run = bool(options.get("dry_run"))

        self.stdout.write(f"Sweeping orders pending for more than {age} minute(s)...")
        if dry_run:
            self.stdout.write("DRY RUN: no database changes will be saved.")

        result = sweep_abandoned_orders(age_minutes=age, dry_run=dry_run)

        self.stdout.write(
            self.style.SUCCESS(
                f"Done. found={result.found} abandoned={result.succeeded} "
                f"skipped={result.skipped} failed={result.failed}"
            )
        )
