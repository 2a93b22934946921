"""Management command to run the daily tier re-qualification sweep."""

from datetime import date

from django.core.management.base import BaseCommand, CommandError

from rewardman.services.tiers import TierService


class Command(BaseCommand):
    help = "Re-qualify tiers for accounts whose qualification year has ended"

    def add_arguments(self, parser):
        parser.add_argument(
            "--date",
            default=None,
            help="Sweep date as YYYY-MM-DD (defaults to today)",
        )

    def handle(self, *args, **options):
        check_date = None
        if options["date"]:
            try:
                check_date = date.fromisoformat(options["date"])
            except ValueError:
                raise CommandError(f"Invalid date: {options['date']}")

        result = TierService.process_tier_requalification(check_date)

        self.stdout.write(
            self.style.SUCCESS(
                f"Checked {result.checked} accounts: {result.upgraded} upgraded, "
                f"{result.downgraded} downgraded, {result.unchanged} unchanged."
            )
        )
        for error in result.errors:
            self.stderr.write(f"Account {error['account_id']}: {error['error']}")
