"""
Daily suggestion refresh.

Re-runs the rule engine for every athlete and surfaces pending
suggestions. Meant to be scheduled once a day (cron or similar). A failure
for one athlete is logged and counted; the rest are still refreshed.
"""

import logging

from django.core.management.base import BaseCommand, CommandError

from timeline import services
from timeline.models import AthleteProfile

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Re-evaluate suggestion rules for every athlete and surface pending suggestions"

    def add_arguments(self, parser):
        parser.add_argument('--athlete', type=int, help='Only refresh this athlete id')
        parser.add_argument(
            '--no-surface',
            action='store_true',
            help='Store new suggestions without surfacing any',
        )

    def handle(self, *args, **options):
        athletes = AthleteProfile.objects.order_by('pk')
        if options['athlete'] is not None:
            athletes = athletes.filter(pk=options['athlete'])
            if not athletes.exists():
                raise CommandError(f"Athlete {options['athlete']} not found")

        refreshed = created = surfaced = failures = failed_athletes = 0
        for athlete in athletes:
            try:
                generation = services.trigger_suggestion_update(athlete, 'daily_refresh')
                if not options['no_surface']:
                    surfaced += len(services.surface_pending_suggestions(athlete))
            except Exception:
                logger.exception("Suggestion refresh failed for athlete %s", athlete.pk)
                failed_athletes += 1
                continue
            refreshed += 1
            created += len(generation.created)
            failures += len(generation.failures)

        message = (
            f"Refreshed {refreshed} athletes: {created} created, {surfaced} surfaced, "
            f"{failures} rule failures, {failed_athletes} failed athletes"
        )
        if failed_athletes:
            self.stdout.write(self.style.WARNING(message))
        else:
            self.stdout.write(self.style.SUCCESS(message))
