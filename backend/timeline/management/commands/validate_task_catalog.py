from django.core.management.base import BaseCommand, CommandError

from timeline.dependencies import validate_catalog
from timeline.models import Task


class Command(BaseCommand):
    help = "Check the task catalog for unknown prerequisites and dependency cycles"

    def handle(self, *args, **options):
        tasks = [task.to_ref() for task in Task.objects.all()]
        problems = validate_catalog(tasks)
        for problem in problems:
            self.stderr.write(problem)
        if problems:
            raise CommandError(f"{len(problems)} problems found in {len(tasks)} tasks")
        self.stdout.write(self.style.SUCCESS(f"Task catalog OK ({len(tasks)} tasks)"))
