from django.conf import settings
from django.core.management.base import BaseCommand

from core.services.billing import mark_overdue


class Command(BaseCommand):
    help = "Flip pending bills older than BILL_OVERDUE_DAYS to overdue."

    def add_arguments(self, parser):
        parser.add_argument("--days", type=int, default=None,
                            help=f"age in days (default BILL_OVERDUE_DAYS={settings.BILL_OVERDUE_DAYS})")

    def handle(self, *args, **options):
        updated = mark_overdue(options["days"])
        self.stdout.write(self.style.SUCCESS(f"Marked {updated} bill(s) overdue"))
