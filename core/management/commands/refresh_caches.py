from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.management.base import BaseCommand
from django.utils import timezone

from core.models import User
from core.services import stats
from core.services.events import clinic_group


class Command(BaseCommand):
    help = "Warm dashboard/report caches for every clinic; broadcast a refresh event."

    def add_arguments(self, parser):
        parser.add_argument("--doctor", type=int, action="append", help="only this clinic (repeatable)")

    def handle(self, *args, **options):
        now = timezone.now()
        doctor_ids = options["doctor"] or list(
            User.objects.filter(role=User.ROLE_DOCTOR, is_active=True).values_list("id", flat=True)
        )
        keys = stats.warm(doctor_ids)
        keys += stats.warm([None])

        channel_layer = get_channel_layer()
        if channel_layer is not None:
            for doctor_id in doctor_ids:
                event = {"type": "clinic.event", "event": "stats.refreshed", "ts": now.isoformat()}
                async_to_sync(channel_layer.group_send)(clinic_group(doctor_id), event)

        self.stdout.write(self.style.SUCCESS(f"Refreshed {len(keys)} keys at {now}"))
