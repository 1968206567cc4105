import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)

APPOINTMENT_CREATED = 'appointment.created'
APPOINTMENT_UPDATED = 'appointment.updated'
BILL_UPDATED = 'bill.updated'
MESSAGE_SENT = 'message.sent'


def clinic_group(doctor_id: int) -> str:
    return f"clinic.{doctor_id}"


def _send(doctor_id: int, event: str, payload: dict) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    message = {'type': 'clinic.event', 'event': event, 'ts': timezone.now().isoformat(), **payload}
    try:
        async_to_sync(channel_layer.group_send)(clinic_group(doctor_id), message)
    except Exception:
        # runs after commit, never raises
        logger.exception('clinic event broadcast failed event=%s doctor=%s', event, doctor_id)


def publish(doctor_id: int, event: str, **payload) -> None:
    """Push ``event`` to the clinic's WebSocket group once the transaction commits."""
    transaction.on_commit(lambda: _send(doctor_id, event, payload))
