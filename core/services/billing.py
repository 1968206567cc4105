import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from core.models import Bill
from core.services import events

logger = logging.getLogger(__name__)


def _publish(bill: Bill) -> None:
    events.publish(bill.doctor_id, events.BILL_UPDATED, bill_id=bill.pk, patient_id=bill.patient_id,
                   status=bill.status, amount=bill.amount)


@transaction.atomic
def create_bill(doctor, data: dict) -> Bill:
    bill = Bill.objects.create(doctor=doctor, patient_name=data['patient'].full_name, **data)
    _publish(bill)
    logger.info('bill created id=%s doctor=%s amount=%s', bill.pk, doctor.pk, bill.amount)
    return bill


@transaction.atomic
def update_bill(bill: Bill, data: dict) -> Bill:
    old_status = bill.status
    patient = data.get('patient')
    if patient is not None and patient.pk != bill.patient_id:
        bill.patient_name = patient.full_name
    for k, v in data.items():
        setattr(bill, k, v)
    bill.save()
    if old_status != bill.status:
        logger.info('bill status id=%s %s->%s', bill.pk, old_status, bill.status)
    _publish(bill)
    return bill


def summarize(qs) -> dict:
    agg = qs.aggregate(
        total_paid=Sum('amount', filter=Q(status=Bill.STATUS_PAID)),
        total_pending=Sum('amount', filter=Q(status=Bill.STATUS_PENDING)),
        total_overdue=Sum('amount', filter=Q(status=Bill.STATUS_OVERDUE)),
        count=Count('id'),
    )
    return {k: v or 0 for k, v in agg.items()}


def mark_overdue(days: int | None = None, *, now=None) -> int:
    """Flip pending bills older than ``days`` to overdue; return how many."""
    days = settings.BILL_OVERDUE_DAYS if days is None else days
    cutoff = (now or timezone.now()) - timedelta(days=days)
    stale = Bill.objects.filter(status=Bill.STATUS_PENDING, created_at__lt=cutoff)
    doctor_ids = set(stale.values_list('doctor_id', flat=True))
    updated = stale.update(status=Bill.STATUS_OVERDUE, updated_at=timezone.now())
    for doctor_id in doctor_ids:
        events.publish(doctor_id, events.BILL_UPDATED, status=Bill.STATUS_OVERDUE, bulk=True)
    logger.info('bills marked overdue count=%s cutoff=%s', updated, cutoff.isoformat())
    return updated
