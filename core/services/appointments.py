import logging

from django.db import transaction

from core.exceptions import Conflict
from core.models import Appointment, User
from core.services import events
from core.services.patients import touch_last_visit

logger = logging.getLogger(__name__)


def find_overlap(doctor_id: int, date, start, end, *, exclude_id=None):
    """Return a scheduled appointment of the doctor overlapping ``[start, end)``."""
    qs = Appointment.objects.filter(
        doctor_id=doctor_id, date=date, status=Appointment.STATUS_SCHEDULED,
        start_time__lt=end, end_time__gt=start,
    )
    if exclude_id:
        qs = qs.exclude(pk=exclude_id)
    return qs.order_by('start_time').first()


def _check_slot(appt: Appointment) -> None:
    if appt.status != Appointment.STATUS_SCHEDULED:
        return
    # serialise bookings of this doctor
    User.objects.select_for_update().filter(pk=appt.doctor_id).first()
    clash = find_overlap(appt.doctor_id, appt.date, appt.start_time, appt.end_time, exclude_id=appt.pk)
    if clash is not None:
        raise Conflict(
            f"Time slot overlaps {clash.patient_name} "
            f"({clash.start_time:%H:%M}-{clash.end_time:%H:%M})."
        )


def _after_status(appt: Appointment) -> None:
    if appt.status == Appointment.STATUS_COMPLETED:
        touch_last_visit(appt.patient, appt.date)


def _payload(appt: Appointment) -> dict:
    return {'appointment_id': appt.pk, 'patient_id': appt.patient_id, 'date': appt.date.isoformat(),
            'status': appt.status}


@transaction.atomic
def create_appointment(doctor, data: dict) -> Appointment:
    patient = data['patient']
    appt = Appointment(doctor=doctor, patient_name=patient.full_name, **data)
    _check_slot(appt)
    appt.save()
    _after_status(appt)
    events.publish(doctor.pk, events.APPOINTMENT_CREATED, **_payload(appt))
    logger.info('appointment created id=%s doctor=%s', appt.pk, doctor.pk)
    return appt


@transaction.atomic
def update_appointment(appt: Appointment, data: dict) -> Appointment:
    patient = data.get('patient')
    if patient is not None and patient.pk != appt.patient_id:
        appt.patient_name = patient.full_name
    for k, v in data.items():
        setattr(appt, k, v)
    _check_slot(appt)
    appt.save()
    _after_status(appt)
    events.publish(appt.doctor_id, events.APPOINTMENT_UPDATED, **_payload(appt))
    return appt


def set_status(appt: Appointment, status: str) -> Appointment:
    return update_appointment(appt, {'status': status})
