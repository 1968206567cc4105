import logging

from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from core.models import Patient, Prescription
from core.services.otp import read_verification_token

logger = logging.getLogger(__name__)


def filter_patients(qs: QuerySet, *, search: str = '', status: str = '', ordering: str = '-created_at') -> QuerySet:
    if search:
        qs = qs.filter(Q(full_name__icontains=search) | Q(mobile_number__icontains=search)
                       | Q(email__icontains=search))
    if status:
        qs = qs.filter(status=status)
    return qs.order_by(ordering, '-id')


def mobile_is_verified(mobile: str, token: str) -> bool:
    return bool(token) and read_verification_token(token) == mobile


@transaction.atomic
def create_patient(doctor, data: dict) -> Patient:
    token = data.pop('verification_token', '')
    patient = Patient(doctor=doctor, **data)
    patient.mobile_verified = mobile_is_verified(patient.mobile_number, token)
    patient.save()
    logger.info('patient created id=%s doctor=%s verified=%s', patient.pk, doctor.pk, patient.mobile_verified)
    return patient


@transaction.atomic
def update_patient(patient: Patient, data: dict) -> Patient:
    token = data.pop('verification_token', '')
    mobile_changed = 'mobile_number' in data and data['mobile_number'] != patient.mobile_number
    for k, v in data.items():
        setattr(patient, k, v)
    if token and mobile_is_verified(patient.mobile_number, token):
        patient.mobile_verified = True
    elif mobile_changed:
        patient.mobile_verified = False
    patient.save()
    return patient


def touch_last_visit(patient: Patient, day=None) -> None:
    day = day or timezone.localdate()
    if patient.last_visit is None or patient.last_visit < day:
        Patient.objects.filter(pk=patient.pk).update(last_visit=day)


def complete_prescriptions(patient: Patient, *, exclude_id=None) -> int:
    qs = Prescription.objects.filter(patient=patient, status=Prescription.STATUS_ACTIVE)
    if exclude_id:
        qs = qs.exclude(pk=exclude_id)
    updated = qs.update(status=Prescription.STATUS_COMPLETED, updated_at=timezone.now())
    logger.info('prescriptions completed patient=%s count=%s', patient.pk, updated)
    return updated
