"""
Patient endpoints.

Doctors and their staff manage the clinic's patients; platform admins
may read across clinics.  A patient of another clinic is reported as
missing.
"""
from __future__ import annotations

from django.db import transaction
from django.http import HttpResponse
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.response import Response

from core.models import Appointment, Bill, Patient, Prescription, TreatmentProgress
from core.pagination import paginate
from core.permissions import IsClinicMember
from core.serializers.clinical import AppointmentSerializer, BillSerializer, PrescriptionSerializer
from core.serializers.patient import (
    CompletePrescriptionsSerializer, PatientListQuerySerializer, PatientSerializer, SendInfoSerializer,
    TreatmentProgressSerializer,
)
from core.services import patients as patient_service
from core.services.audit import log_action
from core.services.clinic import clinic_owner, get_scoped_or_404, scope_to_clinic
from core.services.messaging import send_patient_info
from core.services.pdf_report import build_report, report_filename


def _patient(request, pk) -> Patient:
    return get_scoped_or_404(request.user, Patient, pk, label='patient')


@api_view(['GET', 'POST'])
@permission_classes([IsClinicMember])
def patient_list(request):
    if request.method == 'POST':
        doctor = clinic_owner(request.user)
        s = PatientSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        patient = patient_service.create_patient(doctor, dict(s.validated_data))
        log_action(user=request.user, action='patient_create', object_type='patient', object_id=patient.pk,
                   request=request)
        return Response(PatientSerializer(patient).data, status=status.HTTP_201_CREATED)

    q = PatientListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = patient_service.filter_patients(
        scope_to_clinic(request.user, Patient.objects.all()),
        search=q.validated_data.get('search', '').strip(),
        status=q.validated_data.get('status', ''),
        ordering=q.validated_data.get('ordering') or '-created_at',
    )
    return paginate(request, qs, PatientSerializer)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsClinicMember])
def patient_detail(request, pk):
    patient = _patient(request, pk)
    if request.method == 'GET':
        return Response(PatientSerializer(patient).data)
    if request.method == 'DELETE':
        clinic_owner(request.user)
        name = patient.full_name
        patient.delete()
        log_action(user=request.user, action='patient_delete', object_type='patient', object_id=pk,
                   request=request)
        return Response({'message': f'Patient {name} deleted successfully'})

    clinic_owner(request.user)
    s = PatientSerializer(patient, data=request.data, partial=request.method == 'PATCH')
    s.is_valid(raise_exception=True)
    patient = patient_service.update_patient(patient, dict(s.validated_data))
    log_action(user=request.user, action='patient_update', object_type='patient', object_id=patient.pk,
               detail={'fields': sorted(s.validated_data)}, request=request)
    return Response(PatientSerializer(patient).data)


@api_view(['GET'])
@permission_classes([IsClinicMember])
def patient_appointments(request, pk):
    patient = _patient(request, pk)
    qs = Appointment.objects.filter(patient=patient).order_by('-date', '-start_time')
    return paginate(request, qs, AppointmentSerializer)


@api_view(['GET'])
@permission_classes([IsClinicMember])
def patient_prescriptions(request, pk):
    patient = _patient(request, pk)
    qs = Prescription.objects.filter(patient=patient).order_by('-created_at', '-id')
    return paginate(request, qs, PrescriptionSerializer)


@api_view(['GET'])
@permission_classes([IsClinicMember])
def patient_bills(request, pk):
    patient = _patient(request, pk)
    qs = Bill.objects.filter(patient=patient).order_by('-created_at', '-id')
    return paginate(request, qs, BillSerializer)


@api_view(['PATCH'])
@permission_classes([IsClinicMember])
def complete_prescriptions(request, pk):
    """Mark every active prescription of the patient completed."""
    patient = _patient(request, pk)
    clinic_owner(request.user)
    s = CompletePrescriptionsSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    updated = patient_service.complete_prescriptions(patient, exclude_id=s.validated_data.get('exclude_id'))
    return Response({'message': 'Previous prescriptions marked as completed', 'success': True,
                     'updated': updated})


@api_view(['POST'])
@permission_classes([IsClinicMember])
def send_info(request, pk):
    patient = _patient(request, pk)
    doctor = clinic_owner(request.user)
    s = SendInfoSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    method = s.validated_data['method']
    log = send_patient_info(doctor, patient, method, s.validated_data['message'],
                            subject=s.validated_data.get('subject', ''))
    log_action(user=request.user, action='patient_send_info', object_type='patient', object_id=patient.pk,
               detail={'method': method, 'message_id': log.pk}, request=request)
    return Response({'message': f'Information sent via {method}'})

send_info.cls.throttle_scope = 'messaging'


@api_view(['GET'])
@permission_classes([IsClinicMember])
def patient_report(request, pk):
    patient = _patient(request, pk)
    prescriptions = Prescription.objects.filter(patient=patient).order_by('-created_at', '-id')
    bills = Bill.objects.filter(patient=patient).order_by('-created_at', '-id')
    brand = patient.doctor.clinic_name or None
    data = build_report(patient, prescriptions, bills, brand=brand)
    resp = HttpResponse(data, content_type='application/pdf')
    resp['Content-Disposition'] = f'attachment; filename="{report_filename(patient)}"'
    return resp


@api_view(['GET', 'POST'])
@permission_classes([IsClinicMember])
def progress_list(request, pk):
    patient = _patient(request, pk)
    if request.method == 'GET':
        return paginate(request, TreatmentProgress.objects.filter(patient=patient), TreatmentProgressSerializer)
    clinic_owner(request.user)
    s = TreatmentProgressSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    with transaction.atomic():
        note = s.save(patient=patient, doctor_id=patient.doctor_id)
        patient_service.touch_last_visit(patient, note.visit_date)
    return Response(TreatmentProgressSerializer(note).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsClinicMember])
def progress_detail(request, pk, note_id):
    patient = _patient(request, pk)
    note = TreatmentProgress.objects.filter(patient=patient, pk=note_id).first()
    if note is None:
        raise NotFound('progress note not found')
    if request.method == 'GET':
        return Response(TreatmentProgressSerializer(note).data)
    clinic_owner(request.user)
    if request.method == 'DELETE':
        note.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
    s = TreatmentProgressSerializer(note, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    s.save()
    return Response(s.data)
