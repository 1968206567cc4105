from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from core.models import Appointment
from core.pagination import paginate
from core.permissions import IsClinicMember
from core.serializers.clinical import AppointmentQuerySerializer, AppointmentSerializer, AppointmentStatusSerializer
from core.services import appointments as appointment_service
from core.services.audit import log_action
from core.services.clinic import clinic_owner, get_scoped_or_404, scope_to_clinic, serializer_context


@api_view(['GET', 'POST'])
@permission_classes([IsClinicMember])
def appointment_list(request):
    if request.method == 'POST':
        doctor = clinic_owner(request.user)
        s = AppointmentSerializer(data=request.data, context=serializer_context(request))
        s.is_valid(raise_exception=True)
        appt = appointment_service.create_appointment(doctor, dict(s.validated_data))
        log_action(user=request.user, action='appointment_create', object_type='appointment', object_id=appt.pk,
                   request=request)
        return Response(AppointmentSerializer(appt).data, status=status.HTTP_201_CREATED)

    params = request.query_params.dict()
    for src, dst in (('from', 'date_from'), ('to', 'date_to')):
        if src in params:
            params[dst] = params.pop(src)
    q = AppointmentQuerySerializer(data=params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    qs = scope_to_clinic(request.user, Appointment.objects.all())
    if 'date' in vd:
        qs = qs.filter(date=vd['date'])
    if 'date_from' in vd:
        qs = qs.filter(date__gte=vd['date_from'])
    if 'date_to' in vd:
        qs = qs.filter(date__lte=vd['date_to'])
    if 'status' in vd:
        qs = qs.filter(status=vd['status'])
    if 'patient_id' in vd:
        qs = qs.filter(patient_id=vd['patient_id'])
    return paginate(request, qs.order_by('date', 'start_time', 'id'), AppointmentSerializer)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsClinicMember])
def appointment_detail(request, pk):
    appt = get_scoped_or_404(request.user, Appointment, pk, label='appointment')
    if request.method == 'GET':
        return Response(AppointmentSerializer(appt).data)
    clinic_owner(request.user)
    if request.method == 'DELETE':
        appt.delete()
        log_action(user=request.user, action='appointment_delete', object_type='appointment', object_id=pk,
                   request=request)
        return Response({'message': 'Appointment deleted successfully'})
    s = AppointmentSerializer(appt, data=request.data, partial=request.method == 'PATCH',
                              context=serializer_context(request))
    s.is_valid(raise_exception=True)
    appt = appointment_service.update_appointment(appt, dict(s.validated_data))
    return Response(AppointmentSerializer(appt).data)


@api_view(['POST'])
@permission_classes([IsClinicMember])
def appointment_status(request, pk):
    appt = get_scoped_or_404(request.user, Appointment, pk, label='appointment')
    clinic_owner(request.user)
    s = AppointmentStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    old = appt.status
    appt = appointment_service.set_status(appt, s.validated_data['status'])
    log_action(user=request.user, action='appointment_status', object_type='appointment', object_id=appt.pk,
               detail={'from': old, 'to': appt.status}, request=request)
    return Response(AppointmentSerializer(appt).data)
