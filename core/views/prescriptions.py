from rest_framework import serializers, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from core.models import Prescription
from core.pagination import paginate
from core.permissions import IsClinicMember
from core.serializers.clinical import PrescriptionSerializer
from core.services.audit import log_action
from core.services.clinic import clinic_owner, get_scoped_or_404, scope_to_clinic, serializer_context


class PrescriptionQuerySerializer(serializers.Serializer):
    patient_id = serializers.IntegerField(required=False, min_value=1)
    status = serializers.ChoiceField(choices=Prescription.STATUS_CHOICES, required=False)


@api_view(['GET', 'POST'])
@permission_classes([IsClinicMember])
def prescription_list(request):
    if request.method == 'POST':
        doctor = clinic_owner(request.user)
        s = PrescriptionSerializer(data=request.data, context=serializer_context(request))
        s.is_valid(raise_exception=True)
        rx = s.save(doctor=doctor, patient_name=s.validated_data['patient'].full_name)
        log_action(user=request.user, action='prescription_create', object_type='prescription', object_id=rx.pk,
                   request=request)
        return Response(PrescriptionSerializer(rx).data, status=status.HTTP_201_CREATED)

    q = PrescriptionQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = scope_to_clinic(request.user, Prescription.objects.all())
    if 'patient_id' in q.validated_data:
        qs = qs.filter(patient_id=q.validated_data['patient_id'])
    if 'status' in q.validated_data:
        qs = qs.filter(status=q.validated_data['status'])
    return paginate(request, qs.order_by('-created_at', '-id'), PrescriptionSerializer)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsClinicMember])
def prescription_detail(request, pk):
    rx = get_scoped_or_404(request.user, Prescription, pk, label='prescription')
    if request.method == 'GET':
        return Response(PrescriptionSerializer(rx).data)
    clinic_owner(request.user)
    if request.method == 'DELETE':
        rx.delete()
        log_action(user=request.user, action='prescription_delete', object_type='prescription', object_id=pk,
                   request=request)
        return Response({'message': 'Prescription deleted successfully'})
    s = PrescriptionSerializer(rx, data=request.data, partial=request.method == 'PATCH',
                               context=serializer_context(request))
    s.is_valid(raise_exception=True)
    rx = s.save()
    return Response(PrescriptionSerializer(rx).data)
