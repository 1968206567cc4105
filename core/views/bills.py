from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from core.models import Bill
from core.pagination import paginate
from core.permissions import IsClinicMember
from core.serializers.clinical import BillQuerySerializer, BillSerializer
from core.services import billing
from core.services.audit import log_action
from core.services.clinic import clinic_owner, get_scoped_or_404, scope_to_clinic, serializer_context


def _filtered(request):
    q = BillQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = scope_to_clinic(request.user, Bill.objects.all())
    if 'patient_id' in q.validated_data:
        qs = qs.filter(patient_id=q.validated_data['patient_id'])
    if 'status' in q.validated_data:
        qs = qs.filter(status=q.validated_data['status'])
    return qs


@api_view(['GET', 'POST'])
@permission_classes([IsClinicMember])
def bill_list(request):
    if request.method == 'POST':
        doctor = clinic_owner(request.user)
        s = BillSerializer(data=request.data, context=serializer_context(request))
        s.is_valid(raise_exception=True)
        bill = billing.create_bill(doctor, dict(s.validated_data))
        log_action(user=request.user, action='bill_create', object_type='bill', object_id=bill.pk,
                   detail={'amount': bill.amount}, request=request)
        return Response(BillSerializer(bill).data, status=status.HTTP_201_CREATED)
    return paginate(request, _filtered(request).order_by('-created_at', '-id'), BillSerializer)


@api_view(['GET'])
@permission_classes([IsClinicMember])
def bill_summary(request):
    """Totals in paise by status, optionally for one ``patient_id``."""
    return Response(billing.summarize(_filtered(request)))


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsClinicMember])
def bill_detail(request, pk):
    bill = get_scoped_or_404(request.user, Bill, pk, label='bill')
    if request.method == 'GET':
        return Response(BillSerializer(bill).data)
    clinic_owner(request.user)
    if request.method == 'DELETE':
        bill.delete()
        log_action(user=request.user, action='bill_delete', object_type='bill', object_id=pk, request=request)
        return Response({'message': 'Bill deleted successfully'})
    s = BillSerializer(bill, data=request.data, partial=request.method == 'PATCH',
                       context=serializer_context(request))
    s.is_valid(raise_exception=True)
    old = bill.status
    bill = billing.update_bill(bill, dict(s.validated_data))
    if old != bill.status:
        log_action(user=request.user, action='bill_status', object_type='bill', object_id=bill.pk,
                   detail={'from': old, 'to': bill.status}, request=request)
    return Response(BillSerializer(bill).data)
