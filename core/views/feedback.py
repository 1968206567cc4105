from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.models import Feedback
from core.pagination import paginate
from core.permissions import is_platform_admin
from core.serializers.comms import FeedbackQuerySerializer, FeedbackSerializer
from core.services.audit import log_action

OWNER_EDITABLE = {'title', 'description', 'type'}


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def feedback_list(request):
    admin = is_platform_admin(request.user)
    if request.method == 'POST':
        s = FeedbackSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        extra = {'doctor': request.user}
        if not admin:
            extra['status'] = Feedback.STATUS_OPEN
        item = s.save(**extra)
        log_action(user=request.user, action='feedback_create', object_type='feedback', object_id=item.pk,
                   detail={'type': item.type}, request=request)
        return Response(FeedbackSerializer(item).data, status=status.HTTP_201_CREATED)

    q = FeedbackQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    qs = Feedback.objects.select_related('doctor')
    if not admin:
        qs = qs.filter(doctor=request.user)
    elif 'doctor_id' in vd:
        qs = qs.filter(doctor_id=vd['doctor_id'])
    if 'status' in vd:
        qs = qs.filter(status=vd['status'])
    if 'type' in vd:
        qs = qs.filter(type=vd['type'])
    return paginate(request, qs.order_by('-created_at', '-id'), FeedbackSerializer)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def feedback_detail(request, pk):
    admin = is_platform_admin(request.user)
    qs = Feedback.objects.select_related('doctor')
    if not admin:
        qs = qs.filter(doctor=request.user)
    item = qs.filter(pk=pk).first()
    if item is None:
        raise NotFound('feedback not found')
    if request.method == 'GET':
        return Response(FeedbackSerializer(item).data)

    if request.method == 'DELETE':
        if not admin and item.status != Feedback.STATUS_OPEN:
            raise PermissionDenied('Feedback can only be deleted while it is open.')
        item.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    if not admin:
        if item.status != Feedback.STATUS_OPEN:
            raise PermissionDenied('Feedback can only be edited while it is open.')
        blocked = set(request.data) - OWNER_EDITABLE
        if blocked:
            raise PermissionDenied(f"You cannot change: {', '.join(sorted(blocked))}")
    old = item.status
    s = FeedbackSerializer(item, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    item = s.save()
    if old != item.status:
        log_action(user=request.user, action='feedback_status', object_type='feedback', object_id=item.pk,
                   detail={'from': old, 'to': item.status}, request=request)
    return Response(FeedbackSerializer(item).data)
