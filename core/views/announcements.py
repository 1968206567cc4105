from django.db.models import F
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.response import Response

from core.models import Announcement
from core.pagination import paginate
from core.permissions import IsAdminOrReadOnly, is_platform_admin
from core.serializers.comms import AnnouncementSerializer
from core.services.audit import log_action


def _visible(user):
    qs = Announcement.objects.select_related('created_by')
    if not is_platform_admin(user):
        qs = qs.filter(published_at__isnull=False, published_at__lte=timezone.now())
    return qs.order_by('-is_pinned', F('published_at').desc(nulls_first=True), '-created_at', '-id')


@api_view(['GET', 'POST'])
@permission_classes([IsAdminOrReadOnly])
def announcement_list(request):
    """Published announcements, pinned first then newest.  Admins also see drafts."""
    if request.method == 'POST':
        s = AnnouncementSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        item = s.save(created_by=request.user)
        log_action(user=request.user, action='announcement_create', object_type='announcement',
                   object_id=item.pk, request=request)
        return Response(AnnouncementSerializer(item).data, status=status.HTTP_201_CREATED)
    qs = _visible(request.user)
    category = request.query_params.get('category')
    if category:
        qs = qs.filter(category=category)
    return paginate(request, qs, AnnouncementSerializer)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAdminOrReadOnly])
def announcement_detail(request, pk):
    item = _visible(request.user).filter(pk=pk).first()
    if item is None:
        raise NotFound('announcement not found')
    if request.method == 'GET':
        return Response(AnnouncementSerializer(item).data)
    if request.method == 'DELETE':
        item.delete()
        log_action(user=request.user, action='announcement_delete', object_type='announcement', object_id=pk,
                   request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)
    s = AnnouncementSerializer(item, data=request.data, partial=request.method == 'PATCH')
    s.is_valid(raise_exception=True)
    s.save()
    return Response(s.data)
