"""
Patient communication and WhatsApp Business connection endpoints.
"""
import logging
from urllib.parse import urlencode

from django.conf import settings
from django.http import HttpResponseRedirect
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from core.exceptions import ServiceUnavailable
from core.models import MessageLog
from core.pagination import paginate
from core.permissions import IsClinicMember, IsDoctor
from core.serializers.comms import MessageLogSerializer, MessageQuerySerializer, SendMessageSerializer
from core.services import messaging, whatsapp
from core.services.audit import log_action
from core.services.clinic import clinic_owner, scope_to_clinic

logger = logging.getLogger(__name__)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def pricing(request):
    return Response(messaging.pricing_table())


@api_view(['POST'])
@permission_classes([IsClinicMember])
def send(request):
    doctor = clinic_owner(request.user)
    s = SendMessageSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    recipients = messaging.resolve_recipients(
        doctor, vd['channel'], recipient=vd.get('recipient', ''),
        patient_ids=vd.get('patient_ids') or (), all_patients=vd['all_patients'],
    )
    if not recipients:
        raise ValidationError('No recipients with a usable address were found.')
    report = messaging.send_bulk(doctor, vd['channel'], vd['message'], recipients,
                                 subject=vd.get('subject', ''), message_type=vd['type'])
    log_action(user=request.user, action='message_send', object_type='message',
               detail={'channel': vd['channel'], 'type': vd['type'], 'sent': report.sent, 'failed': report.failed},
               request=request)
    return Response({
        'sent': report.sent,
        'failed': report.failed,
        'cost': str(report.cost),
        'estimated_cost': str(messaging.estimate_cost(vd['channel'], len(recipients))),
        'messages': MessageLogSerializer(report.messages, many=True).data,
    }, status=status.HTTP_201_CREATED)

send.cls.throttle_scope = 'messaging'


@api_view(['GET'])
@permission_classes([IsClinicMember])
def message_history(request):
    q = MessageQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = scope_to_clinic(request.user, MessageLog.objects.all())
    for field in ('channel', 'status', 'patient_id'):
        if field in q.validated_data:
            qs = qs.filter(**{field: q.validated_data[field]})
    return paginate(request, qs.order_by('-sent_at', '-id'), MessageLogSerializer)


# ---------------------------------------------------------------------
# WhatsApp Business connection
# ---------------------------------------------------------------------
@api_view(['GET'])
@permission_classes([IsClinicMember])
def whatsapp_status(request):
    return Response(whatsapp.connection_status(clinic_owner(request.user)))


@api_view(['POST'])
@permission_classes([IsDoctor])
def whatsapp_connect(request):
    if not settings.META_APP_ID:
        raise ServiceUnavailable('WhatsApp integration is not configured on this server.')
    return Response({
        'authUrl': whatsapp.build_auth_url(request.user),
        'message': 'Redirecting to Meta WhatsApp Business API authorization',
    })


def _frontend(**params) -> HttpResponseRedirect:
    return HttpResponseRedirect(f"{settings.FRONTEND_URL}/whatsapp?{urlencode(params)}")


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def whatsapp_callback(request):
    """Meta redirects the browser here; the signed ``state`` names the doctor."""
    if request.query_params.get('error'):
        return _frontend(error='authorization_denied')
    code = request.query_params.get('code')
    if not code:
        return _frontend(error='missing_code')
    try:
        conn = whatsapp.complete_connection(code, request.query_params.get('state', ''))
    except whatsapp.WhatsAppError as e:
        logger.warning('whatsapp callback failed: %s', e)
        reason = 'invalid_state' if str(e) == 'invalid_state' else 'connection_failed'
        return _frontend(error=reason)
    log_action(user=conn.doctor, action='whatsapp_connect', object_type='whatsapp', object_id=conn.pk,
               detail={'waba_id': conn.waba_id}, request=request)
    return _frontend(connected='true')


@api_view(['POST'])
@permission_classes([IsDoctor])
def whatsapp_disconnect(request):
    removed = whatsapp.disconnect(request.user)
    if removed:
        log_action(user=request.user, action='whatsapp_disconnect', object_type='whatsapp', request=request)
    return Response({'success': True, 'message': 'WhatsApp Business account disconnected successfully'})
