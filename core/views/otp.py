from django.conf import settings
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from core.exceptions import ServiceUnavailable
from core.models import MessageLog
from core.serializers.comms import SendOtpSerializer, VerifyOtpSerializer
from core.services import otp
from core.services.messaging import send_otp_sms


@api_view(['POST'])
@permission_classes([AllowAny])
def send_otp(request):
    s = SendOtpSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    mobile = s.validated_data['mobile']
    _, code = otp.issue_code(mobile)
    log = send_otp_sms(mobile, code)
    if log.status == MessageLog.STATUS_FAILED:
        raise ServiceUnavailable('Could not send the OTP, please try again.')
    payload = {'success': True, 'message': 'OTP sent successfully', 'expires_in': settings.OTP_TTL_SECONDS}
    if settings.OTP_DEBUG_ECHO:
        payload['otp'] = code
    return Response(payload)

send_otp.cls.throttle_scope = 'otp'


@api_view(['POST'])
@permission_classes([AllowAny])
def verify_otp(request):
    s = VerifyOtpSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    result = otp.verify_code(s.validated_data['mobile'], s.validated_data['otp'])
    payload = {'success': result.success, 'message': result.message}
    if result.verification_token:
        payload['verification_token'] = result.verification_token
    return Response(payload, status=200 if result.success else 400)

verify_otp.cls.throttle_scope = 'otp'
