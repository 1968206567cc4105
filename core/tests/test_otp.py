from datetime import timedelta

import pytest
from django.contrib.auth.hashers import check_password
from django.utils import timezone

from core.models import MessageLog, OtpCode, Patient
from core.services.otp import make_verification_token

pytestmark = pytest.mark.django_db


@pytest.fixture(autouse=True)
def _echo(settings):
    settings.OTP_DEBUG_ECHO = True
    settings.OTP_MAX_ATTEMPTS = 3


def send(api, mobile='+91 98765-43210'):
    return api.post('/api/send-otp/', {'mobile': mobile}, format='json')


def test_send_otp_stores_hash_and_logs_sms(api):
    r = send(api)
    assert r.status_code == 200
    assert r.data['success'] is True
    code = r.data['otp']
    assert len(code) == 6 and code.isdigit()
    otp = OtpCode.objects.get(mobile='+919876543210')
    assert otp.code_hash != code
    assert check_password(code, otp.code_hash)
    log = MessageLog.objects.get(message_type='otp')
    assert log.channel == 'sms' and log.recipient == '+919876543210'


def test_send_otp_hides_code_without_debug_echo(api, settings):
    settings.OTP_DEBUG_ECHO = False
    r = send(api)
    assert r.status_code == 200
    assert 'otp' not in r.data


def test_send_otp_rejects_bad_mobile(api):
    r = send(api, mobile='12ab')
    assert r.status_code == 400
    assert r.json()['error_code'] == 'validation_error'


def test_new_code_invalidates_previous(api):
    send(api)
    second = send(api).data['otp']
    assert OtpCode.objects.filter(mobile='+919876543210', consumed_at__isnull=True).count() == 1
    r = api.post('/api/verify-otp/', {'mobile': '+919876543210', 'otp': second}, format='json')
    assert r.status_code == 200


def test_verify_otp_success_returns_token_and_consumes_code(api):
    code = send(api).data['otp']
    r = api.post('/api/verify-otp/', {'mobile': '+919876543210', 'otp': code}, format='json')
    assert r.status_code == 200
    assert r.data['success'] is True
    assert r.data['verification_token']
    again = api.post('/api/verify-otp/', {'mobile': '+919876543210', 'otp': code}, format='json')
    assert again.status_code == 400
    assert again.data['success'] is False


def test_wrong_code_counts_attempts_until_locked(api):
    code = send(api).data['otp']
    wrong = '000000' if code != '000000' else '111111'
    for _ in range(3):
        r = api.post('/api/verify-otp/', {'mobile': '+919876543210', 'otp': wrong}, format='json')
        assert r.status_code == 400
    assert OtpCode.objects.get(mobile='+919876543210').attempts == 3
    r = api.post('/api/verify-otp/', {'mobile': '+919876543210', 'otp': code}, format='json')
    assert r.status_code == 400
    assert 'Too many attempts' in r.data['message']


def test_expired_code_is_rejected(api):
    code = send(api).data['otp']
    OtpCode.objects.update(expires_at=timezone.now() - timedelta(seconds=1))
    r = api.post('/api/verify-otp/', {'mobile': '+919876543210', 'otp': code}, format='json')
    assert r.status_code == 400
    assert 'expired' in r.data['message']


def test_patient_created_with_verification_token_is_verified(doctor_api):
    token = make_verification_token('+919876543210')
    r = doctor_api.post('/api/patients/', {'full_name': 'Verified Person', 'mobile_number': '+919876543210',
                                           'verification_token': token}, format='json')
    assert r.status_code == 201
    assert r.data['mobile_verified'] is True
    assert 'verification_token' not in r.data


def test_verification_token_for_other_mobile_is_ignored(doctor_api):
    token = make_verification_token('+910000000000')
    r = doctor_api.post('/api/patients/', {'full_name': 'Someone', 'mobile_number': '+919876543210',
                                           'verification_token': token}, format='json')
    assert r.status_code == 201
    assert Patient.objects.get(pk=r.data['id']).mobile_verified is False
