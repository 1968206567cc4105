import pytest
from django.core import mail
from rest_framework.test import APIClient

from core.models import AuditEvent, User

pytestmark = pytest.mark.django_db


def login(client, **body):
    return client.post('/api/auth/login/', body, format='json')


def test_login_with_username_returns_tokens(api, doctor):
    r = login(api, username='dr_a', password='P@ssw0rd1')
    assert r.status_code == 200
    assert r.data['access_token'] and r.data['refresh_token']
    assert r.data['expires_in'] == 3600
    assert r.data['user']['username'] == 'dr_a'
    assert r.data['user']['role'] == 'doctor'
    assert AuditEvent.objects.filter(action='login', user=doctor).exists()


def test_login_with_email_is_case_insensitive(api, doctor):
    r = login(api, email='DR.A@example.com', password='P@ssw0rd1')
    assert r.status_code == 200
    assert r.data['user']['id'] == doctor.id


def test_login_ignores_role_in_body(api, doctor):
    r = login(api, username='dr_a', password='P@ssw0rd1', role='admin')
    assert r.status_code == 200
    doctor.refresh_from_db()
    assert doctor.role == 'doctor'
    assert r.data['user']['role'] == 'doctor'


def test_bad_credentials_use_error_envelope(api, doctor):
    r = login(api, username='dr_a', password='wrong')
    assert r.status_code == 400
    body = r.json()
    assert body['app_code'] == 'clinic'
    assert body['error_code'] == 'validation_error'
    assert body['error_message'] == 'Invalid username or password'
    assert body['log_id'] == r['X-Request-ID']


def test_access_token_authenticates_requests(api, doctor):
    tokens = login(api, username='dr_a', password='P@ssw0rd1').data
    api.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access_token']}")
    r = api.get('/api/auth/profile/')
    assert r.status_code == 200
    assert r.data['clinic_name'] == 'Rao Clinic'


def test_missing_token_is_401_envelope(api):
    r = api.get('/api/patients/')
    assert r.status_code == 401
    assert r.json()['error_code'] == 'not_authenticated'


def test_refresh_returns_new_access_token(api, doctor):
    tokens = login(api, username='dr_a', password='P@ssw0rd1').data
    r = api.post('/api/auth/refresh/', {'refresh_token': tokens['refresh_token']}, format='json')
    assert r.status_code == 200
    assert r.data['access_token']


def test_refresh_with_garbage_is_401(api):
    r = api.post('/api/auth/refresh/', {'refresh_token': 'nope'}, format='json')
    assert r.status_code == 401


def test_logout_blacklists_refresh_token(api, doctor):
    tokens = login(api, username='dr_a', password='P@ssw0rd1').data
    api.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access_token']}")
    r = api.post('/api/auth/logout/', {'refresh_token': tokens['refresh_token']}, format='json')
    assert r.status_code == 200
    assert r.data['blacklisted'] == 1
    r = APIClient().post('/api/auth/refresh/', {'refresh_token': tokens['refresh_token']}, format='json')
    assert r.status_code == 401


def test_logout_without_token_blacklists_everything(api, doctor):
    login(api, username='dr_a', password='P@ssw0rd1')
    tokens = login(api, username='dr_a', password='P@ssw0rd1').data
    api.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access_token']}")
    r = api.post('/api/auth/logout/', {}, format='json')
    assert r.status_code == 200
    assert r.data['blacklisted'] == 2


def test_signup_creates_doctor(api):
    r = api.post('/api/auth/signup/', {'email': 'New@Example.com', 'password': 'secret1',
                                        'full_name': 'Neha Joshi'}, format='json')
    assert r.status_code == 201
    assert r.data['created'] is True
    assert r.data['user'] == {'email': 'new@example.com', 'full_name': 'Neha Joshi', 'sub_id': None}
    assert r.data['access_token']
    user = User.objects.get(email='new@example.com')
    assert user.role == 'doctor'
    assert (user.first_name, user.last_name) == ('Neha', 'Joshi')
    assert user.check_password('secret1')


def test_signup_duplicate_email_is_conflict(api, doctor):
    r = api.post('/api/auth/signup/', {'email': 'dr.a@example.com', 'password': 'secret1',
                                        'full_name': 'Someone'}, format='json')
    assert r.status_code == 409
    assert r.json()['error_code'] == 'conflict'


@pytest.mark.parametrize('body, field', [
    ({'email': 'x@example.com', 'password': '12345', 'full_name': 'X'}, 'password'),
    ({'email': 'not-an-email', 'password': '123456', 'full_name': 'X'}, 'email'),
    ({'email': 'x@example.com', 'password': '123456'}, 'full_name'),
])
def test_signup_validation(api, body, field):
    r = api.post('/api/auth/signup/', body, format='json')
    assert r.status_code == 400
    assert field in r.json()['errors']


def test_profile_patch_updates_clinic_but_not_role(doctor_api, doctor):
    r = doctor_api.patch('/api/auth/profile/', {'clinic_name': 'Sunrise Homeo', 'role': 'admin'}, format='json')
    assert r.status_code == 200
    doctor.refresh_from_db()
    assert doctor.clinic_name == 'Sunrise Homeo'
    assert doctor.role == 'doctor'


def test_change_password(doctor_api, doctor):
    r = doctor_api.post('/api/auth/change-password/', {'old_password': 'bad', 'new_password': 'An0ther-pass!'},
                        format='json')
    assert r.status_code == 400
    r = doctor_api.post('/api/auth/change-password/', {'old_password': 'P@ssw0rd1',
                                                       'new_password': 'An0ther-pass!'}, format='json')
    assert r.status_code == 200
    doctor.refresh_from_db()
    assert doctor.check_password('An0ther-pass!')


def test_forgot_and_reset_password(api, doctor):
    r = api.post('/api/auth/forgot-password/', {'email': 'dr.a@example.com'}, format='json')
    assert r.status_code == 200
    assert len(mail.outbox) == 1
    token = mail.outbox[0].body.split('token=')[1].split()[0]

    r = api.post('/api/auth/reset-password/', {'token': token, 'new_password': 'Fresh-pass-42'}, format='json')
    assert r.status_code == 200
    doctor.refresh_from_db()
    assert doctor.check_password('Fresh-pass-42')

    r = api.post('/api/auth/reset-password/', {'token': token, 'new_password': 'Fresh-pass-43'}, format='json')
    assert r.status_code == 400


def test_forgot_password_does_not_reveal_accounts(api):
    r = api.post('/api/auth/forgot-password/', {'email': 'ghost@example.com'}, format='json')
    assert r.status_code == 200
    assert len(mail.outbox) == 0


def test_google_login_creates_then_reuses_account(api):
    body = {'email': 'g@example.com', 'name': 'Gita Shah', 'sub': 'google-123'}
    r = api.post('/api/accounts/oauth-login/', body, format='json')
    assert r.status_code == 201
    assert r.data['created'] is True
    assert r.data['access'] == r.data['access_token']
    assert r.data['user']['sub_id'] == 'google-123'
    doctor_id = r.data['doctor_id']

    r = api.post('/api/auth/google/', body, format='json')
    assert r.status_code == 200
    assert r.data['created'] is False
    assert r.data['doctor_id'] == doctor_id


def test_google_login_links_existing_email(api, doctor):
    r = api.post('/api/accounts/oauth-login/', {'email': 'dr.a@example.com', 'name': 'Asha', 'sub': 's-1'},
                 format='json')
    assert r.status_code == 200
    assert r.data['doctor_id'] == doctor.id
    doctor.refresh_from_db()
    assert doctor.google_sub == 's-1'


class _FakeResponse:
    def __init__(self, status_code, data):
        self.status_code = status_code
        self._data = data

    def json(self):
        return self._data


def test_google_id_token_is_verified(api, settings, monkeypatch):
    settings.GOOGLE_VERIFY_ID_TOKEN = True
    settings.GOOGLE_CLIENT_ID = 'client-1'
    seen = {}

    def fake_get(url, params=None, timeout=None):
        seen['params'] = params
        return _FakeResponse(200, {'aud': 'client-1', 'sub': 's-9', 'email': 'v@example.com',
                                   'email_verified': 'true'})

    monkeypatch.setattr('core.services.google.requests.get', fake_get)
    ok = api.post('/api/accounts/oauth-login/', {'email': 'v@example.com', 'sub': 's-9', 'id_token': 'tok'},
                  format='json')
    assert ok.status_code == 201
    assert seen['params'] == {'id_token': 'tok'}

    bad = api.post('/api/accounts/oauth-login/', {'email': 'v@example.com', 'sub': 'other', 'id_token': 'tok'},
                   format='json')
    assert bad.status_code == 401
    assert bad.json()['error_code'] == 'authentication_failed'
