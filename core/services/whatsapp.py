"""
WhatsApp Business connection through Meta's embedded signup.

The clinic is sent to Meta's OAuth dialog with a signed ``state`` naming
the doctor.  On callback the code is exchanged for a long lived business
token, the WhatsApp Business Account (WABA) and its first phone number are
looked up, and the connection is stored against the doctor.
"""
import logging
from typing import Optional
from urllib.parse import urlencode

import requests
from django.conf import settings
from django.core import signing

from core.exceptions import DeliveryError
from core.models import WhatsAppConnection

logger = logging.getLogger(__name__)

STATE_SALT = 'core.whatsapp.oauth-state'
STATE_MAX_AGE = 600
SCOPES = 'whatsapp_business_messaging,whatsapp_business_management'


class WhatsAppError(RuntimeError):
    pass


def build_auth_url(doctor) -> str:
    state = signing.dumps({'doctor': doctor.pk}, salt=STATE_SALT)
    params = {
        'client_id': settings.META_APP_ID,
        'redirect_uri': settings.WHATSAPP_REDIRECT_URI,
        'scope': SCOPES,
        'response_type': 'code',
        'state': state,
    }
    if settings.META_CONFIG_ID:
        params['config_id'] = settings.META_CONFIG_ID
    return f"{settings.WHATSAPP_OAUTH_DIALOG_URL}?{urlencode(params)}"


def read_state(state: str) -> int:
    try:
        return int(signing.loads(state, salt=STATE_SALT, max_age=STATE_MAX_AGE)['doctor'])
    except (signing.BadSignature, KeyError, TypeError, ValueError):
        raise WhatsAppError('invalid_state')


def _get(path: str, **params) -> dict:
    try:
        r = requests.get(f"{settings.WHATSAPP_GRAPH_URL}/{path.lstrip('/')}", params=params,
                         timeout=settings.MESSAGING_TIMEOUT)
        data = r.json()
    except (requests.RequestException, ValueError) as e:
        raise WhatsAppError(f'graph request failed: {e}')
    if r.status_code >= 400 or 'error' in data:
        err = data.get('error') or {}
        raise WhatsAppError(f"graph error {err.get('code', r.status_code)}: {err.get('message', 'unknown')}")
    return data


def exchange_code(code: str) -> str:
    data = _get('oauth/access_token', client_id=settings.META_APP_ID, client_secret=settings.META_APP_SECRET,
                redirect_uri=settings.WHATSAPP_REDIRECT_URI, code=code)
    token = data.get('access_token')
    if not token:
        raise WhatsAppError('graph response missing access_token')
    return token


def discover_account(token: str) -> dict:
    """Find the WABA granted to ``token`` and its first phone number."""
    debug = _get('debug_token', input_token=token,
                 access_token=f"{settings.META_APP_ID}|{settings.META_APP_SECRET}").get('data') or {}
    waba_id = ''
    for scope in debug.get('granular_scopes') or []:
        if scope.get('scope') == 'whatsapp_business_management' and scope.get('target_ids'):
            waba_id = str(scope['target_ids'][0])
            break
    if not waba_id:
        raise WhatsAppError('no WhatsApp Business Account granted')
    numbers = _get(f'{waba_id}/phone_numbers', access_token=token).get('data') or []
    if not numbers:
        raise WhatsAppError('WhatsApp Business Account has no phone number')
    first = numbers[0]
    return {
        'waba_id': waba_id,
        'phone_number_id': str(first.get('id', '')),
        'connected_phone': first.get('display_phone_number', ''),
        'business_name': first.get('verified_name', ''),
    }


def complete_connection(code: str, state: str) -> WhatsAppConnection:
    doctor_id = read_state(state)
    token = exchange_code(code)
    info = discover_account(token)
    conn, _ = WhatsAppConnection.objects.update_or_create(
        doctor_id=doctor_id, defaults={'access_token': token, **info},
    )
    logger.info('whatsapp connected doctor=%s waba=%s phone_id=%s', doctor_id, info['waba_id'],
                info['phone_number_id'])
    return conn


def get_connection(doctor) -> Optional[WhatsAppConnection]:
    return WhatsAppConnection.objects.filter(doctor_id=doctor.pk).first()


def connection_status(doctor) -> dict:
    conn = get_connection(doctor)
    if conn is None:
        return {'isConnected': False}
    return {
        'isConnected': True,
        'phoneNumberId': conn.phone_number_id,
        'wabaId': conn.waba_id,
        'connectedPhone': conn.connected_phone,
        'businessName': conn.business_name,
        'connectedAt': conn.connected_at.isoformat(),
    }


def disconnect(doctor) -> bool:
    deleted, _ = WhatsAppConnection.objects.filter(doctor_id=doctor.pk).delete()
    return bool(deleted)


def send_text(conn: WhatsAppConnection, to: str, body: str) -> str:
    """Send a text message; return the provider message id."""
    url = f"{settings.WHATSAPP_GRAPH_URL}/{conn.phone_number_id}/messages"
    payload = {
        'messaging_product': 'whatsapp',
        'to': to.lstrip('+'),
        'type': 'text',
        'text': {'body': body},
    }
    try:
        r = requests.post(url, json=payload, headers={'Authorization': f'Bearer {conn.access_token}'},
                          timeout=settings.MESSAGING_TIMEOUT)
        data = r.json()
    except (requests.RequestException, ValueError) as e:
        raise DeliveryError(f'whatsapp request failed: {e}')
    if r.status_code >= 400:
        err = data.get('error') or {}
        raise DeliveryError(f"whatsapp error {err.get('code', r.status_code)}: {err.get('message', 'unknown')}")
    msgs = data.get('messages') or [{}]
    return str(msgs[0].get('id', ''))
