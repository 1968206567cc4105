import logging
from dataclasses import dataclass
from typing import Optional

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class GoogleTokenError(RuntimeError):
    pass


@dataclass
class GoogleIdentity:
    sub: str
    email: str
    name: str = ''
    picture: str = ''


def verify_id_token(id_token: str) -> GoogleIdentity:
    """Validate ``id_token`` with Google's tokeninfo endpoint."""
    if not id_token:
        raise GoogleTokenError('id_token is required')
    try:
        r = requests.get(settings.GOOGLE_TOKENINFO_URL, params={'id_token': id_token},
                         timeout=settings.GOOGLE_TIMEOUT)
    except requests.RequestException as e:
        raise GoogleTokenError(f'tokeninfo request failed: {e}')
    if r.status_code != 200:
        raise GoogleTokenError('invalid id_token')
    data = r.json()
    if settings.GOOGLE_CLIENT_ID and data.get('aud') != settings.GOOGLE_CLIENT_ID:
        raise GoogleTokenError('id_token audience mismatch')
    if str(data.get('email_verified', '')).lower() not in ('true', '1'):
        raise GoogleTokenError('Google email is not verified')
    if not data.get('sub') or not data.get('email'):
        raise GoogleTokenError('Invalid response from Google: missing sub/email')
    return GoogleIdentity(sub=data['sub'], email=data['email'].lower(),
                          name=data.get('name', ''), picture=data.get('picture', ''))


def check_profile(sub: str, email: str, id_token: Optional[str]) -> Optional[GoogleIdentity]:
    """Cross-check a client supplied profile against its id_token when verification is on."""
    if not settings.GOOGLE_VERIFY_ID_TOKEN:
        return None
    ident = verify_id_token(id_token or '')
    if ident.sub != sub or ident.email != email.lower():
        logger.warning('google profile mismatch sub=%s', sub)
        raise GoogleTokenError('Google profile does not match id_token')
    return ident
