"""
Account lifecycle: signup, Google sign-in, token issuing and password reset.
"""
import logging
import re
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.tokens import default_token_generator
from django.core.mail import send_mail
from django.db import transaction
from django.utils.encoding import force_bytes, force_str
from django.utils.http import urlsafe_base64_decode, urlsafe_base64_encode
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.settings import api_settings as jwt_settings
from rest_framework_simplejwt.tokens import RefreshToken

from core.exceptions import Conflict

logger = logging.getLogger(__name__)

User = get_user_model()


def split_name(full_name: str) -> tuple[str, str]:
    parts = (full_name or '').strip().split(None, 1)
    first = parts[0] if parts else ''
    last = parts[1] if len(parts) > 1 else ''
    return first[:150], last[:150]


def unique_username(email: str) -> str:
    base = re.sub(r'[^\w.@+-]', '', email.split('@')[0])[:140] or 'doctor'
    candidate, n = base, 1
    while User.objects.filter(username=candidate).exists():
        n += 1
        candidate = f'{base}{n}'
    return candidate


def issue_tokens(user) -> dict:
    refresh = RefreshToken.for_user(user)
    return {
        'access_token': str(refresh.access_token),
        'refresh_token': str(refresh),
        'expires_in': int(jwt_settings.ACCESS_TOKEN_LIFETIME.total_seconds()),
    }


def user_payload(user) -> dict:
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'full_name': user.get_full_name() or user.username,
        'role': user.role,
        'sub_id': user.google_sub,
    }


@transaction.atomic
def signup(*, email: str, password: str, full_name: str):
    if User.objects.filter(email__iexact=email).exists():
        raise Conflict('An account with this email already exists')
    first, last = split_name(full_name)
    user = User.objects.create_user(
        username=unique_username(email), email=email, password=password,
        first_name=first, last_name=last, role=User.ROLE_DOCTOR,
    )
    logger.info('doctor signup user=%s', user.pk)
    return user


@transaction.atomic
def google_login(*, email: str, sub: str, name: str = '', picture: str = ''):
    """Return ``(user, created)`` for a Google profile.

    Matches on ``google_sub`` first, then links an existing account with
    the same email, else creates a new doctor account.
    """
    user = User.objects.select_for_update().filter(google_sub=sub).first()
    created = False
    if user is None:
        user = User.objects.select_for_update().filter(email__iexact=email).first()
        if user is not None:
            if user.google_sub and user.google_sub != sub:
                raise Conflict('This email is linked to a different Google account')
            user.google_sub = sub
        else:
            first, last = split_name(name)
            user = User(username=unique_username(email), email=email, first_name=first, last_name=last,
                        role=User.ROLE_DOCTOR, google_sub=sub)
            user.set_unusable_password()
            created = True
    if picture:
        user.avatar_url = picture
    if not user.is_active:
        raise AuthenticationFailed('This account is disabled')
    user.save()
    logger.info('google login user=%s created=%s', user.pk, created)
    return user, created


def make_reset_token(user) -> str:
    uid = urlsafe_base64_encode(force_bytes(user.pk))
    return f'{uid}:{default_token_generator.make_token(user)}'


def user_for_reset_token(token: str) -> Optional[User]:
    uid, _, tok = (token or '').partition(':')
    try:
        user = User.objects.get(pk=force_str(urlsafe_base64_decode(uid)))
    except (User.DoesNotExist, ValueError, TypeError, OverflowError):
        return None
    return user if default_token_generator.check_token(user, tok) else None


def send_reset_email(email: str) -> bool:
    user = User.objects.filter(email__iexact=email, is_active=True).first()
    if user is None:
        logger.info('password reset requested for unknown email')
        return False
    token = make_reset_token(user)
    link = f'{settings.FRONTEND_URL}/reset-password?token={token}'
    send_mail(
        f'{settings.CLINIC_BRAND_NAME} password reset',
        f'Use this link to reset your password:\n\n{link}\n\nIf you did not ask for this, ignore this email.',
        settings.DEFAULT_FROM_EMAIL, [user.email],
    )
    logger.info('password reset mail sent user=%s', user.pk)
    return True
