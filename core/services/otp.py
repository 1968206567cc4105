"""
Mobile number verification by one-time password.

A code is six random digits.  Only a salted hash is persisted, next to an
expiry and an attempt counter.  A successful check consumes the code and
returns a signed *verification token* that patient registration accepts
as proof the number was verified.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.contrib.auth.hashers import check_password, make_password
from django.core import signing
from django.db import transaction
from django.utils import timezone

from core.models import OtpCode

logger = logging.getLogger(__name__)

VERIFICATION_SALT = 'core.otp.verified-mobile'


@dataclass
class OtpResult:
    success: bool
    message: str
    verification_token: Optional[str] = None


def generate_code() -> str:
    return f"{secrets.randbelow(10 ** 6):06d}"


@transaction.atomic
def issue_code(mobile: str) -> tuple[OtpCode, str]:
    """Create a fresh code for ``mobile`` and invalidate the earlier ones."""
    now = timezone.now()
    OtpCode.objects.filter(mobile=mobile, consumed_at__isnull=True).update(consumed_at=now)
    code = generate_code()
    otp = OtpCode.objects.create(
        mobile=mobile,
        code_hash=make_password(code),
        expires_at=now + timedelta(seconds=settings.OTP_TTL_SECONDS),
    )
    logger.info('otp issued mobile=%s id=%s', mask_mobile(mobile), otp.pk)
    return otp, code


def verify_code(mobile: str, code: str) -> OtpResult:
    with transaction.atomic():
        otp = (OtpCode.objects.select_for_update()
               .filter(mobile=mobile, consumed_at__isnull=True)
               .order_by('-created_at', '-id').first())
        if otp is None:
            return OtpResult(False, 'No OTP found for this number. Please request a new one.')
        now = timezone.now()
        if otp.expires_at <= now:
            otp.consumed_at = now
            otp.save(update_fields=['consumed_at'])
            return OtpResult(False, 'OTP has expired. Please request a new one.')
        if otp.attempts >= settings.OTP_MAX_ATTEMPTS:
            otp.consumed_at = now
            otp.save(update_fields=['consumed_at'])
            return OtpResult(False, 'Too many attempts. Please request a new OTP.')
        if not check_password(code, otp.code_hash):
            otp.attempts += 1
            otp.save(update_fields=['attempts'])
            left = settings.OTP_MAX_ATTEMPTS - otp.attempts
            logger.info('otp mismatch mobile=%s attempts=%s', mask_mobile(mobile), otp.attempts)
            return OtpResult(False, f'Invalid OTP. {left} attempt(s) left.' if left > 0
                             else 'Too many attempts. Please request a new OTP.')
        otp.consumed_at = now
        otp.save(update_fields=['consumed_at'])
    return OtpResult(True, 'OTP verified successfully', make_verification_token(mobile))


def make_verification_token(mobile: str) -> str:
    return signing.dumps({'mobile': mobile}, salt=VERIFICATION_SALT)


def read_verification_token(token: str) -> Optional[str]:
    """Return the verified mobile carried by ``token``, or ``None``."""
    try:
        data = signing.loads(token, salt=VERIFICATION_SALT, max_age=settings.OTP_VERIFICATION_MAX_AGE)
    except signing.BadSignature:
        return None
    return data.get('mobile')


def mask_mobile(mobile: str) -> str:
    return f"{mobile[:3]}***{mobile[-2:]}" if len(mobile) > 5 else '***'
