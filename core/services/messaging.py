"""
Outbound patient messaging.

Each message goes to exactly one recipient on one channel and is recorded
as a :class:`~core.models.MessageLog` with its cost.  Delivery is done by a
channel backend:

* ``email``    Django's mail framework (``EMAIL_BACKEND``)
* ``sms``      an HTTP gateway when ``MESSAGING_BACKEND=http``, else the log
* ``whatsapp`` the WhatsApp Cloud API through the clinic's connection,
               or the log when the clinic has none and the console backend
               is active
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional

import requests
from django.conf import settings
from django.core.mail import send_mail
from rest_framework.exceptions import ValidationError

from core.exceptions import DeliveryError, ServiceUnavailable
from core.models import MessageLog, Patient
from core.services import events
from core.services.whatsapp import get_connection, send_text

logger = logging.getLogger(__name__)


@dataclass
class Delivery:
    provider_message_id: str = ''
    status: str = MessageLog.STATUS_SENT


@dataclass
class Recipient:
    address: str
    patient: Optional[Patient] = None


@dataclass
class SendReport:
    sent: int = 0
    failed: int = 0
    cost: Decimal = Decimal('0.00')
    messages: list = field(default_factory=list)


def price_for(channel: str) -> Decimal:
    try:
        return Decimal(str(settings.MESSAGE_PRICING[channel]))
    except KeyError:
        raise DeliveryError(f'unknown channel {channel}')


def pricing_table() -> dict:
    return {
        'currency': 'INR',
        'channels': [
            {'channel': ch, 'label': label, 'price': str(price_for(ch))}
            for ch, label in MessageLog.CHANNEL_CHOICES
        ],
    }


def estimate_cost(channel: str, count: int) -> Decimal:
    return (price_for(channel) * count).quantize(Decimal('0.01'))


# ---------------------------------------------------------------------
# Channel backends
# ---------------------------------------------------------------------
def _send_email(doctor, to: str, subject: str, body: str) -> Delivery:
    brand = getattr(doctor, 'clinic_name', '') or settings.CLINIC_BRAND_NAME
    sent = send_mail(subject or f'Message from {brand}', body, settings.DEFAULT_FROM_EMAIL, [to])
    if not sent:
        raise DeliveryError('mail backend accepted no message')
    return Delivery()


def _send_sms(doctor, to: str, subject: str, body: str) -> Delivery:
    if settings.MESSAGING_BACKEND != 'http':
        logger.info('sms (console) to=%s body=%r', to, body[:160])
        return Delivery(provider_message_id='console')
    headers = {}
    if settings.SMS_GATEWAY_TOKEN:
        headers['Authorization'] = f'Bearer {settings.SMS_GATEWAY_TOKEN}'
    try:
        r = requests.post(settings.SMS_GATEWAY_URL, json={'to': to, 'message': body},
                          headers=headers, timeout=settings.MESSAGING_TIMEOUT)
        r.raise_for_status()
        data = r.json() if r.content else {}
    except (requests.RequestException, ValueError) as e:
        raise DeliveryError(f'sms gateway error: {e}')
    return Delivery(provider_message_id=str(data.get('id') or data.get('message_id') or ''))


def _send_whatsapp(doctor, to: str, subject: str, body: str) -> Delivery:
    conn = get_connection(doctor) if doctor is not None else None
    if conn is None:
        if settings.MESSAGING_BACKEND == 'console':
            logger.info('whatsapp (console) to=%s body=%r', to, body[:160])
            return Delivery(provider_message_id='console')
        raise DeliveryError('WhatsApp is not connected for this clinic')
    return Delivery(provider_message_id=send_text(conn, to, body))


BACKENDS = {
    'email': _send_email,
    'sms': _send_sms,
    'whatsapp': _send_whatsapp,
}


def deliver(doctor, channel: str, to: str, body: str, *, subject: str = '',
            message_type: str = 'announcement', patient: Optional[Patient] = None) -> MessageLog:
    """Send one message and record it.  Failures are recorded, not raised."""
    cost = price_for(channel)
    log = MessageLog(doctor=doctor, patient=patient, channel=channel, message_type=message_type,
                     recipient=to, subject=subject, body=body, cost=cost)
    try:
        result = BACKENDS[channel](doctor, to, subject, body)
        log.status = result.status
        log.provider_message_id = result.provider_message_id[:128]
    except (DeliveryError, OSError) as e:
        logger.warning('message delivery failed channel=%s to=%s error=%s', channel, to, e)
        log.status = MessageLog.STATUS_FAILED
        log.error = str(e)[:500]
        log.cost = Decimal('0.00')
    log.save()
    return log


def address_for(patient: Patient, channel: str) -> Optional[str]:
    return patient.email if channel == 'email' else patient.mobile_number


def resolve_recipients(doctor, channel: str, *, recipient: str = '', patient_ids: Iterable[int] = (),
                       all_patients: bool = False) -> list[Recipient]:
    out: list[Recipient] = []
    if all_patients or patient_ids:
        qs = Patient.objects.filter(doctor=doctor, status=Patient.STATUS_ACTIVE)
        if not all_patients:
            qs = qs.filter(pk__in=list(patient_ids))
        for p in qs.order_by('id'):
            addr = address_for(p, channel)
            if addr:
                out.append(Recipient(addr, p))
    if recipient:
        out.append(Recipient(recipient.strip()))
    return out


def send_bulk(doctor, channel: str, body: str, recipients: list[Recipient], *, subject: str = '',
              message_type: str = 'announcement') -> SendReport:
    report = SendReport()
    for r in recipients:
        log = deliver(doctor, channel, r.address, body, subject=subject, message_type=message_type,
                      patient=r.patient)
        if log.status == MessageLog.STATUS_FAILED:
            report.failed += 1
        else:
            report.sent += 1
            report.cost += log.cost
        report.messages.append(log)
    if doctor is not None and report.messages:
        events.publish(doctor.pk, events.MESSAGE_SENT, channel=channel,
                       sent=report.sent, failed=report.failed)
    logger.info('bulk send doctor=%s channel=%s sent=%s failed=%s cost=%s',
                getattr(doctor, 'pk', None), channel, report.sent, report.failed, report.cost)
    return report


def send_patient_info(doctor, patient: Patient, method: str, body: str, subject: str = '') -> MessageLog:
    to = address_for(patient, method)
    if not to:
        raise ValidationError({'method': f'Patient has no {"email" if method == "email" else "mobile number"}.'})
    log = deliver(doctor, method, to, body, subject=subject, message_type='patient-info', patient=patient)
    if log.status == MessageLog.STATUS_FAILED:
        raise ServiceUnavailable(f'Could not send via {method}: {log.error}')
    events.publish(doctor.pk, events.MESSAGE_SENT, channel=method, sent=1, failed=0, patient_id=patient.pk)
    return log


def send_otp_sms(mobile: str, code: str) -> MessageLog:
    minutes = max(1, settings.OTP_TTL_SECONDS // 60)
    body = f'Your {settings.CLINIC_BRAND_NAME} verification code is {code}. It expires in {minutes} minutes.'
    return deliver(None, 'sms', mobile, body, message_type='otp')
