"""
Patient document storage.

Uploads are two-phase.  ``sign_upload`` records a pending :class:`Document`
and hands out a signed, expiring upload link; the client PUTs the raw
bytes there and then calls ``confirm``.  Downloads use the same kind of
signed link.  Files live in Django's ``default_storage`` under
``DOCUMENT_STORAGE_PREFIX``.
"""
import logging
from typing import Optional

from django.conf import settings
from django.core import signing
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import transaction
from django.urls import reverse
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from core.models import Document, document_key

logger = logging.getLogger(__name__)

UPLOAD_SALT = 'core.documents.upload'
DOWNLOAD_SALT = 'core.documents.download'


def max_upload_bytes() -> int:
    return settings.UPLOAD_MAX_MB * 1024 * 1024


def check_size(size_bytes: int) -> None:
    if size_bytes > max_upload_bytes():
        raise ValidationError({'size_bytes': f'File is larger than {settings.UPLOAD_MAX_MB} MB.'})


def check_upload(content_type: str, size_bytes: int) -> None:
    check_size(size_bytes)
    ct = (content_type or '').lower()
    if not any(ct.startswith(prefix) for prefix in settings.ALLOWED_UPLOAD_TYPES):
        raise ValidationError({'content_type': f'File type {content_type or "unknown"} is not allowed.'})


def storage_name(doc: Document) -> str:
    return f"{settings.DOCUMENT_STORAGE_PREFIX}/{doc.key}"


def absolute(request, path: str) -> str:
    if settings.PUBLIC_API_URL:
        return f"{settings.PUBLIC_API_URL}{path}"
    return request.build_absolute_uri(path)


def upload_token(doc: Document) -> str:
    return signing.dumps({'d': doc.pk, 'k': doc.key}, salt=UPLOAD_SALT)


def download_token(doc: Document) -> str:
    return signing.dumps({'d': doc.pk, 'k': doc.key}, salt=DOWNLOAD_SALT)


def _load(token: str, salt: str) -> Document:
    try:
        data = signing.loads(token, salt=salt, max_age=settings.DOCUMENT_URL_TTL_SECONDS)
    except signing.SignatureExpired:
        raise NotFound('link has expired')
    except signing.BadSignature:
        raise NotFound('invalid link')
    doc = Document.objects.filter(pk=data.get('d'), key=data.get('k')).first()
    if doc is None:
        raise NotFound('document not found')
    return doc


def document_for_upload(token: str) -> Document:
    return _load(token, UPLOAD_SALT)


def document_for_download(token: str) -> Document:
    doc = _load(token, DOWNLOAD_SALT)
    if not doc.is_uploaded:
        raise NotFound('document not found')
    return doc


def download_url(request, doc: Document) -> str:
    return absolute(request, reverse('document-download', args=[download_token(doc)]))


@transaction.atomic
def sign_upload(request, doctor, patient, *, filename: str, content_type: str, size_bytes: int,
                document_type: str = 'other', description: str = '') -> dict:
    check_upload(content_type, size_bytes)
    doc = Document.objects.create(
        doctor=doctor, patient=patient, filename=filename, content_type=content_type,
        document_type=document_type, description=description, size_bytes=size_bytes,
        key=document_key(doctor.pk, filename),
    )
    logger.info('document upload signed id=%s patient=%s size=%s', doc.pk, patient.pk, size_bytes)
    return {
        'upload_url': absolute(request, reverse('document-upload', args=[upload_token(doc)])),
        'method': 'PUT',
        'headers': {'Content-Type': content_type},
        'key': doc.key,
        'document_id': doc.pk,
        'expires_in': settings.DOCUMENT_URL_TTL_SECONDS,
    }


def store_upload(doc: Document, body: bytes, content_type: Optional[str]) -> Document:
    if doc.is_uploaded:
        raise ValidationError('Document has already been uploaded.')
    ct = (content_type or '').split(';')[0].strip().lower()
    if ct and ct != doc.content_type:
        raise ValidationError({'content_type': 'Content-Type does not match the signed upload.'})
    if not body:
        raise ValidationError('Empty upload.')
    check_upload(doc.content_type, len(body))
    name = storage_name(doc)
    if default_storage.exists(name):
        default_storage.delete(name)
    saved = default_storage.save(name, ContentFile(body))
    if saved != name:
        logger.warning('storage renamed upload %s -> %s', name, saved)
        doc.key = saved[len(settings.DOCUMENT_STORAGE_PREFIX) + 1:]
    doc.size_bytes = len(body)
    doc.save(update_fields=['key', 'size_bytes'])
    return doc


def confirm(request, doc: Document) -> dict:
    if not default_storage.exists(storage_name(doc)):
        raise ValidationError('File has not been uploaded yet.')
    if not doc.is_uploaded:
        doc.is_uploaded = True
        doc.uploaded_at = timezone.now()
        doc.save(update_fields=['is_uploaded', 'uploaded_at'])
    return {
        'status': True,
        'download_url': download_url(request, doc),
        'download_expires_in': settings.DOCUMENT_URL_TTL_SECONDS,
    }


def delete_document(doc: Document) -> None:
    name = storage_name(doc)
    if default_storage.exists(name):
        default_storage.delete(name)
    doc.delete()
