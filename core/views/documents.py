"""
Patient document endpoints.

``upload/<token>/`` and ``download/<token>/`` are reached through signed
links and take no bearer credentials; every other endpoint is scoped to
the caller's clinic.
"""
import logging

from django.conf import settings
from django.core.exceptions import RequestDataTooBig
from django.core.files.storage import default_storage
from django.http import FileResponse
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from core.models import Document, Patient
from core.permissions import IsClinicMember
from core.serializers.documents import ConfirmUploadSerializer, DocumentSerializer, SignUploadSerializer
from core.services import documents as doc_service
from core.services.audit import log_action
from core.services.clinic import clinic_owner, get_scoped_or_404, scope_to_clinic

logger = logging.getLogger(__name__)


@api_view(['POST'])
@permission_classes([IsClinicMember])
def sign_upload(request):
    doctor = clinic_owner(request.user)
    s = SignUploadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = dict(s.validated_data)
    patient = get_scoped_or_404(request.user, Patient, vd.pop('patient_id'), label='patient')
    return Response(doc_service.sign_upload(request, doctor, patient, **vd))


@api_view(['PUT'])
@authentication_classes([])
@permission_classes([AllowAny])
def upload(request, token):
    doc = doc_service.document_for_upload(token)
    try:
        declared = int(request.META.get('CONTENT_LENGTH') or 0)
    except ValueError:
        raise ValidationError('Invalid Content-Length header.')
    doc_service.check_size(declared)
    try:
        body = request.body
    except RequestDataTooBig:
        raise ValidationError({'size_bytes': f'File is larger than {settings.UPLOAD_MAX_MB} MB.'})
    doc_service.store_upload(doc, body, request.META.get('CONTENT_TYPE'))
    logger.info('document bytes stored id=%s size=%s', doc.pk, doc.size_bytes)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsClinicMember])
def confirm_upload(request):
    clinic_owner(request.user)
    s = ConfirmUploadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    doc = get_scoped_or_404(request.user, Document, s.validated_data['document_id'], label='document')
    payload = doc_service.confirm(request, doc)
    log_action(user=request.user, action='document_confirm', object_type='document', object_id=doc.pk,
               detail={'patient_id': doc.patient_id, 'size': doc.size_bytes}, request=request)
    return Response(payload)


@api_view(['GET'])
@permission_classes([IsClinicMember])
def patient_documents(request, patient_id):
    patient = get_scoped_or_404(request.user, Patient, patient_id, label='patient')
    docs = scope_to_clinic(request.user, Document.objects.filter(patient=patient, is_uploaded=True))
    ttl = settings.DOCUMENT_URL_TTL_SECONDS
    items = []
    for doc in docs.order_by('-created_at', '-id'):
        item = DocumentSerializer(doc).data
        item['download_url'] = doc_service.download_url(request, doc)
        item['download_expires_in'] = ttl
        items.append(item)
    return Response({'patient_id': patient.pk, 'count': len(items), 'results': items})


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def download(request, token):
    doc = doc_service.document_for_download(token)
    name = doc_service.storage_name(doc)
    if not default_storage.exists(name):
        raise NotFound('file is missing from storage')
    return FileResponse(default_storage.open(name, 'rb'), content_type=doc.content_type,
                        as_attachment=request.query_params.get('inline') != '1', filename=doc.filename)


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsClinicMember])
def document_detail(request, document_id):
    doc = get_scoped_or_404(request.user, Document, document_id, label='document')
    clinic_owner(request.user)
    if request.method == 'DELETE':
        doc_service.delete_document(doc)
        log_action(user=request.user, action='document_delete', object_type='document', object_id=document_id,
                   request=request)
        return Response({'message': 'Document deleted successfully'})
    s = DocumentSerializer(doc, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    s.save()
    return Response(s.data)
