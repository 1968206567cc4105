import pytest
from django.core.files.storage import default_storage

from core.models import Document, Patient

pytestmark = pytest.mark.django_db

PDF = b'%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF\n'


def sign(client, patient, **overrides):
    body = {'patient_id': patient.id, 'filename': 'blood-test.pdf', 'content_type': 'application/pdf',
            'size_bytes': len(PDF), 'document_type': 'report', **overrides}
    return client.post('/api/document/sign-upload/', body, format='json')


def upload_and_confirm(client, patient):
    signed = sign(client, patient).data
    r = client.put(signed['upload_url'], PDF, content_type='application/pdf')
    assert r.status_code == 204
    r = client.post('/api/document/confirm/', {'document_id': signed['document_id']}, format='json')
    assert r.status_code == 200
    return signed, r.data


def test_sign_upload_creates_pending_document(doctor_api, patient):
    r = sign(doctor_api, patient)
    assert r.status_code == 200, r.data
    assert r.data['method'] == 'PUT'
    assert r.data['headers'] == {'Content-Type': 'application/pdf'}
    assert '/api/document/upload/' in r.data['upload_url']
    doc = Document.objects.get(pk=r.data['document_id'])
    assert doc.key == r.data['key']
    assert doc.key.startswith(f'{patient.doctor_id}/')
    assert not doc.is_uploaded


def test_full_upload_cycle(doctor_api, api, patient, settings):
    signed, confirmed = upload_and_confirm(doctor_api, patient)
    assert confirmed['status'] is True
    assert confirmed['download_expires_in'] == settings.DOCUMENT_URL_TTL_SECONDS
    doc = Document.objects.get(pk=signed['document_id'])
    assert doc.is_uploaded and doc.uploaded_at is not None
    assert default_storage.exists(f"{settings.DOCUMENT_STORAGE_PREFIX}/{doc.key}")

    listing = doctor_api.get(f'/api/document/view/{patient.id}/')
    assert listing.data['count'] == 1
    assert listing.data['results'][0]['filename'] == 'blood-test.pdf'

    # download links carry their own authorisation
    r = api.get(confirmed['download_url'])
    assert r.status_code == 200
    assert r['Content-Type'] == 'application/pdf'
    assert b''.join(r.streaming_content) == PDF


@pytest.mark.parametrize('overrides,field', [
    ({'content_type': 'application/x-msdownload', 'filename': 'run.exe'}, 'content_type'),
    ({'size_bytes': 16 * 1024 * 1024}, 'size_bytes'),
])
def test_sign_upload_rejects_bad_files(doctor_api, patient, settings, overrides, field):
    settings.UPLOAD_MAX_MB = 15
    r = sign(doctor_api, patient, **overrides)
    assert r.status_code == 400
    assert field in r.data['errors']
    assert not Document.objects.exists()


def test_sign_upload_for_foreign_patient_is_404(doctor_api, other_doctor):
    theirs = Patient.objects.create(doctor=other_doctor, full_name='X', mobile_number='+919800000000')
    assert sign(doctor_api, theirs).status_code == 404


def test_upload_with_tampered_token_is_404(api):
    r = api.put('/api/document/upload/not-a-token/', PDF, content_type='application/pdf')
    assert r.status_code == 404


def test_upload_content_type_must_match(doctor_api, api, patient):
    signed = sign(doctor_api, patient).data
    r = api.put(signed['upload_url'], b'\x89PNG....', content_type='image/png')
    assert r.status_code == 400


def test_upload_only_once(doctor_api, api, patient):
    signed, _ = upload_and_confirm(doctor_api, patient)
    r = api.put(signed['upload_url'], PDF, content_type='application/pdf')
    assert r.status_code == 400


def test_upload_larger_than_request_limit_is_400(doctor_api, api, patient, settings):
    settings.DATA_UPLOAD_MAX_MEMORY_SIZE = 1024
    signed = sign(doctor_api, patient).data
    r = api.put(signed['upload_url'], PDF + b'x' * 1024, content_type='application/pdf')
    assert r.status_code == 400
    assert 'size_bytes' in r.data['errors']
    doc = Document.objects.get(pk=signed['document_id'])
    assert not doc.is_uploaded
    assert not default_storage.exists(f"{settings.DOCUMENT_STORAGE_PREFIX}/{doc.key}")


def test_upload_larger_than_size_cap_is_400(doctor_api, api, patient, settings):
    settings.UPLOAD_MAX_MB = 1
    signed = sign(doctor_api, patient).data
    r = api.put(signed['upload_url'], PDF + b'x' * (1024 * 1024), content_type='application/pdf')
    assert r.status_code == 400
    assert 'size_bytes' in r.data['errors']
    assert not Document.objects.get(pk=signed['document_id']).is_uploaded


def test_confirm_before_upload_is_400(doctor_api, patient):
    signed = sign(doctor_api, patient).data
    r = doctor_api.post('/api/document/confirm/', {'document_id': signed['document_id']}, format='json')
    assert r.status_code == 400
    assert doctor_api.get(f'/api/document/view/{patient.id}/').data['count'] == 0


def test_rename_and_delete(doctor_api, patient, settings):
    signed, _ = upload_and_confirm(doctor_api, patient)
    doc_id = signed['document_id']
    r = doctor_api.patch(f'/api/document/{doc_id}/', {'description': 'HbA1c <b>6.1</b>'}, format='json')
    assert r.status_code == 200
    assert r.data['description'] == 'HbA1c 6.1'

    key = Document.objects.get(pk=doc_id).key
    r = doctor_api.delete(f'/api/document/{doc_id}/')
    assert r.status_code == 200
    assert not Document.objects.exists()
    assert not default_storage.exists(f'{settings.DOCUMENT_STORAGE_PREFIX}/{key}')


def test_documents_are_clinic_scoped(api, other_doctor, doctor_api, patient):
    signed, _ = upload_and_confirm(doctor_api, patient)
    api.force_authenticate(other_doctor)
    assert api.get(f'/api/document/view/{patient.id}/').status_code == 404
    assert api.delete(f"/api/document/{signed['document_id']}/").status_code == 404
