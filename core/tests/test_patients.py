"""
API tests for patients, their sub-resources and the PDF report.
"""
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from core.models import Bill, MessageLog, Patient, Prescription, TreatmentProgress, User


class PatientAPITests(APITestCase):
    def setUp(self) -> None:
        self.doctor = User.objects.create_user(username='doc1', password='P@ssw0rd1', role='doctor',
                                               clinic_name='Green Leaf Clinic')
        self.other = User.objects.create_user(username='doc2', password='P@ssw0rd1', role='doctor')
        self.staff = User.objects.create_user(username='staff1', password='P@ssw0rd1', role='staff',
                                              clinic_owner=self.doctor)
        self.admin = User.objects.create_user(username='ops', password='P@ssw0rd1', role='admin')
        self.p1 = Patient.objects.create(doctor=self.doctor, full_name='Anita Desai', mobile_number='+919811111111',
                                         age=41, gender='female', email='anita@example.com')
        self.p2 = Patient.objects.create(doctor=self.doctor, full_name='Bharat Mehta', mobile_number='+919822222222',
                                         age=29, status='inactive')
        self.foreign = Patient.objects.create(doctor=self.other, full_name='Chitra Pal', mobile_number='+919833333333')
        self.client.force_authenticate(self.doctor)

    def test_list_is_paginated_and_scoped(self):
        r = self.client.get('/api/patients/')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['count'], 2)
        names = {p['full_name'] for p in r.data['results']}
        self.assertNotIn('Chitra Pal', names)

        r = self.client.get('/api/patients/?limit=1&page=2&ordering=full_name')
        self.assertEqual(r.data['count'], 2)
        self.assertEqual([p['full_name'] for p in r.data['results']], ['Bharat Mehta'])
        self.assertIsNone(r.data['next'])

    def test_search_and_status_filters(self):
        r = self.client.get('/api/patients/?search=anita')
        self.assertEqual([p['id'] for p in r.data['results']], [self.p1.id])
        r = self.client.get('/api/patients/?search=98222')
        self.assertEqual([p['id'] for p in r.data['results']], [self.p2.id])
        r = self.client.get('/api/patients/?status=inactive')
        self.assertEqual([p['id'] for p in r.data['results']], [self.p2.id])

    def test_bad_ordering_is_rejected(self):
        r = self.client.get('/api/patients/?ordering=password')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_accepts_frontend_field_names(self):
        r = self.client.post('/api/patients/', {
            'name': 'Deepak Verma', 'mobile': '98444 44444', 'allergies': 'Pollen',
            'medicalHistory': 'Asthma', 'lifestyle': 'Sedentary', 'emergencyContact': 'Wife +919855555555',
            'age': 52, 'gender': 'male',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED, r.data)
        p = Patient.objects.get(pk=r.data['id'])
        self.assertEqual(p.doctor, self.doctor)
        self.assertEqual(p.full_name, 'Deepak Verma')
        self.assertEqual(p.mobile_number, '9844444444')
        self.assertEqual(p.known_allergies, 'Pollen')
        self.assertEqual(p.medical_history, 'Asthma')
        self.assertEqual(p.lifestyle_information, 'Sedentary')
        self.assertFalse(p.mobile_verified)

    def test_create_requires_name_and_mobile(self):
        r = self.client.post('/api/patients/', {'age': 20}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('full_name', r.data['errors'])
        self.assertIn('mobile_number', r.data['errors'])

    def test_create_validates_age_range(self):
        r = self.client.post('/api/patients/', {'full_name': 'Old', 'mobile_number': '+919800000001', 'age': 151},
                             format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_free_text_is_sanitised(self):
        r = self.client.post('/api/patients/', {
            'full_name': '<b>Esha</b> Roy', 'mobile_number': '+919800000002',
            'medical_history': '<script>alert(1)</script>Diabetes',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        p = Patient.objects.get(pk=r.data['id'])
        self.assertEqual(p.full_name, 'Esha Roy')
        self.assertNotIn('<script>', p.medical_history)

    def test_update_and_partial_update(self):
        r = self.client.patch(f'/api/patients/{self.p1.id}/', {'age': 42}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['age'], 42)
        r = self.client.put(f'/api/patients/{self.p1.id}/', {'full_name': 'Anita D', 'mobile_number': '+919811111111'},
                            format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.p1.refresh_from_db()
        self.assertEqual(self.p1.full_name, 'Anita D')

    def test_changing_mobile_clears_verification(self):
        Patient.objects.filter(pk=self.p1.pk).update(mobile_verified=True)
        self.client.patch(f'/api/patients/{self.p1.id}/', {'mobile_number': '+919899999999'}, format='json')
        self.p1.refresh_from_db()
        self.assertFalse(self.p1.mobile_verified)

    def test_delete_returns_message(self):
        r = self.client.delete(f'/api/patients/{self.p2.id}/')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertIn('message', r.data)
        self.assertFalse(Patient.objects.filter(pk=self.p2.id).exists())

    def test_other_clinic_patient_is_not_found(self):
        for method in ('get', 'patch', 'delete'):
            r = getattr(self.client, method)(f'/api/patients/{self.foreign.id}/')
            self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND, method)
        self.assertEqual(self.client.get(f'/api/patients/{self.foreign.id}/bills/').status_code, 404)
        self.assertEqual(r.json()['error_code'], 'not_found')

    def test_staff_work_on_owner_records(self):
        self.client.force_authenticate(self.staff)
        r = self.client.get('/api/patients/')
        self.assertEqual(r.data['count'], 2)
        r = self.client.post('/api/patients/', {'full_name': 'Staff Added', 'mobile_number': '+919800000003'},
                             format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Patient.objects.get(pk=r.data['id']).doctor, self.doctor)

    def test_admin_reads_all_but_cannot_create(self):
        self.client.force_authenticate(self.admin)
        r = self.client.get('/api/patients/')
        self.assertEqual(r.data['count'], 3)
        r = self.client.post('/api/patients/', {'full_name': 'X', 'mobile_number': '+919800000004'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)

    def test_complete_prescriptions(self):
        meds = [{'name': 'Arnica 30C', 'dosage': '4 pills', 'frequency': 'TDS', 'duration': '7 days'}]
        keep = Prescription.objects.create(doctor=self.doctor, patient=self.p1, patient_name='Anita', medicines=meds)
        old = Prescription.objects.create(doctor=self.doctor, patient=self.p1, patient_name='Anita', medicines=meds)
        r = self.client.patch(f'/api/patients/{self.p1.id}/prescriptions/complete/', {'exclude_id': keep.id},
                              format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['updated'], 1)
        self.assertTrue(r.data['success'])
        old.refresh_from_db()
        keep.refresh_from_db()
        self.assertEqual(old.status, 'completed')
        self.assertEqual(keep.status, 'active')

    def test_history_sub_lists(self):
        Bill.objects.create(doctor=self.doctor, patient=self.p1, patient_name='Anita', amount=50000,
                            description='Consultation')
        r = self.client.get(f'/api/patients/{self.p1.id}/bills/')
        self.assertEqual(r.data['count'], 1)
        self.assertEqual(r.data['results'][0]['amount'], 50000)
        self.assertEqual(self.client.get(f'/api/patients/{self.p1.id}/appointments/').data['count'], 0)
        self.assertEqual(self.client.get(f'/api/patients/{self.p1.id}/prescriptions/').data['count'], 0)

    def test_send_info_by_sms_is_logged(self):
        r = self.client.post(f'/api/patients/{self.p1.id}/send-info/', {'method': 'sms', 'message': 'Take care'},
                             format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        log = MessageLog.objects.get(patient=self.p1)
        self.assertEqual(log.message_type, 'patient-info')
        self.assertEqual(log.recipient, '+919811111111')
        self.assertEqual(str(log.cost), '1.50')

    def test_send_info_by_email_without_address_is_400(self):
        r = self.client.post(f'/api/patients/{self.p2.id}/send-info/', {'method': 'email', 'message': 'Hello'},
                             format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_report_is_pdf(self):
        meds = [{'name': 'Nux Vomica 30C', 'dosage': '4 pills', 'frequency': 'BD', 'duration': '10 days'}]
        Prescription.objects.create(doctor=self.doctor, patient=self.p1, patient_name='Anita', medicines=meds,
                                    instructions='Avoid coffee')
        Bill.objects.create(doctor=self.doctor, patient=self.p1, patient_name='Anita', amount=75000,
                            description='Consultation', status='paid', payment_method='upi',
                            paid_at=timezone.now())
        r = self.client.get(f'/api/patients/{self.p1.id}/report/')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r['Content-Type'], 'application/pdf')
        today = timezone.localdate().isoformat()
        self.assertIn(f'Anita_Desai_PatientReport_{today}.pdf', r['Content-Disposition'])
        self.assertTrue(r.content.startswith(b'%PDF'))

    def test_progress_notes(self):
        r = self.client.post(f'/api/patients/{self.p1.id}/progress/', {
            'visit_date': '2024-03-10', 'symptoms': 'Headache', 'improvement': 'Better sleep',
            'next_follow_up': '2024-03-24',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED, r.data)
        note_id = r.data['id']
        self.p1.refresh_from_db()
        self.assertEqual(self.p1.last_visit.isoformat(), '2024-03-10')

        r = self.client.patch(f'/api/patients/{self.p1.id}/progress/{note_id}/', {'notes': 'Reduce dose'},
                              format='json')
        self.assertEqual(r.data['notes'], 'Reduce dose')
        self.assertEqual(self.client.get(f'/api/patients/{self.p1.id}/progress/').data['count'], 1)
        r = self.client.delete(f'/api/patients/{self.p1.id}/progress/{note_id}/')
        self.assertEqual(r.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(TreatmentProgress.objects.exists())

    def test_progress_follow_up_before_visit_is_invalid(self):
        r = self.client.post(f'/api/patients/{self.p1.id}/progress/', {
            'visit_date': '2024-03-10', 'next_follow_up': '2024-03-01',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
