from datetime import date, timedelta

import pytest
from django.core.management import call_command
from django.utils import timezone

from core.models import Appointment, Bill, Patient, Prescription

pytestmark = pytest.mark.django_db

DAY = '2024-05-20'
MEDS = [{'name': 'Belladonna 200C', 'dosage': '2 drops', 'frequency': 'OD', 'duration': '5 days'}]


def book(client, patient, start, end, day=DAY, **extra):
    return client.post('/api/appointments/', {'patient_id': patient.id, 'date': day, 'start_time': start,
                                              'end_time': end, **extra}, format='json')


# ---------------------------------------------------------------------
# Appointments
# ---------------------------------------------------------------------
def test_book_appointment(doctor_api, patient):
    r = book(doctor_api, patient, '10:00', '10:30', notes='First visit')
    assert r.status_code == 201, r.data
    assert r.data['patient_name'] == 'Ravi Kumar'
    assert r.data['start_time'] == '10:00'
    assert r.data['status'] == 'scheduled'


def test_end_must_follow_start(doctor_api, patient):
    r = book(doctor_api, patient, '10:30', '10:30')
    assert r.status_code == 400
    assert 'end_time' in r.data['errors']


def test_overlapping_slot_is_conflict(doctor_api, patient):
    assert book(doctor_api, patient, '10:00', '10:30').status_code == 201
    r = book(doctor_api, patient, '10:15', '10:45')
    assert r.status_code == 409
    assert r.data['error_code'] == 'conflict'
    assert 'overlaps' in r.data['error_message']


def test_back_to_back_slots_do_not_overlap(doctor_api, patient):
    assert book(doctor_api, patient, '10:00', '10:30').status_code == 201
    assert book(doctor_api, patient, '10:30', '11:00').status_code == 201


def test_cancelled_slot_can_be_rebooked(doctor_api, patient):
    first = book(doctor_api, patient, '10:00', '10:30').data
    r = doctor_api.post(f"/api/appointments/{first['id']}/status/", {'status': 'cancelled'}, format='json')
    assert r.status_code == 200
    assert r.data['status'] == 'cancelled'
    assert book(doctor_api, patient, '10:00', '10:30').status_code == 201


def test_other_doctors_calendar_is_independent(doctor_api, api, other_doctor, patient):
    assert book(doctor_api, patient, '10:00', '10:30').status_code == 201
    theirs = Patient.objects.create(doctor=other_doctor, full_name='Meera Iyer', mobile_number='+919812345678')
    api.force_authenticate(other_doctor)
    assert book(api, theirs, '10:00', '10:30').status_code == 201


def test_cannot_book_for_foreign_patient(doctor_api, other_doctor):
    theirs = Patient.objects.create(doctor=other_doctor, full_name='Meera Iyer', mobile_number='+919812345678')
    r = book(doctor_api, theirs, '09:00', '09:15')
    assert r.status_code == 400
    assert 'patient_id' in r.data['errors']


def test_completing_appointment_sets_last_visit(doctor_api, patient):
    appt = book(doctor_api, patient, '10:00', '10:30').data
    doctor_api.post(f"/api/appointments/{appt['id']}/status/", {'status': 'completed'}, format='json')
    patient.refresh_from_db()
    assert patient.last_visit == date(2024, 5, 20)


def test_reschedule_into_taken_slot_is_conflict(doctor_api, patient):
    book(doctor_api, patient, '10:00', '10:30')
    other = book(doctor_api, patient, '11:00', '11:30').data
    r = doctor_api.patch(f"/api/appointments/{other['id']}/", {'start_time': '10:20', 'end_time': '10:50'},
                         format='json')
    assert r.status_code == 409
    r = doctor_api.patch(f"/api/appointments/{other['id']}/", {'start_time': '11:15'}, format='json')
    assert r.status_code == 200
    assert r.data['start_time'] == '11:15'


def test_list_filters(doctor_api, patient):
    book(doctor_api, patient, '10:00', '10:30', day='2024-05-19')
    book(doctor_api, patient, '10:00', '10:30', day='2024-05-20')
    book(doctor_api, patient, '10:00', '10:30', day='2024-05-22')
    assert doctor_api.get('/api/appointments/?date=2024-05-20').data['count'] == 1
    r = doctor_api.get('/api/appointments/?from=2024-05-20&to=2024-05-22')
    assert [a['date'] for a in r.data['results']] == ['2024-05-20', '2024-05-22']
    assert doctor_api.get('/api/appointments/?status=completed').data['count'] == 0
    assert doctor_api.get('/api/appointments/?from=yesterday').status_code == 400


def test_staff_books_into_owner_calendar(api, staff, doctor, patient):
    api.force_authenticate(staff)
    r = book(api, patient, '12:00', '12:30')
    assert r.status_code == 201
    assert Appointment.objects.get(pk=r.data['id']).doctor == doctor


def test_delete_appointment(doctor_api, patient):
    appt = book(doctor_api, patient, '10:00', '10:30').data
    r = doctor_api.delete(f"/api/appointments/{appt['id']}/")
    assert r.status_code == 200
    assert not Appointment.objects.exists()


# ---------------------------------------------------------------------
# Prescriptions
# ---------------------------------------------------------------------
def test_create_prescription(doctor_api, patient):
    r = doctor_api.post('/api/prescriptions/', {'patient_id': patient.id, 'medicines': MEDS,
                                                'instructions': 'Avoid mint', 'follow_up_date': '2024-06-01'},
                        format='json')
    assert r.status_code == 201, r.data
    rx = Prescription.objects.get(pk=r.data['id'])
    assert rx.medicines == MEDS
    assert rx.patient_name == 'Ravi Kumar'
    assert r.data['status'] == 'active'


@pytest.mark.parametrize('medicines', [[], [{'dosage': '1 tab'}], 'Arnica'])
def test_prescription_needs_named_medicines(doctor_api, patient, medicines):
    r = doctor_api.post('/api/prescriptions/', {'patient_id': patient.id, 'medicines': medicines}, format='json')
    assert r.status_code == 400
    assert 'medicines' in r.data['errors']


def test_prescription_patient_is_fixed(doctor_api, doctor, patient):
    rx = Prescription.objects.create(doctor=doctor, patient=patient, patient_name=patient.full_name, medicines=MEDS)
    other = Patient.objects.create(doctor=doctor, full_name='Sita Nair', mobile_number='+919800011122')
    r = doctor_api.patch(f'/api/prescriptions/{rx.id}/', {'patient_id': other.id}, format='json')
    assert r.status_code == 400
    r = doctor_api.patch(f'/api/prescriptions/{rx.id}/', {'status': 'completed'}, format='json')
    assert r.status_code == 200
    assert r.data['status'] == 'completed'


def test_prescription_list_filters_by_patient(doctor_api, doctor, patient):
    other = Patient.objects.create(doctor=doctor, full_name='Sita Nair', mobile_number='+919800011122')
    Prescription.objects.create(doctor=doctor, patient=patient, patient_name='Ravi', medicines=MEDS)
    Prescription.objects.create(doctor=doctor, patient=other, patient_name='Sita', medicines=MEDS)
    r = doctor_api.get(f'/api/prescriptions/?patient_id={patient.id}')
    assert r.data['count'] == 1


# ---------------------------------------------------------------------
# Bills
# ---------------------------------------------------------------------
def test_bill_paid_at_follows_status(doctor_api, patient):
    r = doctor_api.post('/api/bills/', {'patient_id': patient.id, 'amount': 50000, 'description': 'Consultation'},
                        format='json')
    assert r.status_code == 201, r.data
    assert r.data['status'] == 'pending'
    assert r.data['paid_at'] is None
    bill_id = r.data['id']

    r = doctor_api.patch(f'/api/bills/{bill_id}/', {'status': 'paid', 'payment_method': 'cash'}, format='json')
    assert r.data['paid_at'] is not None
    r = doctor_api.patch(f'/api/bills/{bill_id}/', {'status': 'pending'}, format='json')
    assert r.data['paid_at'] is None


def test_paid_bill_keeps_paid_at_when_cleared(doctor_api, doctor, patient):
    paid_at = timezone.now() - timedelta(days=2)
    bill = Bill.objects.create(doctor=doctor, patient=patient, patient_name='Ravi', amount=1500,
                               description='Consultation', status='paid', paid_at=paid_at)
    r = doctor_api.patch(f'/api/bills/{bill.id}/', {'status': 'paid', 'paid_at': None}, format='json')
    assert r.status_code == 200
    bill.refresh_from_db()
    assert bill.status == 'paid'
    assert bill.paid_at == paid_at


@pytest.mark.parametrize('amount', [0, -5, 'ten'])
def test_bill_amount_must_be_positive(doctor_api, patient, amount):
    r = doctor_api.post('/api/bills/', {'patient_id': patient.id, 'amount': amount, 'description': 'X'},
                        format='json')
    assert r.status_code == 400
    assert 'amount' in r.data['errors']


def test_bill_prescription_must_match_patient(doctor_api, doctor, patient):
    other = Patient.objects.create(doctor=doctor, full_name='Sita Nair', mobile_number='+919800011122')
    rx = Prescription.objects.create(doctor=doctor, patient=other, patient_name='Sita', medicines=MEDS)
    r = doctor_api.post('/api/bills/', {'patient_id': patient.id, 'prescription_id': rx.id, 'amount': 1000,
                                        'description': 'Medicines'}, format='json')
    assert r.status_code == 400
    assert 'prescription_id' in r.data['errors']


def test_bill_summary(doctor_api, doctor, other_doctor, patient):
    Bill.objects.create(doctor=doctor, patient=patient, patient_name='Ravi', amount=1000, description='a',
                        status='paid', paid_at=timezone.now())
    Bill.objects.create(doctor=doctor, patient=patient, patient_name='Ravi', amount=2500, description='b')
    Bill.objects.create(doctor=doctor, patient=patient, patient_name='Ravi', amount=400, description='c',
                        status='overdue')
    theirs = Patient.objects.create(doctor=other_doctor, full_name='X', mobile_number='+919800000000')
    Bill.objects.create(doctor=other_doctor, patient=theirs, patient_name='X', amount=99999, description='d')
    r = doctor_api.get('/api/bills/summary/')
    assert r.status_code == 200
    assert r.data == {'total_paid': 1000, 'total_pending': 2500, 'total_overdue': 400, 'count': 3}
    assert doctor_api.get('/api/bills/?status=pending').data['count'] == 1


def test_bill_list_and_summary_per_patient(doctor_api, doctor, patient):
    other = Patient.objects.create(doctor=doctor, full_name='Sita Nair', mobile_number='+919800011122')
    Bill.objects.create(doctor=doctor, patient=patient, patient_name='Ravi', amount=700, description='a',
                        status='paid', paid_at=timezone.now())
    Bill.objects.create(doctor=doctor, patient=patient, patient_name='Ravi', amount=300, description='b')
    Bill.objects.create(doctor=doctor, patient=other, patient_name='Sita', amount=5000, description='c')
    Bill.objects.create(doctor=doctor, patient=other, patient_name='Sita', amount=800, description='d',
                        status='overdue')

    r = doctor_api.get(f'/api/bills/summary/?patient_id={patient.id}')
    assert r.data == {'total_paid': 700, 'total_pending': 300, 'total_overdue': 0, 'count': 2}
    r = doctor_api.get(f'/api/bills/summary/?patient_id={other.id}')
    assert r.data == {'total_paid': 0, 'total_pending': 5000, 'total_overdue': 800, 'count': 2}

    r = doctor_api.get(f'/api/bills/?patient_id={other.id}')
    assert r.data['count'] == 2
    assert {b['patient_id'] for b in r.data['results']} == {other.id}
    r = doctor_api.get(f'/api/bills/?patient_id={other.id}&status=overdue')
    assert [b['amount'] for b in r.data['results']] == [800]


def test_bill_of_other_clinic_is_hidden(doctor_api, other_doctor):
    theirs = Patient.objects.create(doctor=other_doctor, full_name='X', mobile_number='+919800000000')
    bill = Bill.objects.create(doctor=other_doctor, patient=theirs, patient_name='X', amount=10, description='d')
    assert doctor_api.get(f'/api/bills/{bill.id}/').status_code == 404
    assert doctor_api.delete(f'/api/bills/{bill.id}/').status_code == 404
    assert Bill.objects.filter(pk=bill.id).exists()


def test_mark_overdue_bills_command(doctor, patient):
    old = Bill.objects.create(doctor=doctor, patient=patient, patient_name='Ravi', amount=100, description='old')
    fresh = Bill.objects.create(doctor=doctor, patient=patient, patient_name='Ravi', amount=100, description='new')
    Bill.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(days=40))
    call_command('mark_overdue_bills', '--days', '30')
    old.refresh_from_db()
    fresh.refresh_from_db()
    assert old.status == 'overdue'
    assert fresh.status == 'pending'
