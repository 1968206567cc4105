"""
Management command to populate the database with a demo clinic.
"""
import random
from datetime import time, timedelta

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from core.models import Announcement, Appointment, Bill, Feedback, Patient, Prescription, User

FIRST_NAMES = ['Aarav', 'Priya', 'Rohan', 'Ananya', 'Vikram', 'Sneha', 'Arjun', 'Kavya', 'Rahul', 'Meera']
LAST_NAMES = ['Sharma', 'Patel', 'Iyer', 'Reddy', 'Gupta', 'Nair', 'Singh', 'Das']
MEDICINES = [
    ('Arnica Montana 30C', '4 pills', 'Thrice daily', '7 days'),
    ('Nux Vomica 30C', '4 pills', 'Twice daily', '10 days'),
    ('Belladonna 200C', '2 pills', 'Once daily', '5 days'),
    ('Rhus Tox 30C', '4 pills', 'Twice daily', '14 days'),
    ('Pulsatilla 30C', '3 pills', 'Thrice daily', '7 days'),
]


class Command(BaseCommand):
    help = 'Populate the database with a demo clinic'

    def add_arguments(self, parser):
        parser.add_argument('--patients', type=int, default=20)
        parser.add_argument('--reset', action='store_true', help='delete the demo clinic first')
        parser.add_argument('--seed', type=int, default=None)

    @transaction.atomic
    def handle(self, *args, **options):
        rng = random.Random(options['seed'])
        if options['reset']:
            User.objects.filter(username__in=['demo_doctor', 'demo_staff']).delete()

        doctor = self.create_doctor()
        patients = self.create_patients(doctor, options['patients'], rng)
        self.create_appointments(doctor, patients, rng)
        prescriptions = self.create_prescriptions(doctor, patients, rng)
        self.create_bills(doctor, prescriptions, rng)
        self.create_announcements()
        self.create_feedback(doctor)
        self.stdout.write(self.style.SUCCESS(
            f'Demo clinic ready: doctor=demo_doctor / demo123, {len(patients)} patients'))

    def create_doctor(self):
        doctor, _ = User.objects.get_or_create(username='demo_doctor', defaults={
            'email': 'demo.doctor@clinic.local', 'first_name': 'Asha', 'last_name': 'Menon',
            'role': User.ROLE_DOCTOR, 'clinic_name': 'Demo Homeopathy Clinic', 'phone': '+919800000000',
            'qualifications': 'BHMS, MD (Hom)',
        })
        doctor.set_password('demo123')
        doctor.save()
        staff, _ = User.objects.get_or_create(username='demo_staff', defaults={
            'email': 'demo.staff@clinic.local', 'role': User.ROLE_STAFF, 'clinic_owner': doctor,
        })
        staff.set_password('demo123')
        staff.save()
        return doctor

    def create_patients(self, doctor, count, rng):
        patients = []
        for i in range(count):
            name = f'{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}'
            patients.append(Patient.objects.create(
                doctor=doctor, full_name=name, mobile_number=f'+9198{rng.randrange(10 ** 8):08d}',
                mobile_verified=rng.random() < 0.7, age=rng.randint(4, 80),
                gender=rng.choice(['male', 'female', 'other']),
                email=f"{name.lower().replace(' ', '.')}{i}@example.com",
                known_allergies=rng.choice(['', 'Dust', 'Penicillin', 'Peanuts']),
                medical_history=rng.choice(['', 'Asthma', 'Migraine', 'Hypertension']),
            ))
        self.stdout.write(f'created {len(patients)} patients')
        return patients

    def create_appointments(self, doctor, patients, rng):
        today = timezone.localdate()
        n = 0
        for day_offset in range(-30, 8):
            day = today + timedelta(days=day_offset)
            for slot in rng.sample(range(9, 17), k=min(3, len(patients))):
                patient = rng.choice(patients)
                if day_offset < 0:
                    status = rng.choice([Appointment.STATUS_COMPLETED] * 4 + [Appointment.STATUS_NO_SHOW,
                                                                              Appointment.STATUS_CANCELLED])
                else:
                    status = Appointment.STATUS_SCHEDULED
                Appointment.objects.create(doctor=doctor, patient=patient, patient_name=patient.full_name,
                                           date=day, start_time=time(slot, 0), end_time=time(slot, 30),
                                           status=status)
                if status == Appointment.STATUS_COMPLETED and (not patient.last_visit or patient.last_visit < day):
                    patient.last_visit = day
                    patient.save(update_fields=['last_visit'])
                n += 1
        self.stdout.write(f'created {n} appointments')

    def create_prescriptions(self, doctor, patients, rng):
        out = []
        for patient in patients:
            meds = [dict(zip(('name', 'dosage', 'frequency', 'duration'), m))
                    for m in rng.sample(MEDICINES, k=rng.randint(1, 3))]
            out.append(Prescription.objects.create(
                doctor=doctor, patient=patient, patient_name=patient.full_name, medicines=meds,
                instructions='Avoid coffee and strong smells while on medication.',
                follow_up_date=timezone.localdate() + timedelta(days=rng.randint(7, 21)),
            ))
        self.stdout.write(f'created {len(out)} prescriptions')
        return out

    def create_bills(self, doctor, prescriptions, rng):
        now = timezone.now()
        for rx in prescriptions:
            paid = rng.random() < 0.6
            Bill.objects.create(
                doctor=doctor, patient=rx.patient, prescription=rx, patient_name=rx.patient_name,
                amount=rng.choice([30000, 50000, 75000, 120000]), description='Consultation and medicines',
                status=Bill.STATUS_PAID if paid else Bill.STATUS_PENDING,
                payment_method=rng.choice(['cash', 'upi', 'card']) if paid else None,
                paid_at=now - timedelta(days=rng.randint(0, 40)) if paid else None,
            )
        self.stdout.write(f'created {len(prescriptions)} bills')

    def create_announcements(self):
        now = timezone.now()
        items = [
            ('WhatsApp reminders are live', 'Send appointment reminders over WhatsApp.', 'feature', True),
            ('Scheduled maintenance', 'The service will be briefly unavailable on Sunday 02:00 IST.',
             'maintenance', False),
            ('New SMS pricing', 'SMS now costs Rs. 1.50 per message.', 'pricing', False),
        ]
        for title, content, category, pinned in items:
            Announcement.objects.get_or_create(title=title, defaults={
                'content': content, 'category': category, 'is_pinned': pinned, 'published_at': now,
            })

    def create_feedback(self, doctor):
        Feedback.objects.get_or_create(doctor=doctor, title='Export patients to CSV', defaults={
            'type': 'feature', 'description': 'Please add a CSV export of the patient list.',
        })
