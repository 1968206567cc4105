"""
Database models for the clinic backend.

A doctor account *is* the clinic tenant: every patient, appointment,
prescription, bill, document and outbound message carries a ``doctor``
foreign key and API queries are always scoped by it.  Announcements are
platform wide and feedback flows from clinics to the platform team.
"""
from __future__ import annotations

import datetime
import os
import uuid

from django.contrib.auth.models import AbstractUser
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class User(AbstractUser):
    """Clinic owner, clinic staff member or platform administrator.

    ``doctor`` users own a clinic.  ``staff`` users work inside the clinic
    of ``clinic_owner`` and act on its records.  ``admin`` users operate
    the platform (announcements, feedback triage) and may read every
    clinic.
    """
    ROLE_DOCTOR = 'doctor'
    ROLE_STAFF = 'staff'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_STAFF, 'Clinic staff'),
        (ROLE_ADMIN, 'Platform administrator'),
    ]
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_DOCTOR, db_index=True)
    clinic_owner = models.ForeignKey(
        'self', null=True, blank=True, on_delete=models.CASCADE, related_name='staff_members'
    )

    # Clinic profile
    clinic_name = models.CharField(max_length=255, blank=True)
    clinic_logo = models.URLField(max_length=500, blank=True)
    phone = models.CharField(max_length=32, blank=True)
    address = models.TextField(blank=True)
    qualifications = models.CharField(max_length=255, blank=True)

    # Google sign-in
    google_sub = models.CharField(max_length=255, null=True, blank=True, unique=True)
    avatar_url = models.URLField(max_length=500, blank=True)

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"

    @property
    def clinic_id(self) -> int | None:
        """ID of the doctor account whose records this user works on."""
        if self.role == self.ROLE_STAFF:
            return self.clinic_owner_id
        return self.id


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Patient(TimeStampedModel):
    GENDER_CHOICES = [
        ('male', 'Male'),
        ('female', 'Female'),
        ('other', 'Other'),
    ]
    STATUS_ACTIVE = 'active'
    STATUS_INACTIVE = 'inactive'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_INACTIVE, 'Inactive'),
    ]

    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='patients')
    full_name = models.CharField(max_length=255)
    mobile_number = models.CharField(max_length=20, db_index=True)
    mobile_verified = models.BooleanField(default=False)
    age = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MinValueValidator(0), MaxValueValidator(150)]
    )
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, null=True, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    email = models.EmailField(null=True, blank=True)
    address = models.TextField(blank=True)
    emergency_contact = models.CharField(max_length=255, null=True, blank=True)
    known_allergies = models.TextField(blank=True)
    medical_history = models.TextField(blank=True)
    lifestyle_information = models.TextField(blank=True)
    last_visit = models.DateField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=['doctor', 'created_at'], name='core_patien_doctor__4f6d1e_idx'),
            models.Index(fields=['doctor', 'full_name'], name='core_patien_doctor__8a2c7b_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.full_name} ({self.mobile_number})"


class Appointment(TimeStampedModel):
    STATUS_SCHEDULED = 'scheduled'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_NO_SHOW = 'no-show'
    STATUS_CHOICES = [
        (STATUS_SCHEDULED, 'Scheduled'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_NO_SHOW, 'No show'),
    ]

    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='appointments')
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='appointments')
    patient_name = models.CharField(max_length=255)
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default=STATUS_SCHEDULED, db_index=True)
    notes = models.TextField(blank=True)

    class Meta:
        indexes = [
            models.Index(fields=['doctor', 'date', 'start_time'], name='core_appoin_doctor__1b9e3c_idx'),
            models.Index(fields=['patient', 'date'], name='core_appoin_patient_5d0a42_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.patient_name} on {self.date:%Y-%m-%d} {self.start_time:%H:%M}"


class Prescription(TimeStampedModel):
    STATUS_ACTIVE = 'active'
    STATUS_COMPLETED = 'completed'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_COMPLETED, 'Completed'),
    ]

    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='prescriptions')
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='prescriptions')
    patient_name = models.CharField(max_length=255)
    # list of {"name", "dosage", "frequency", "duration"}
    medicines = models.JSONField(default=list)
    instructions = models.TextField(blank=True)
    follow_up_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)

    class Meta:
        indexes = [models.Index(fields=['patient', 'created_at'], name='core_prescr_patient_7c41f0_idx')]

    def __str__(self) -> str:
        return f"Rx #{self.pk} for {self.patient_name} ({self.status})"


class Bill(models.Model):
    STATUS_PENDING = 'pending'
    STATUS_PAID = 'paid'
    STATUS_OVERDUE = 'overdue'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PAID, 'Paid'),
        (STATUS_OVERDUE, 'Overdue'),
    ]
    PAYMENT_METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('upi', 'UPI'),
        ('card', 'Card'),
        ('online', 'Online'),
    ]

    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='bills')
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='bills')
    prescription = models.ForeignKey(
        Prescription, null=True, blank=True, on_delete=models.SET_NULL, related_name='bills'
    )
    patient_name = models.CharField(max_length=255)
    # minor currency units (paise)
    amount = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    description = models.CharField(max_length=500)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    payment_method = models.CharField(max_length=10, choices=PAYMENT_METHOD_CHOICES, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=['doctor', 'status', 'created_at'], name='core_bill_doctor__e2a9d1_idx'),
            models.Index(fields=['patient', 'created_at'], name='core_bill_patient_3f8b6c_idx'),
        ]

    def __str__(self) -> str:
        return f"Bill #{self.pk} {self.amount} ({self.status})"


def document_key(doctor_id: int, filename: str) -> str:
    ext = os.path.splitext(filename)[1].lower()
    return f"{doctor_id}/{datetime.date.today().strftime('%Y/%m')}/{uuid.uuid4().hex}{ext}"


class Document(models.Model):
    TYPE_CHOICES = [
        ('report', 'Lab/clinical report'),
        ('prescription', 'Prescription scan'),
        ('scan', 'Imaging'),
        ('invoice', 'Invoice'),
        ('other', 'Other'),
    ]

    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='documents')
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='documents')
    filename = models.CharField(max_length=255)
    content_type = models.CharField(max_length=128)
    document_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='other')
    description = models.TextField(blank=True)
    size_bytes = models.PositiveBigIntegerField(default=0)
    key = models.CharField(max_length=512, unique=True)
    is_uploaded = models.BooleanField(default=False, db_index=True)
    uploaded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['patient', 'is_uploaded', 'created_at'], name='core_docume_patient_9d2e57_idx')]

    def __str__(self) -> str:
        return f"{self.filename} ({self.patient_id})"


class TreatmentProgress(models.Model):
    """A follow-up visit note recording how the patient responds."""
    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='progress_notes')
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='progress_notes')
    visit_date = models.DateField()
    symptoms = models.TextField(blank=True)
    improvement = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    next_follow_up = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-visit_date', '-id']

    def __str__(self) -> str:
        return f"Progress {self.patient_id} @ {self.visit_date:%Y-%m-%d}"


class OtpCode(models.Model):
    """One-time password issued to a mobile number.

    Only a salted hash of the code is stored.
    """
    mobile = models.CharField(max_length=20, db_index=True)
    code_hash = models.CharField(max_length=128)
    expires_at = models.DateTimeField()
    attempts = models.PositiveSmallIntegerField(default=0)
    consumed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['mobile', 'created_at'], name='core_otpcod_mobile_6a1f3e_idx')]

    def __str__(self) -> str:
        return f"otp {self.mobile} exp={self.expires_at:%F %T}"


class Announcement(models.Model):
    CATEGORY_CHOICES = [
        ('feature', 'Feature'),
        ('pricing', 'Pricing'),
        ('update', 'Update'),
        ('maintenance', 'Maintenance'),
        ('general', 'General'),
    ]
    title = models.CharField(max_length=255)
    content = models.TextField()
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='general')
    is_pinned = models.BooleanField(default=False)
    published_at = models.DateTimeField(null=True, blank=True, db_index=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.title


class Feedback(models.Model):
    TYPE_CHOICES = [
        ('suggestion', 'Suggestion'),
        ('feature', 'Feature request'),
        ('bug', 'Bug report'),
    ]
    STATUS_OPEN = 'open'
    STATUS_CHOICES = [
        (STATUS_OPEN, 'Open'),
        ('planned', 'Planned'),
        ('in_progress', 'In progress'),
        ('done', 'Done'),
    ]
    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='feedback')
    title = models.CharField(max_length=255)
    type = models.CharField(max_length=12, choices=TYPE_CHOICES, default='suggestion')
    description = models.TextField()
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default=STATUS_OPEN, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.title} [{self.type}/{self.status}]"


class MessageLog(models.Model):
    """One outbound message to one recipient on one channel."""
    CHANNEL_CHOICES = [
        ('whatsapp', 'WhatsApp'),
        ('email', 'Email'),
        ('sms', 'SMS'),
    ]
    TYPE_CHOICES = [
        ('reminder', 'Appointment reminder'),
        ('health-tip', 'Health tip'),
        ('follow-up', 'Follow-up'),
        ('announcement', 'Clinic announcement'),
        ('patient-info', 'Patient information'),
        ('otp', 'OTP'),
    ]
    STATUS_SENT = 'sent'
    STATUS_DELIVERED = 'delivered'
    STATUS_FAILED = 'failed'
    STATUS_CHOICES = [
        (STATUS_SENT, 'Sent'),
        (STATUS_DELIVERED, 'Delivered'),
        (STATUS_FAILED, 'Failed'),
    ]

    doctor = models.ForeignKey(User, null=True, blank=True, on_delete=models.CASCADE, related_name='messages')
    patient = models.ForeignKey(Patient, null=True, blank=True, on_delete=models.SET_NULL, related_name='messages')
    channel = models.CharField(max_length=10, choices=CHANNEL_CHOICES)
    message_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='announcement')
    recipient = models.CharField(max_length=255)
    subject = models.CharField(max_length=255, blank=True)
    body = models.TextField()
    cost = models.DecimalField(max_digits=8, decimal_places=2, default=0)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_SENT, db_index=True)
    provider_message_id = models.CharField(max_length=128, blank=True)
    error = models.CharField(max_length=500, blank=True)
    sent_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['doctor', 'sent_at'], name='core_messag_doctor__b7c0a4_idx')]

    def __str__(self) -> str:
        return f"{self.channel}->{self.recipient} ({self.status})"


class WhatsAppConnection(models.Model):
    """WhatsApp Business account linked to a clinic through Meta signup."""
    doctor = models.OneToOneField(User, on_delete=models.CASCADE, related_name='whatsapp')
    access_token = models.TextField()
    phone_number_id = models.CharField(max_length=64, blank=True)
    waba_id = models.CharField(max_length=64, blank=True)
    connected_phone = models.CharField(max_length=32, blank=True)
    business_name = models.CharField(max_length=255, blank=True)
    connected_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"wa:{self.phone_number_id} -> {self.doctor_id}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    ip = models.GenericIPAddressField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='core_audite_action_0c5e92_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='core_audite_object__a41d7f_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
