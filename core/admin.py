"""
Django admin registrations for the clinic models.
"""
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import (
    Announcement, Appointment, AuditEvent, Bill, Document, Feedback, MessageLog, OtpCode, Patient,
    Prescription, TreatmentProgress, User, WhatsAppConnection,
)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ('username', 'email', 'role', 'clinic_name', 'clinic_owner', 'is_active', 'is_superuser')
    list_filter = ('role', 'is_active', 'is_superuser')
    search_fields = ('username', 'email', 'first_name', 'last_name', 'clinic_name')
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Clinic', {'fields': ('role', 'clinic_owner', 'clinic_name', 'clinic_logo', 'phone', 'address',
                               'qualifications', 'google_sub', 'avatar_url')}),
    )


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('id', 'full_name', 'mobile_number', 'mobile_verified', 'doctor', 'status', 'created_at')
    list_filter = ('status', 'gender', 'mobile_verified')
    search_fields = ('full_name', 'mobile_number', 'email')
    raw_id_fields = ('doctor',)


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient_name', 'doctor', 'date', 'start_time', 'end_time', 'status')
    list_filter = ('status', 'date')
    search_fields = ('patient_name',)
    raw_id_fields = ('doctor', 'patient')


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient_name', 'doctor', 'status', 'follow_up_date', 'created_at')
    list_filter = ('status',)
    search_fields = ('patient_name',)
    raw_id_fields = ('doctor', 'patient')


@admin.register(Bill)
class BillAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient_name', 'doctor', 'amount', 'status', 'payment_method', 'created_at', 'paid_at')
    list_filter = ('status', 'payment_method')
    search_fields = ('patient_name', 'description')
    raw_id_fields = ('doctor', 'patient', 'prescription')


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    list_display = ('id', 'filename', 'patient', 'document_type', 'size_bytes', 'is_uploaded', 'created_at')
    list_filter = ('document_type', 'is_uploaded')
    search_fields = ('filename', 'key')
    raw_id_fields = ('doctor', 'patient')


@admin.register(TreatmentProgress)
class TreatmentProgressAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'visit_date', 'next_follow_up')
    raw_id_fields = ('doctor', 'patient')


@admin.register(OtpCode)
class OtpCodeAdmin(admin.ModelAdmin):
    list_display = ('id', 'mobile', 'expires_at', 'attempts', 'consumed_at', 'created_at')
    search_fields = ('mobile',)
    exclude = ('code_hash',)


@admin.register(Announcement)
class AnnouncementAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'category', 'is_pinned', 'published_at')
    list_filter = ('category', 'is_pinned')
    search_fields = ('title', 'content')


@admin.register(Feedback)
class FeedbackAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'type', 'status', 'doctor', 'created_at')
    list_filter = ('type', 'status')
    search_fields = ('title', 'description')


@admin.register(MessageLog)
class MessageLogAdmin(admin.ModelAdmin):
    list_display = ('id', 'channel', 'message_type', 'recipient', 'status', 'cost', 'sent_at')
    list_filter = ('channel', 'status', 'message_type')
    search_fields = ('recipient', 'provider_message_id')


@admin.register(WhatsAppConnection)
class WhatsAppConnectionAdmin(admin.ModelAdmin):
    list_display = ('doctor', 'connected_phone', 'business_name', 'connected_at')
    exclude = ('access_token',)


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('id', 'action', 'user', 'object_type', 'object_id', 'ip', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('action', 'user__username')
