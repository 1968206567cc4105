import re

import bleach
from rest_framework import serializers

from core.models import Patient, TreatmentProgress

MOBILE_RE = re.compile(r'^\+?\d{8,15}$')

# frontend packet name -> model field
PATIENT_ALIASES = {
    'name': 'full_name',
    'mobile': 'mobile_number',
    'allergies': 'known_allergies',
    'medicalHistory': 'medical_history',
    'lifestyle': 'lifestyle_information',
    'emergencyContact': 'emergency_contact',
}

FREE_TEXT = ('address', 'known_allergies', 'medical_history', 'lifestyle_information', 'emergency_contact')


def clean_text(v):
    if v is None:
        return v
    return bleach.clean(str(v).strip(), tags=[], strip=True)


def normalise_mobile(v: str) -> str:
    v = re.sub(r'[\s\-()]', '', (v or '').strip())
    if not MOBILE_RE.match(v):
        raise serializers.ValidationError('Enter a valid mobile number (8-15 digits, optional +).')
    return v


class PatientSerializer(serializers.ModelSerializer):
    verification_token = serializers.CharField(write_only=True, required=False, allow_blank=True)

    class Meta:
        model = Patient
        fields = [
            'id', 'doctor', 'full_name', 'mobile_number', 'mobile_verified', 'age', 'gender', 'status',
            'email', 'address', 'emergency_contact', 'known_allergies', 'medical_history',
            'lifestyle_information', 'last_visit', 'created_at', 'updated_at', 'verification_token',
        ]
        read_only_fields = ['id', 'doctor', 'mobile_verified', 'created_at', 'updated_at']
        extra_kwargs = {'gender': {'allow_blank': True}}

    def to_internal_value(self, data):
        if hasattr(data, 'dict'):
            data = data.dict()
        data = dict(data)
        for alias, field in PATIENT_ALIASES.items():
            if alias in data and field not in data:
                data[field] = data.pop(alias)
        if data.get('gender') == '':
            data['gender'] = None
        return super().to_internal_value(data)

    def validate_full_name(self, v):
        v = clean_text(v)
        if not v:
            raise serializers.ValidationError('Name is required.')
        return v

    def validate_mobile_number(self, v):
        return normalise_mobile(v)

    def validate(self, attrs):
        for field in FREE_TEXT:
            if field in attrs and attrs[field] is not None:
                attrs[field] = clean_text(attrs[field])
        return attrs


class PatientListQuerySerializer(serializers.Serializer):
    ORDERING = ('full_name', 'created_at', 'age', 'last_visit')

    search = serializers.CharField(required=False, allow_blank=True, max_length=100)
    status = serializers.ChoiceField(choices=Patient.STATUS_CHOICES, required=False)
    ordering = serializers.CharField(required=False, allow_blank=True)

    def validate_ordering(self, v):
        if not v:
            return '-created_at'
        if v.lstrip('-') not in self.ORDERING:
            raise serializers.ValidationError(f"ordering must be one of {', '.join(self.ORDERING)}")
        return v


class SendInfoSerializer(serializers.Serializer):
    method = serializers.ChoiceField(choices=['whatsapp', 'sms', 'email'])
    message = serializers.CharField(max_length=4000)
    subject = serializers.CharField(required=False, allow_blank=True, max_length=255)


class CompletePrescriptionsSerializer(serializers.Serializer):
    exclude_id = serializers.IntegerField(required=False, allow_null=True)


class TreatmentProgressSerializer(serializers.ModelSerializer):
    class Meta:
        model = TreatmentProgress
        fields = ['id', 'patient', 'visit_date', 'symptoms', 'improvement', 'notes', 'next_follow_up', 'created_at']
        read_only_fields = ['id', 'patient', 'created_at']

    def validate(self, attrs):
        for field in ('symptoms', 'improvement', 'notes'):
            if field in attrs:
                attrs[field] = clean_text(attrs[field])
        visit = attrs.get('visit_date', getattr(self.instance, 'visit_date', None))
        nxt = attrs.get('next_follow_up')
        if visit and nxt and nxt < visit:
            raise serializers.ValidationError({'next_follow_up': 'Follow-up must be on or after the visit date.'})
        return attrs
