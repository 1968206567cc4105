"""Serializers for appointments, prescriptions and bills."""
from django.utils import timezone
from rest_framework import serializers

from core.models import Appointment, Bill, Patient, Prescription
from core.serializers.patient import clean_text


class ClinicScopedMixin:
    """Restrict ``patient_id`` (and ``prescription_id``) to the caller's clinic.

    The view passes ``clinic_id`` in the serializer context; ``None`` means
    a platform admin and leaves the querysets unrestricted.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        clinic_id = self.context.get('clinic_id')
        if clinic_id is None:
            return
        if 'patient_id' in self.fields:
            self.fields['patient_id'].queryset = Patient.objects.filter(doctor_id=clinic_id)
        if 'prescription_id' in self.fields:
            self.fields['prescription_id'].queryset = Prescription.objects.filter(doctor_id=clinic_id)


class AppointmentSerializer(ClinicScopedMixin, serializers.ModelSerializer):
    patient_id = serializers.PrimaryKeyRelatedField(source='patient', queryset=Patient.objects.all())
    start_time = serializers.TimeField(format='%H:%M', input_formats=['%H:%M', '%H:%M:%S'])
    end_time = serializers.TimeField(format='%H:%M', input_formats=['%H:%M', '%H:%M:%S'])

    class Meta:
        model = Appointment
        fields = ['id', 'patient_id', 'patient_name', 'date', 'start_time', 'end_time', 'status', 'notes',
                  'created_at', 'updated_at']
        read_only_fields = ['id', 'patient_name', 'created_at', 'updated_at']

    def validate_notes(self, v):
        return clean_text(v)

    def validate(self, attrs):
        start = attrs.get('start_time', getattr(self.instance, 'start_time', None))
        end = attrs.get('end_time', getattr(self.instance, 'end_time', None))
        if start and end and end <= start:
            raise serializers.ValidationError({'end_time': 'End time must be after start time.'})
        return attrs


class AppointmentStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Appointment.STATUS_CHOICES)


class AppointmentQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
    # ``from``/``to`` are reserved words, mapped in the view
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    status = serializers.ChoiceField(choices=Appointment.STATUS_CHOICES, required=False)
    patient_id = serializers.IntegerField(required=False, min_value=1)


class MedicineSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    dosage = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    frequency = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    duration = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')

    def validate(self, attrs):
        return {k: clean_text(v) for k, v in attrs.items()}


class PrescriptionSerializer(ClinicScopedMixin, serializers.ModelSerializer):
    patient_id = serializers.PrimaryKeyRelatedField(source='patient', queryset=Patient.objects.all())
    medicines = MedicineSerializer(many=True, allow_empty=False)

    class Meta:
        model = Prescription
        fields = ['id', 'patient_id', 'patient_name', 'medicines', 'instructions', 'follow_up_date', 'status',
                  'created_at', 'updated_at']
        read_only_fields = ['id', 'patient_name', 'created_at', 'updated_at']

    def validate_instructions(self, v):
        return clean_text(v)

    def validate_patient_id(self, patient):
        if self.instance is not None and patient.pk != self.instance.patient_id:
            raise serializers.ValidationError('A prescription cannot be moved to another patient.')
        return patient

    def create(self, validated_data):
        validated_data['medicines'] = [dict(m) for m in validated_data['medicines']]
        return super().create(validated_data)

    def update(self, instance, validated_data):
        if 'medicines' in validated_data:
            validated_data['medicines'] = [dict(m) for m in validated_data['medicines']]
        return super().update(instance, validated_data)


class BillSerializer(ClinicScopedMixin, serializers.ModelSerializer):
    patient_id = serializers.PrimaryKeyRelatedField(source='patient', queryset=Patient.objects.all())
    prescription_id = serializers.PrimaryKeyRelatedField(
        source='prescription', queryset=Prescription.objects.all(), required=False, allow_null=True
    )
    amount = serializers.IntegerField(min_value=1)
    payment_method = serializers.ChoiceField(
        choices=Bill.PAYMENT_METHOD_CHOICES, required=False, allow_null=True, allow_blank=True
    )

    class Meta:
        model = Bill
        fields = ['id', 'patient_id', 'prescription_id', 'patient_name', 'amount', 'description', 'status',
                  'payment_method', 'created_at', 'updated_at', 'paid_at']
        read_only_fields = ['id', 'patient_name', 'created_at', 'updated_at']

    def validate_description(self, v):
        v = clean_text(v)
        if not v:
            raise serializers.ValidationError('Description is required.')
        return v

    def validate_payment_method(self, v):
        return v or None

    def validate(self, attrs):
        patient = attrs.get('patient', getattr(self.instance, 'patient', None))
        rx = attrs.get('prescription', getattr(self.instance, 'prescription', None))
        if rx is not None and patient is not None and rx.patient_id != patient.pk:
            raise serializers.ValidationError({'prescription_id': 'Prescription belongs to another patient.'})

        status = attrs.get('status', getattr(self.instance, 'status', Bill.STATUS_PENDING))
        if status == Bill.STATUS_PAID:
            if not attrs.get('paid_at'):
                attrs['paid_at'] = getattr(self.instance, 'paid_at', None) or timezone.now()
        else:
            attrs['paid_at'] = None
        return attrs


class BillQuerySerializer(serializers.Serializer):
    patient_id = serializers.IntegerField(required=False, min_value=1)
    status = serializers.ChoiceField(choices=Bill.STATUS_CHOICES, required=False)
