from rest_framework import serializers

from core.models import Document
from core.serializers.patient import clean_text


class SignUploadSerializer(serializers.Serializer):
    filename = serializers.CharField(max_length=255)
    content_type = serializers.CharField(max_length=128)
    size_bytes = serializers.IntegerField(min_value=1)
    patient_id = serializers.IntegerField(min_value=1)
    document_type = serializers.ChoiceField(choices=Document.TYPE_CHOICES, required=False, default='other')
    description = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_filename(self, v):
        v = clean_text(v).replace('/', '_').replace('\\', '_')
        if not v:
            raise serializers.ValidationError('filename is required')
        return v

    def validate_content_type(self, v):
        return v.strip().lower()

    def validate_description(self, v):
        return clean_text(v)


class ConfirmUploadSerializer(serializers.Serializer):
    document_id = serializers.IntegerField(min_value=1)


class DocumentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Document
        fields = ['id', 'patient', 'filename', 'content_type', 'document_type', 'description', 'size_bytes',
                  'key', 'is_uploaded', 'uploaded_at', 'created_at']
        read_only_fields = ['id', 'patient', 'content_type', 'size_bytes', 'key', 'is_uploaded',
                            'uploaded_at', 'created_at']

    def validate_filename(self, v):
        v = clean_text(v).replace('/', '_').replace('\\', '_')
        if not v:
            raise serializers.ValidationError('filename cannot be empty')
        return v

    def validate_description(self, v):
        return clean_text(v)
