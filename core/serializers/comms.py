"""Serializers for announcements, feedback, OTP and outbound messaging."""
import bleach
from rest_framework import serializers

from core.models import Announcement, Feedback, MessageLog
from core.serializers.patient import clean_text, normalise_mobile


def bleach_markup(v):
    return bleach.clean(v or '', tags=['b', 'i', 'em', 'strong', 'a', 'p', 'br', 'ul', 'ol', 'li'],
                        attributes={'a': ['href', 'title']}, strip=True)


class AnnouncementSerializer(serializers.ModelSerializer):
    author = serializers.SerializerMethodField()

    class Meta:
        model = Announcement
        fields = ['id', 'title', 'content', 'category', 'is_pinned', 'published_at', 'author',
                  'created_at', 'updated_at']
        read_only_fields = ['id', 'author', 'created_at', 'updated_at']

    def get_author(self, obj):
        u = obj.created_by
        return (u.get_full_name() or u.username) if u else None

    def validate_title(self, v):
        v = clean_text(v)
        if not v:
            raise serializers.ValidationError('Title is required.')
        return v

    def validate_content(self, v):
        return bleach_markup(v)


class FeedbackSerializer(serializers.ModelSerializer):
    doctor_name = serializers.SerializerMethodField()

    class Meta:
        model = Feedback
        fields = ['id', 'doctor', 'doctor_name', 'title', 'type', 'description', 'status', 'created_at', 'updated_at']
        read_only_fields = ['id', 'doctor', 'doctor_name', 'created_at', 'updated_at']

    def get_doctor_name(self, obj):
        return obj.doctor.get_full_name() or obj.doctor.username

    def validate_title(self, v):
        v = clean_text(v)
        if not v:
            raise serializers.ValidationError('Title is required.')
        return v

    def validate_description(self, v):
        v = clean_text(v)
        if not v:
            raise serializers.ValidationError('Description is required.')
        return v


class FeedbackQuerySerializer(serializers.Serializer):
    doctor_id = serializers.IntegerField(required=False, min_value=1)
    status = serializers.ChoiceField(choices=Feedback.STATUS_CHOICES, required=False)
    type = serializers.ChoiceField(choices=Feedback.TYPE_CHOICES, required=False)


class SendOtpSerializer(serializers.Serializer):
    mobile = serializers.CharField(max_length=32)

    def validate_mobile(self, v):
        return normalise_mobile(v)


class VerifyOtpSerializer(SendOtpSerializer):
    otp = serializers.RegexField(r'^\d{6}$', error_messages={'invalid': 'OTP must be 6 digits.'})


SENDABLE_TYPES = ['reminder', 'health-tip', 'follow-up', 'announcement']


class SendMessageSerializer(serializers.Serializer):
    channel = serializers.ChoiceField(choices=MessageLog.CHANNEL_CHOICES)
    type = serializers.ChoiceField(choices=SENDABLE_TYPES, default='announcement')
    message = serializers.CharField(max_length=4000)
    subject = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')
    recipient = serializers.CharField(required=False, allow_blank=True, max_length=255)
    patient_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False)
    all_patients = serializers.BooleanField(required=False, default=False)

    def validate_message(self, v):
        v = clean_text(v)
        if not v:
            raise serializers.ValidationError('Message cannot be empty.')
        return v

    def validate(self, attrs):
        if not (attrs.get('recipient') or attrs.get('patient_ids') or attrs.get('all_patients')):
            raise serializers.ValidationError('Choose a recipient, patient_ids or all_patients.')
        recipient = (attrs.get('recipient') or '').strip()
        if recipient:
            try:
                if attrs['channel'] == 'email':
                    attrs['recipient'] = serializers.EmailField().run_validation(recipient).lower()
                else:
                    attrs['recipient'] = normalise_mobile(recipient)
            except serializers.ValidationError as e:
                raise serializers.ValidationError({'recipient': e.detail})
        return attrs


class MessageLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = MessageLog
        fields = ['id', 'patient', 'channel', 'message_type', 'recipient', 'subject', 'body', 'cost', 'status',
                  'provider_message_id', 'error', 'sent_at']
        read_only_fields = fields


class MessageQuerySerializer(serializers.Serializer):
    channel = serializers.ChoiceField(choices=MessageLog.CHANNEL_CHOICES, required=False)
    status = serializers.ChoiceField(choices=MessageLog.STATUS_CHOICES, required=False)
    patient_id = serializers.IntegerField(required=False, min_value=1)
