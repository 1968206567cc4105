from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

User = get_user_model()


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField(required=False, allow_blank=True)
    email = serializers.CharField(required=False, allow_blank=True)
    password = serializers.CharField(trim_whitespace=False)

    def validate(self, attrs):
        login = (attrs.get('username') or attrs.get('email') or '').strip()
        if not login:
            raise serializers.ValidationError({'username': 'username or email is required'})
        attrs['login'] = login
        return attrs

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('password is required')
        return v


class RefreshSerializer(serializers.Serializer):
    refresh_token = serializers.CharField(required=False)
    refresh = serializers.CharField(required=False)

    def validate(self, attrs):
        token = attrs.get('refresh_token') or attrs.get('refresh')
        if not token:
            raise serializers.ValidationError({'refresh_token': 'This field is required.'})
        return {'refresh': token}


class SignupSerializer(serializers.Serializer):
    email = serializers.CharField(error_messages={'required': 'Email, password, and full name are required'})
    password = serializers.CharField(trim_whitespace=False, error_messages={'required': 'Email, password, and full name are required'})
    full_name = serializers.CharField(max_length=300, error_messages={'required': 'Email, password, and full name are required'})

    def validate_email(self, v):
        v = (v or '').strip().lower()
        try:
            serializers.EmailField().run_validation(v)
        except serializers.ValidationError:
            raise serializers.ValidationError('Invalid email format')
        return v

    def validate_password(self, v):
        if len(v or '') < 6:
            raise serializers.ValidationError('Password must be at least 6 characters long')
        return v

    def validate_full_name(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('Full name is required')
        return v


class GoogleLoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    name = serializers.CharField(max_length=300, required=False, allow_blank=True)
    sub = serializers.CharField(max_length=255)
    picture = serializers.URLField(required=False, allow_blank=True, max_length=500)
    id_token = serializers.CharField(required=False, allow_blank=True)

    def validate_email(self, v):
        return v.strip().lower()


class ProfileSerializer(serializers.ModelSerializer):
    full_name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email', 'first_name', 'last_name', 'full_name', 'role',
            'clinic_name', 'clinic_logo', 'phone', 'address', 'qualifications', 'avatar_url',
            'date_joined', 'last_login',
        ]
        read_only_fields = ['id', 'username', 'role', 'date_joined', 'last_login', 'avatar_url']

    def get_full_name(self, obj):
        return obj.get_full_name() or obj.username

    def validate_email(self, v):
        v = (v or '').strip().lower()
        if v and User.objects.filter(email__iexact=v).exclude(pk=self.instance.pk).exists():
            raise serializers.ValidationError('An account with this email already exists')
        return v


class ChangePasswordSerializer(serializers.Serializer):
    old_password = serializers.CharField(trim_whitespace=False)
    new_password = serializers.CharField(trim_whitespace=False)

    def validate(self, attrs):
        user = self.context['request'].user
        if not user.check_password(attrs['old_password']):
            raise serializers.ValidationError({'old_password': 'Current password is incorrect'})
        try:
            validate_password(attrs['new_password'], user=user)
        except DjangoValidationError as e:
            raise serializers.ValidationError({'new_password': e.messages})
        return attrs


class ForgotPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()


class ResetPasswordSerializer(serializers.Serializer):
    token = serializers.CharField()
    new_password = serializers.CharField(trim_whitespace=False)
