"""
Authentication endpoints.

Credentials are exchanged for a SimpleJWT access/refresh pair.  Responses
use ``access_token``/``refresh_token`` as the frontend client expects;
the Google endpoint additionally mirrors them as ``access``/``refresh``.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import AuthenticationFailed, ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from core.serializers.auth import (
    ChangePasswordSerializer, ForgotPasswordSerializer, GoogleLoginSerializer, LoginSerializer,
    ProfileSerializer, RefreshSerializer, ResetPasswordSerializer, SignupSerializer,
)
from core.services import accounts
from core.services.audit import log_action
from core.services.google import GoogleTokenError, check_profile

logger = logging.getLogger(__name__)

RESET_MESSAGE = 'If an account exists for this email, a password reset link has been sent.'


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    """Username or email + password login.  Any role sent by the client is ignored."""
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    login = s.validated_data['login']

    user = authenticate(request, username=login, password=s.validated_data['password'])
    if not user:
        log_action(user=None, action='login', object_type='user',
                   detail={'result': 'fail', 'login': login}, request=request)
        raise ValidationError('Invalid username or password')

    log_action(user=user, action='login', object_type='user', object_id=user.id,
               detail={'result': 'ok'}, request=request)
    return Response({**accounts.issue_tokens(user), 'user': accounts.user_payload(user)})

login_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def refresh_view(request):
    s = RefreshSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    inner = TokenRefreshSerializer(data=s.validated_data)
    try:
        inner.is_valid(raise_exception=True)
    except TokenError as e:
        raise AuthenticationFailed(str(e))
    payload = {'access_token': inner.validated_data['access']}
    if 'refresh' in inner.validated_data:
        payload['refresh_token'] = inner.validated_data['refresh']
    return Response(payload)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_view(request):
    """Blacklist the given refresh token, or all of the user's outstanding tokens."""
    token = request.data.get('refresh_token') or request.data.get('refresh')
    count = 0
    if token:
        try:
            rt = RefreshToken(token)
        except TokenError:
            raise ValidationError({'refresh_token': 'Token is invalid or expired'})
        if str(rt.get('user_id')) != str(request.user.pk):
            raise ValidationError({'refresh_token': 'Token does not belong to this user'})
        rt.blacklist()
        count = 1
    else:
        for ot in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=ot)
            count += int(created)
    log_action(user=request.user, action='logout', object_type='user', object_id=request.user.id,
               detail={'blacklisted': count}, request=request)
    return Response({'message': 'Logged out', 'blacklisted': count})


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def profile_view(request):
    if request.method == 'GET':
        return Response(ProfileSerializer(request.user).data)
    s = ProfileSerializer(request.user, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    s.save()
    log_action(user=request.user, action='profile_update', object_type='user', object_id=request.user.id,
               detail={'fields': sorted(s.validated_data)}, request=request)
    return Response(s.data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def change_password_view(request):
    s = ChangePasswordSerializer(data=request.data, context={'request': request})
    s.is_valid(raise_exception=True)
    request.user.set_password(s.validated_data['new_password'])
    request.user.save(update_fields=['password'])
    log_action(user=request.user, action='password_change', object_type='user', object_id=request.user.id,
               request=request)
    return Response({'message': 'Password updated successfully'})


@api_view(['POST'])
@permission_classes([AllowAny])
def forgot_password_view(request):
    s = ForgotPasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    accounts.send_reset_email(s.validated_data['email'])
    return Response({'message': RESET_MESSAGE})

forgot_password_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def reset_password_view(request):
    s = ResetPasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = accounts.user_for_reset_token(s.validated_data['token'])
    if user is None:
        raise ValidationError({'token': 'Reset link is invalid or has expired'})
    try:
        validate_password(s.validated_data['new_password'], user=user)
    except DjangoValidationError as e:
        raise ValidationError({'new_password': e.messages})
    user.set_password(s.validated_data['new_password'])
    user.save(update_fields=['password'])
    log_action(user=user, action='password_reset', object_type='user', object_id=user.id, request=request)
    return Response({'message': 'Password has been reset successfully'})


@api_view(['POST'])
@permission_classes([AllowAny])
def signup_view(request):
    s = SignupSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = accounts.signup(**s.validated_data)
    log_action(user=user, action='signup', object_type='user', object_id=user.id, request=request)
    return Response({
        'message': 'User created successfully',
        'created': True,
        'user': {'email': user.email, 'full_name': s.validated_data['full_name'], 'sub_id': None},
        **accounts.issue_tokens(user),
    }, status=201)

signup_view.cls.throttle_scope = 'signup'


@api_view(['POST'])
@permission_classes([AllowAny])
def oauth_login_view(request):
    """Sign in (or sign up) with a Google profile."""
    s = GoogleLoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    try:
        check_profile(vd['sub'], vd['email'], vd.get('id_token'))
    except GoogleTokenError as e:
        log_action(user=None, action='google_login', detail={'result': 'fail', 'reason': str(e)}, request=request)
        raise AuthenticationFailed(f'Google sign-in failed: {e}')

    user, created = accounts.google_login(email=vd['email'], sub=vd['sub'], name=vd.get('name', ''),
                                          picture=vd.get('picture', ''))
    tokens = accounts.issue_tokens(user)
    log_action(user=user, action='google_login', object_type='user', object_id=user.id,
               detail={'created': created}, request=request)
    return Response({
        **tokens,
        'access': tokens['access_token'],
        'refresh': tokens['refresh_token'],
        'created': created,
        'doctor_id': user.id,
        'user': {'email': user.email, 'full_name': user.get_full_name() or user.username,
                 'sub_id': user.google_sub},
    }, status=201 if created else 200)

oauth_login_view.cls.throttle_scope = 'login'
