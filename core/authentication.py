"""
Authentication classes.

The API is called by a Next.js frontend holding JWTs issued by
``/api/auth/login/`` (or the Google / signup flows) and sending them as
``Authorization: Bearer <access>``.  Keeping these classes out of the
view modules avoids circular imports when REST framework loads the
``DEFAULT_AUTHENTICATION_CLASSES`` setting.
"""
from __future__ import annotations

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend
from rest_framework_simplejwt.authentication import JWTAuthentication


class BearerJWTAuthentication(JWTAuthentication):
    """JWT authentication that also rejects deactivated accounts.

    simplejwt already checks ``is_active``; the subclass exists to give the
    project a stable import path and to return a 401 header that names the
    scheme the frontend uses.
    """

    www_authenticate_realm = 'clinic'


class EmailOrUsernameBackend(ModelBackend):
    """Let doctors sign in with either their username or their email."""

    def authenticate(self, request, username=None, password=None, **kwargs):
        UserModel = get_user_model()
        login = username or kwargs.get(UserModel.EMAIL_FIELD)
        if not login or password is None:
            return None
        if '@' in login:
            user = UserModel.objects.filter(email__iexact=login).order_by('id').first()
        else:
            user = UserModel.objects.filter(username=login).first()
        if user is None:
            # Run the hasher anyway to keep timing uniform.
            UserModel().set_password(password)
            return None
        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None
