"""
Permission classes for role and tenant based access control.
"""
from rest_framework.permissions import BasePermission, SAFE_METHODS

CLINIC_ROLES = {"doctor", "staff"}


def is_platform_admin(user) -> bool:
    return bool(user and user.is_authenticated and (getattr(user, "role", None) == "admin" or user.is_superuser))


class IsPlatformAdmin(BasePermission):
    """Allow access only to platform administrators."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return is_platform_admin(getattr(request, "user", None))


class IsClinicMember(BasePermission):
    """Doctor or clinic staff (or a platform admin acting on their behalf)."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        if not (user and user.is_authenticated):
            return False
        return getattr(user, "role", None) in CLINIC_ROLES or is_platform_admin(user)


class IsDoctor(BasePermission):
    """Only the clinic owner; staff may not manage integrations."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) == "doctor")


class IsAdminOrReadOnly(BasePermission):
    """Anyone authenticated may read; only platform admins may write."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        if request.method in SAFE_METHODS:
            user = getattr(request, "user", None)
            return bool(user and user.is_authenticated)
        return is_platform_admin(getattr(request, "user", None))

