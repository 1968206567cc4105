"""
Tenant scoping helpers.

Every clinical record hangs off the doctor account that owns the clinic.
Doctors act on their own records, staff act on their owner's records and
platform admins may read across clinics.  Objects outside the caller's
clinic are reported as missing, never as forbidden, so ids of other
clinics cannot be probed.
"""
from __future__ import annotations

from django.contrib.auth import get_user_model
from django.db.models import Model, QuerySet
from rest_framework.exceptions import NotFound, PermissionDenied

from core.permissions import is_platform_admin

User = get_user_model()


def clinic_owner(user) -> User:
    """Return the doctor account whose records ``user`` writes to."""
    if getattr(user, 'role', '') == 'staff':
        if not user.clinic_owner_id:
            raise PermissionDenied('staff account is not attached to a clinic')
        return user.clinic_owner
    if getattr(user, 'role', '') == 'doctor':
        return user
    raise PermissionDenied('only clinic accounts can manage clinical records')


def scope_to_clinic(user, qs: QuerySet, *, field: str = 'doctor') -> QuerySet:
    if is_platform_admin(user):
        return qs
    return qs.filter(**{f'{field}_id': getattr(user, 'clinic_id', None)})


def get_scoped_or_404(user, model: type[Model], pk, *, qs: QuerySet | None = None, label: str | None = None):
    base = qs if qs is not None else model.objects.all()
    obj = scope_to_clinic(user, base).filter(pk=pk).first()
    if obj is None:
        raise NotFound(f'{label or model.__name__.lower()} not found')
    return obj


def serializer_context(request) -> dict:
    """Context restricting related-object lookups to the caller's clinic."""
    user = request.user
    return {'request': request, 'clinic_id': None if is_platform_admin(user) else user.clinic_id}
