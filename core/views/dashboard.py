"""
Dashboard cards and period reports.

Both payloads are cached per clinic for ``STATS_CACHE_SECONDS`` and can be
warmed ahead of time with ``manage.py refresh_caches``.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from core.permissions import IsClinicMember, is_platform_admin
from core.services import stats


def _doctor_id(request):
    # admins get platform-wide figures
    return None if is_platform_admin(request.user) else request.user.clinic_id


@api_view(['GET'])
@permission_classes([IsClinicMember])
def dashboard_stats(request):
    return Response(stats.cached_dashboard_stats(_doctor_id(request)))


@api_view(['GET'])
@permission_classes([IsClinicMember])
def reports(request):
    period = request.query_params.get('period', 'monthly')
    if period not in stats.PERIODS:
        raise ValidationError({'period': f"period must be one of {', '.join(stats.PERIODS)}"})
    return Response(stats.cached_period_report(_doctor_id(request), period))
