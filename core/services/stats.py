"""
Dashboard cards and period reports.

All figures are computed per clinic (``doctor_id``) or across the platform
when ``doctor_id`` is ``None``.  Money is kept in paise and only formatted
for the ``cards`` list the dashboard renders as is.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta

from django.conf import settings
from django.core.cache import cache
from django.db.models import Count, Sum
from django.utils import timezone

from core.models import Appointment, Bill, Patient

logger = logging.getLogger(__name__)

PERIODS = ('daily', 'weekly', 'monthly', 'quarterly', 'yearly')
PREVIOUS_LABEL = {
    'daily': 'yesterday', 'weekly': 'last week', 'monthly': 'last month',
    'quarterly': 'last quarter', 'yearly': 'last year',
}


def _scope(qs, doctor_id):
    return qs if doctor_id is None else qs.filter(doctor_id=doctor_id)


def _aware(d: date) -> datetime:
    return timezone.make_aware(datetime.combine(d, time.min))


def _add_months(d: date, n: int) -> date:
    m = d.month - 1 + n
    return date(d.year + m // 12, m % 12 + 1, 1)


def period_bounds(period: str, today: date) -> tuple[date, date, date]:
    """Return ``(previous_start, start, end)`` of the period containing ``today``."""
    if period == 'daily':
        start = today
        return start - timedelta(days=1), start, start + timedelta(days=1)
    if period == 'weekly':
        start = today - timedelta(days=today.weekday())
        return start - timedelta(days=7), start, start + timedelta(days=7)
    if period == 'monthly':
        start = today.replace(day=1)
        return _add_months(start, -1), start, _add_months(start, 1)
    if period == 'quarterly':
        start = date(today.year, 3 * ((today.month - 1) // 3) + 1, 1)
        return _add_months(start, -3), start, _add_months(start, 3)
    if period == 'yearly':
        start = date(today.year, 1, 1)
        return date(today.year - 1, 1, 1), start, date(today.year + 1, 1, 1)
    raise ValueError(f'unknown period {period}')


def pct_change(current, previous) -> float:
    if not previous:
        return 100.0 if current else 0.0
    return round((current - previous) * 100.0 / previous, 1)


def format_inr(paise: int) -> str:
    """``12450000`` -> ``'₹1,24,500'`` (Indian digit grouping)."""
    rupees = int(round((paise or 0) / 100))
    s = str(abs(rupees))
    if len(s) > 3:
        head, tail = s[:-3], s[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        s = ','.join(groups + [tail])
    return f"{'-' if rupees < 0 else ''}₹{s}"


def new_patients(doctor_id, start: date, end: date) -> int:
    return _scope(Patient.objects, doctor_id).filter(created_at__gte=_aware(start), created_at__lt=_aware(end)).count()


def completed_appointments(doctor_id, start: date, end: date) -> int:
    return _scope(Appointment.objects, doctor_id).filter(
        status=Appointment.STATUS_COMPLETED, date__gte=start, date__lt=end).count()


def revenue(doctor_id, start: date, end: date) -> int:
    return _scope(Bill.objects, doctor_id).filter(
        status=Bill.STATUS_PAID, paid_at__gte=_aware(start), paid_at__lt=_aware(end),
    ).aggregate(total=Sum('amount'))['total'] or 0


def retention(doctor_id, end: date) -> float:
    """Share of patients seen before ``end`` who came back at least once."""
    visits = (_scope(Appointment.objects, doctor_id)
              .filter(date__lt=end)
              .exclude(status=Appointment.STATUS_CANCELLED)
              .values('patient_id').annotate(n=Count('id')))
    seen = returning = 0
    for row in visits:
        seen += 1
        if row['n'] > 1:
            returning += 1
    return round(returning * 100.0 / seen, 1) if seen else 0.0


def _change_type(delta: float) -> str:
    if delta > 0:
        return 'positive'
    if delta < 0:
        return 'negative'
    return 'neutral'


def _signed(delta: float) -> str:
    return f"{'+' if delta > 0 else ''}{delta:g}%"


def dashboard_stats(doctor_id) -> dict:
    today = timezone.localdate()
    prev_start, start, end = period_bounds('monthly', today)
    total = _scope(Patient.objects, doctor_id).count()
    new_change = pct_change(new_patients(doctor_id, start, end), new_patients(doctor_id, prev_start, start))
    todays = _scope(Appointment.objects, doctor_id).filter(date=today)
    todays_total = todays.count()
    todays_scheduled = todays.filter(status=Appointment.STATUS_SCHEDULED).count()
    rev = revenue(doctor_id, start, end)
    rev_change = pct_change(rev, revenue(doctor_id, prev_start, start))
    ret = retention(doctor_id, end)
    ret_change = round(ret - retention(doctor_id, start), 1)
    return {
        'total_patients': total,
        'new_patients_change': new_change,
        'todays_appointments': todays_total,
        'todays_scheduled': todays_scheduled,
        'monthly_revenue': rev,
        'revenue_change': rev_change,
        'retention': ret,
        'retention_change': ret_change,
        'cards': [
            {'title': 'Total Patients', 'value': f'{total:,}',
             'change': f'{_signed(new_change)} from last month', 'changeType': _change_type(new_change)},
            {'title': "Today's Appointments", 'value': str(todays_total),
             'change': f'{todays_scheduled} still scheduled', 'changeType': 'neutral'},
            {'title': 'Monthly Revenue', 'value': format_inr(rev),
             'change': f'{_signed(rev_change)} from last month', 'changeType': _change_type(rev_change)},
            {'title': 'Patient Retention', 'value': f'{ret:g}%',
             'change': f'{_signed(ret_change)} from last month', 'changeType': _change_type(ret_change)},
        ],
        'generated_at': timezone.now().isoformat(),
    }


def revenue_series(doctor_id, months: int, today: date) -> list[dict]:
    first = _add_months(today.replace(day=1), -(months - 1))
    out = []
    for i in range(months):
        s, e = _add_months(first, i), _add_months(first, i + 1)
        out.append({'month': s.strftime('%Y-%m'), 'revenue': revenue(doctor_id, s, e)})
    return out


def period_report(doctor_id, period: str) -> dict:
    today = timezone.localdate()
    prev_start, start, end = period_bounds(period, today)
    label = PREVIOUS_LABEL[period]

    def metric(key, title, current, previous, value=None):
        change = pct_change(current, previous)
        return {'key': key, 'title': title, 'current': current, 'previous': previous, 'change': change,
                'value': value if value is not None else str(current),
                'change_label': f'{_signed(change)} from {label}', 'changeType': _change_type(change)}

    rev_cur, rev_prev = revenue(doctor_id, start, end), revenue(doctor_id, prev_start, start)
    ret_cur, ret_prev = retention(doctor_id, end), retention(doctor_id, start)
    return {
        'period': period,
        'start': start.isoformat(),
        'end': (end - timedelta(days=1)).isoformat(),
        'metrics': [
            metric('new_patients', 'New Patients',
                   new_patients(doctor_id, start, end), new_patients(doctor_id, prev_start, start)),
            metric('appointments_completed', 'Appointments Completed',
                   completed_appointments(doctor_id, start, end), completed_appointments(doctor_id, prev_start, start)),
            metric('revenue', 'Revenue', rev_cur, rev_prev, value=format_inr(rev_cur)),
            metric('retention', 'Patient Retention', ret_cur, ret_prev, value=f'{ret_cur:g}%'),
        ],
        'series': revenue_series(doctor_id, 12 if period == 'yearly' else 6, today),
        'generated_at': timezone.now().isoformat(),
    }


def _key(doctor_id) -> str:
    return 'all' if doctor_id is None else str(doctor_id)


def dashboard_cache_key(doctor_id) -> str:
    return f'stats:dashboard:{_key(doctor_id)}'


def report_cache_key(doctor_id, period: str) -> str:
    return f'stats:report:{_key(doctor_id)}:{period}'


def cached_dashboard_stats(doctor_id) -> dict:
    ck = dashboard_cache_key(doctor_id)
    payload = cache.get(ck)
    if payload is None:
        payload = dashboard_stats(doctor_id)
        cache.set(ck, payload, settings.STATS_CACHE_SECONDS)
    return payload


def cached_period_report(doctor_id, period: str) -> dict:
    ck = report_cache_key(doctor_id, period)
    payload = cache.get(ck)
    if payload is None:
        payload = period_report(doctor_id, period)
        cache.set(ck, payload, settings.STATS_CACHE_SECONDS)
    return payload


def warm(doctor_ids) -> list[str]:
    """Recompute and store every stats payload for ``doctor_ids``."""
    keys = []
    for doctor_id in doctor_ids:
        cache.set(dashboard_cache_key(doctor_id), dashboard_stats(doctor_id), settings.STATS_CACHE_SECONDS)
        keys.append(dashboard_cache_key(doctor_id))
        for period in PERIODS:
            cache.set(report_cache_key(doctor_id, period), period_report(doctor_id, period),
                      settings.STATS_CACHE_SECONDS)
            keys.append(report_cache_key(doctor_id, period))
    logger.info('stats caches warmed keys=%s', len(keys))
    return keys
