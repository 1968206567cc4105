import logging

from django.db import DatabaseError, connections
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def healthz(request):
    """Liveness plus a ``SELECT 1`` against the default database."""
    try:
        with connections['default'].cursor() as cursor:
            cursor.execute('SELECT 1')
            db_ok = cursor.fetchone() == (1,)
    except DatabaseError as e:
        logger.error('healthz database check failed: %s', e)
        return JsonResponse({'ok': False, 'db': False, 'error': str(e)}, status=503)
    return JsonResponse({'ok': True, 'db': db_ok})
