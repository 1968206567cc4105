"""
API error envelope.

Every error leaving the API has the shape the frontend client unpacks::

    {"app_code": "clinic", "error_code": "...", "error_message": "...", "log_id": "..."}

``log_id`` is the request id assigned by :class:`core.middleware.RequestIdMiddleware`
so a toast shown to the user can be matched with the server log line.
"""
from __future__ import annotations

import logging

from rest_framework import exceptions, status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)

APP_CODE = 'clinic'


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The request conflicts with an existing record.'
    default_code = 'conflict'


class ServiceUnavailable(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'An upstream service is unavailable, try again later.'
    default_code = 'service_unavailable'


class DeliveryError(Exception):
    """A message could not be handed to its channel provider."""


_CODES = {
    exceptions.ValidationError: 'validation_error',
    exceptions.ParseError: 'parse_error',
    exceptions.NotAuthenticated: 'not_authenticated',
    exceptions.AuthenticationFailed: 'authentication_failed',
    exceptions.PermissionDenied: 'permission_denied',
    exceptions.NotFound: 'not_found',
    exceptions.MethodNotAllowed: 'method_not_allowed',
    exceptions.UnsupportedMediaType: 'unsupported_media_type',
    exceptions.Throttled: 'throttled',
}


def _flatten(detail, prefix: str = '') -> list[str]:
    """Turn DRF's nested error detail into ``"field: message"`` strings."""
    if isinstance(detail, dict):
        out: list[str] = []
        for key, value in detail.items():
            label = key if key not in ('non_field_errors', 'detail') else ''
            if prefix and label:
                label = f'{prefix}.{label}'
            elif prefix:
                label = prefix
            out.extend(_flatten(value, label))
        return out
    if isinstance(detail, (list, tuple)):
        out = []
        for idx, value in enumerate(detail):
            if isinstance(value, (dict, list)):
                out.extend(_flatten(value, f'{prefix}[{idx}]' if prefix else str(idx)))
            else:
                out.extend(_flatten(value, prefix))
        return out
    text = str(detail)
    return [f'{prefix}: {text}' if prefix else text]


def error_code_for(exc) -> str:
    for klass, code in _CODES.items():
        if isinstance(exc, klass):
            return code
    return getattr(exc, 'default_code', None) or 'api_error'


def error_body(request, error_code: str, message: str) -> dict:
    return {
        'app_code': APP_CODE,
        'error_code': error_code,
        'error_message': message,
        'log_id': getattr(request, 'request_id', None) if request is not None else None,
    }


def api_exception_handler(exc, context):
    request = context.get('request')
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('unhandled error request_id=%s', getattr(request, 'request_id', None), exc_info=exc)
        return Response(error_body(request, 'server_error', 'Internal server error.'), status=500)

    code = error_code_for(exc)
    detail = exc.detail if isinstance(exc, APIException) else resp.data
    messages = _flatten(detail)
    body = error_body(request, code, '; '.join(messages) or 'Request failed.')
    if isinstance(exc, exceptions.ValidationError) and isinstance(exc.detail, dict):
        body['errors'] = exc.detail
    if resp.status_code >= 500:
        logger.error('api error %s status=%s request_id=%s', code, resp.status_code, body['log_id'])
    else:
        logger.info('api error %s status=%s request_id=%s', code, resp.status_code, body['log_id'])
    return Response(body, status=resp.status_code, headers=_passthrough_headers(resp))


def _passthrough_headers(resp) -> dict:
    return {k: v for k, v in resp.items() if k in ('WWW-Authenticate', 'Retry-After', 'Allow')}