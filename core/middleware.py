import re
import uuid

_VALID_ID = re.compile(r'^[A-Za-z0-9._-]{8,64}$')


class RequestIdMiddleware:
    """Tag every request with an id and echo it back as ``X-Request-ID``.

    A well-formed incoming ``X-Request-ID`` (set by a proxy or the frontend)
    is kept so one id follows the call across services.
    """
    HEADER = 'HTTP_X_REQUEST_ID'

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        incoming = request.META.get(self.HEADER, '')
        request.request_id = incoming if _VALID_ID.match(incoming) else uuid.uuid4().hex
        response = self.get_response(request)
        response['X-Request-ID'] = request.request_id
        return response
