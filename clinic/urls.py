"""
Root URL configuration of the clinic backend.

API routes come from ``core.routers``; the admin, the OpenAPI docs at
``/swagger/`` and ``/redoc/``, ``/healthz`` and the Prometheus
``/metrics`` exporter are mounted here.
"""
from django.contrib import admin
from django.urls import include, path

from drf_yasg import openapi
from drf_yasg.views import get_schema_view
from rest_framework import permissions

from core.views.health import healthz

api_info = openapi.Info(
    title="Clinic Backend API",
    default_version='v1',
    description="Patients, appointments, prescriptions, billing, documents and messaging for clinics.",
)

schema_view = get_schema_view(
    api_info,
    public=True,
    permission_classes=(permissions.AllowAny,),
)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('healthz', healthz),
    # exposes /metrics
    path('', include('django_prometheus.urls')),
    path('', include('core.routers')),
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
]
