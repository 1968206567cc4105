"""
URL mappings for the clinic API.

Every endpoint lives under ``api/`` with a trailing slash, matching the
paths the frontend client builds.
"""
from django.urls import path

from . import auth_views
from .views import (
    announcements, appointments, bills, communication, dashboard, documents, feedback, otp, patients,
    prescriptions,
)

auth_urls = [
    path('api/auth/login/', auth_views.login_view),
    path('api/auth/refresh/', auth_views.refresh_view),
    path('api/auth/logout/', auth_views.logout_view),
    path('api/auth/profile/', auth_views.profile_view),
    path('api/auth/change-password/', auth_views.change_password_view),
    path('api/auth/forgot-password/', auth_views.forgot_password_view),
    path('api/auth/reset-password/', auth_views.reset_password_view),
    path('api/auth/signup/', auth_views.signup_view),
    path('api/auth/google/', auth_views.oauth_login_view),
    path('api/accounts/oauth-login/', auth_views.oauth_login_view),
    path('api/send-otp/', otp.send_otp),
    path('api/verify-otp/', otp.verify_otp),
]

patient_urls = [
    path('api/patients/', patients.patient_list),
    path('api/patients/<int:pk>/', patients.patient_detail),
    path('api/patients/<int:pk>/appointments/', patients.patient_appointments),
    path('api/patients/<int:pk>/prescriptions/', patients.patient_prescriptions),
    path('api/patients/<int:pk>/prescriptions/complete/', patients.complete_prescriptions),
    path('api/patients/<int:pk>/bills/', patients.patient_bills),
    path('api/patients/<int:pk>/send-info/', patients.send_info),
    path('api/patients/<int:pk>/report/', patients.patient_report),
    path('api/patients/<int:pk>/progress/', patients.progress_list),
    path('api/patients/<int:pk>/progress/<int:note_id>/', patients.progress_detail),
]

clinical_urls = [
    path('api/appointments/', appointments.appointment_list),
    path('api/appointments/<int:pk>/', appointments.appointment_detail),
    path('api/appointments/<int:pk>/status/', appointments.appointment_status),
    path('api/prescriptions/', prescriptions.prescription_list),
    path('api/prescriptions/<int:pk>/', prescriptions.prescription_detail),
    path('api/bills/', bills.bill_list),
    path('api/bills/summary/', bills.bill_summary),
    path('api/bills/<int:pk>/', bills.bill_detail),
]

document_urls = [
    path('api/document/sign-upload/', documents.sign_upload),
    path('api/document/upload/<str:token>/', documents.upload, name='document-upload'),
    path('api/document/confirm/', documents.confirm_upload),
    path('api/document/view/<int:patient_id>/', documents.patient_documents),
    path('api/document/download/<str:token>/', documents.download, name='document-download'),
    path('api/document/<int:document_id>/', documents.document_detail),
]

platform_urls = [
    path('api/announcements/', announcements.announcement_list),
    path('api/announcements/<int:pk>/', announcements.announcement_detail),
    path('api/feedback/', feedback.feedback_list),
    path('api/feedback/<int:pk>/', feedback.feedback_detail),
    path('api/communication/pricing/', communication.pricing),
    path('api/communication/send/', communication.send),
    path('api/communication/messages/', communication.message_history),
    path('api/whatsapp/status/', communication.whatsapp_status),
    path('api/whatsapp/auth/connect/', communication.whatsapp_connect),
    path('api/whatsapp/auth/callback/', communication.whatsapp_callback),
    path('api/whatsapp/auth/disconnect/', communication.whatsapp_disconnect),
    path('api/dashboard/stats/', dashboard.dashboard_stats),
    path('api/reports/', dashboard.reports),
]

urlpatterns = auth_urls + patient_urls + clinical_urls + document_urls + platform_urls
