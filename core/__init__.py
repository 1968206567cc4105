"""Clinic practice-management API: models, services, views and routes."""
