from django.core.management.base import BaseCommand

from core.models import User

DEMO_SET = [
    ("doctor1", "doctor1@clinic.local", User.ROLE_DOCTOR, None),
    ("staff1", "staff1@clinic.local", User.ROLE_STAFF, "doctor1"),
    ("admin1", "admin1@clinic.local", User.ROLE_ADMIN, None),
]


class Command(BaseCommand):
    help = "Ensure demo users exist with a known password (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="clinic123")

    def handle(self, *args, **opts):
        password = opts["password"]
        for username, email, role, owner in DEMO_SET:
            u, created = User.objects.get_or_create(username=username, defaults={"email": email})
            u.email = email
            u.role = role
            u.is_active = True
            u.clinic_owner = User.objects.get(username=owner) if owner else None
            if role == User.ROLE_DOCTOR and not u.clinic_name:
                u.clinic_name = "Demo Clinic"
            u.set_password(password)
            u.save()
            self.stdout.write(self.style.SUCCESS(f"{'created' if created else 'ok'}: {username} ({role})"))
        self.stdout.write(self.style.SUCCESS("All demo users ensured."))
