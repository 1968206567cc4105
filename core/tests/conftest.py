import pytest
from rest_framework.test import APIClient

from core.models import Patient, User


@pytest.fixture
def doctor(db):
    return User.objects.create_user(username='dr_a', email='dr.a@example.com', password='P@ssw0rd1',
                                    role=User.ROLE_DOCTOR, first_name='Asha', last_name='Rao',
                                    clinic_name='Rao Clinic')


@pytest.fixture
def other_doctor(db):
    return User.objects.create_user(username='dr_b', email='dr.b@example.com', password='P@ssw0rd1',
                                    role=User.ROLE_DOCTOR)


@pytest.fixture
def staff(doctor):
    return User.objects.create_user(username='staff_a', password='P@ssw0rd1', role=User.ROLE_STAFF,
                                    clinic_owner=doctor)


@pytest.fixture
def platform_admin(db):
    return User.objects.create_user(username='ops', email='ops@example.com', password='P@ssw0rd1',
                                    role=User.ROLE_ADMIN)


@pytest.fixture
def api():
    return APIClient()


@pytest.fixture
def doctor_api(doctor):
    client = APIClient()
    client.force_authenticate(doctor)
    return client


@pytest.fixture
def patient(doctor):
    return Patient.objects.create(doctor=doctor, full_name='Ravi Kumar', mobile_number='+919876543210',
                                  age=34, gender='male', email='ravi@example.com')
