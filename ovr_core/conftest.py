# ovr_core/conftest.py
import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from ovr_core.iam.roles import (
    ROLE_EMPLOYEE,
    ROLE_HOD,
    ROLE_QI,
    ROLE_SUPERVISOR,
    actor_from_user,
)


def _make_user(username, *roles, email=None, is_superuser=False):
    User = get_user_model()
    user = User.objects.create_user(
        username=username,
        password="testpass",
        email=email if email is not None else f"{username}@hospital.test",
        is_active=True,
        is_superuser=is_superuser,
    )
    for role in roles:
        group, _ = Group.objects.get_or_create(name=role)
        user.groups.add(group)
    return user


@pytest.fixture
def make_user(db):
    """make_user("name", "QI", ...) -> User with those groups."""
    return _make_user


@pytest.fixture
def client_for():
    def _client(user):
        c = APIClient()
        c.force_authenticate(user=user)
        return c

    return _client


@pytest.fixture
def actor_of():
    return actor_from_user


@pytest.fixture
def incident_data():
    # complete report for a staff member (no MRN required)
    return {
        "person_involved": "staff",
        "occurrence_date": "2026-03-14",
        "location": "Ward 4B",
        "occurrence_category": "medication",
        "description": "Wrong dose prepared, caught before administration.",
    }


@pytest.fixture
def reporter(db):
    return _make_user("reporter", ROLE_EMPLOYEE)


@pytest.fixture
def other_reporter(db):
    return _make_user("other_reporter", ROLE_EMPLOYEE)


@pytest.fixture
def supervisor(db):
    return _make_user("supervisor", ROLE_SUPERVISOR)


@pytest.fixture
def qi(db):
    return _make_user("qi", ROLE_QI)


@pytest.fixture
def hod(db):
    return _make_user("hod", ROLE_HOD)


@pytest.fixture
def admin(db):
    return _make_user("admin", is_superuser=True)


@pytest.fixture
def investigator_a(db):
    return _make_user("investigator_a", ROLE_EMPLOYEE)


@pytest.fixture
def investigator_b(db):
    return _make_user("investigator_b", ROLE_EMPLOYEE)


@pytest.fixture
def reporter_client(reporter, client_for):
    return client_for(reporter)


@pytest.fixture
def qi_client(qi, client_for):
    return client_for(qi)


@pytest.fixture
def anon_client(db):
    return APIClient()


@pytest.fixture
def draft_incident(reporter, incident_data):
    from ovr_core.incidents.services import IncidentService

    return IncidentService.create(actor=actor_from_user(reporter), data=dict(incident_data))


@pytest.fixture
def submitted_incident(reporter, incident_data):
    from ovr_core.incidents.services import IncidentService

    return IncidentService.create(actor=actor_from_user(reporter), data=dict(incident_data), submit=True)


@pytest.fixture
def investigating_incident(submitted_incident, qi):
    from ovr_core.incidents.services import IncidentService

    return IncidentService.qi_review(
        actor=actor_from_user(qi),
        incident_id=submitted_incident.id,
        decision="approve",
    )
