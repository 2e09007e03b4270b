import pytest

from ovr_core.common.errors import AuthorizationError, ConflictError
from ovr_core.corrective_actions.models import ActionStatus
from ovr_core.corrective_actions.services import CorrectiveActionService
from ovr_core.incidents.models import Incident, IncidentStatus
from ovr_core.incidents.services import IncidentService

pytestmark = pytest.mark.django_db

BASE = "/api/v1/corrective-actions/"


@pytest.fixture
def final_actions_incident(investigating_incident):
    Incident.objects.filter(id=investigating_incident.id).update(status=IncidentStatus.QI_FINAL_ACTIONS)
    investigating_incident.refresh_from_db()
    return investigating_incident


@pytest.fixture
def action(final_actions_incident, qi, investigator_a, actor_of):
    return CorrectiveActionService.create(
        actor=actor_of(qi),
        incident_id=final_actions_incident.id,
        title="Separate look-alike vials",
        checklist=["Move stock", "Update shelf labels"],
        assigned_to=[investigator_a.id],
    )


def test_create_defaults_assignee_to_creator(final_actions_incident, qi, actor_of):
    obj = CorrectiveActionService.create(
        actor=actor_of(qi), incident_id=final_actions_incident.id, title="Audit", checklist=["Check"]
    )
    assert obj.assigned_to == [qi.id]
    assert obj.status == ActionStatus.OPEN


def test_cannot_add_action_to_submitted_incident(submitted_incident, qi, actor_of):
    with pytest.raises(ConflictError):
        CorrectiveActionService.create(
            actor=actor_of(qi), incident_id=submitted_incident.id, title="x", checklist=["y"]
        )


def test_open_action_blocks_close(final_actions_incident, action, qi, actor_of):
    with pytest.raises(ConflictError) as exc:
        IncidentService.close(
            actor=actor_of(qi),
            incident_id=final_actions_incident.id,
            case_review="Reviewed",
            reporter_feedback="Thanks",
        )
    assert exc.value.details == {"open_actions": 1}
    assert Incident.objects.get(id=final_actions_incident.id).status == IncidentStatus.QI_FINAL_ACTIONS

    CorrectiveActionService.close(actor=actor_of(qi), action_id=action.id, action_taken="Stock moved")

    closed = IncidentService.close(
        actor=actor_of(qi),
        incident_id=final_actions_incident.id,
        case_review="Reviewed",
        reporter_feedback="Thanks",
    )
    assert closed.status == IncidentStatus.CLOSED
    assert closed.case_review == "Reviewed"


def test_open_action_blocks_qi_close(investigating_incident, qi, actor_of):
    CorrectiveActionService.create(
        actor=actor_of(qi), incident_id=investigating_incident.id, title="Retrain", checklist=["Session"]
    )
    Incident.objects.filter(id=investigating_incident.id).update(status=IncidentStatus.QI_FINAL_REVIEW)

    with pytest.raises(ConflictError) as exc:
        IncidentService.qi_close(
            actor=actor_of(qi), incident_id=investigating_incident.id, feedback="ok", severity_level="minor"
        )
    assert exc.value.details == {"open_actions": 1}


def test_assignee_toggles_checklist_outsider_cannot(action, investigator_a, investigator_b, actor_of):
    obj = CorrectiveActionService.toggle_checklist(actor=actor_of(investigator_a), action_id=action.id, index=0)
    assert obj.checklist[0]["completed"] is True
    assert obj.checklist[0]["completed_at"]

    with pytest.raises(AuthorizationError):
        CorrectiveActionService.toggle_checklist(actor=actor_of(investigator_b), action_id=action.id, index=1)


def test_closed_action_is_read_only(action, qi, investigator_a, actor_of):
    CorrectiveActionService.close(actor=actor_of(qi), action_id=action.id)

    with pytest.raises(ConflictError):
        CorrectiveActionService.update(actor=actor_of(investigator_a), action_id=action.id, data={"action_taken": "x"})
    with pytest.raises(ConflictError):
        CorrectiveActionService.close(actor=actor_of(qi), action_id=action.id)


def test_list_scoping(action, client_for, qi, investigator_a, investigator_b):
    res = client_for(investigator_a).get(BASE)
    assert res.status_code == 200, res.data
    assert [a["id"] for a in res.data["results"]] == [str(action.id)]

    res = client_for(investigator_b).get(BASE)
    assert res.status_code == 200, res.data
    assert res.data["results"] == []

    res = client_for(qi).get(BASE, {"status": "open"})
    assert res.data["count"] == 1


def test_checklist_endpoint_reports_progress(action, client_for, investigator_a):
    res = client_for(investigator_a).post(f"{BASE}{action.id}/checklist/", {"index": 1}, format="json")
    assert res.status_code == 200, res.data
    assert res.data["progress"] == {"completed": 1, "total": 2}


def test_create_endpoint_is_qi_only(final_actions_incident, client_for, reporter, qi):
    payload = {"incident_id": str(final_actions_incident.id), "title": "Audit", "checklist": ["One"]}

    res = client_for(reporter).post(BASE, payload, format="json")
    assert res.status_code == 403, res.data

    res = client_for(qi).post(BASE, payload, format="json")
    assert res.status_code == 201, res.data
    assert res.data["reference_number"] == final_actions_incident.reference_number


def test_toggle_records_when_checklist_is_complete(action, investigator_a, actor_of):
    from ovr_core.audit.models import AuditEvent

    CorrectiveActionService.toggle_checklist(actor=actor_of(investigator_a), action_id=action.id, index=0)
    CorrectiveActionService.toggle_checklist(actor=actor_of(investigator_a), action_id=action.id, index=1)

    flags = [
        e.metadata["checklist_complete"]
        for e in AuditEvent.objects.filter(entity_id=action.id, event_code="corrective_action.checklist_toggled")
    ]
    assert sorted(flags) == [False, True]
