import pytest

from ovr_core.audit.models import AuditEvent
from ovr_core.common.errors import AuthorizationError, ConflictError, ValidationError
from ovr_core.incidents.models import Incident, IncidentStatus
from ovr_core.incidents.services import IncidentService
from ovr_core.investigations.models import Investigation
from ovr_core.investigations.services import InvestigationService

pytestmark = pytest.mark.django_db

FINDINGS = {
    "findings": "Two vials with near-identical labels stored together.",
    "problems_identified": "Storage layout",
    "cause_classification": "system",
    "cause_details": "No separation of look-alike drugs.",
}


def test_qi_opens_investigation_for_investigating_incident(investigating_incident, qi, investigator_a, actor_of):
    inv = InvestigationService.create(
        actor=actor_of(qi), incident_id=investigating_incident.id, investigators=[investigator_a.id, investigator_a.id]
    )
    assert inv.investigators == [investigator_a.id]
    assert inv.created_by_id == qi.id

    with pytest.raises(ConflictError):
        InvestigationService.create(actor=actor_of(qi), incident_id=investigating_incident.id)


def test_cannot_open_investigation_before_approval(submitted_incident, qi, actor_of):
    with pytest.raises(ConflictError):
        InvestigationService.create(actor=actor_of(qi), incident_id=submitted_incident.id)


def test_submit_cascades_incident_to_final_actions(investigating_incident, qi, investigator_a, actor_of):
    inv = InvestigationService.create(
        actor=actor_of(qi), incident_id=investigating_incident.id, investigators=[investigator_a.id]
    )

    done = InvestigationService.submit(actor=actor_of(investigator_a), investigation_id=inv.id, data=dict(FINDINGS))

    assert done.submitted_at is not None
    assert done.submitted_by_id == investigator_a.id

    incident = Incident.objects.get(id=investigating_incident.id)
    assert incident.status == IncidentStatus.QI_FINAL_ACTIONS

    codes = set(AuditEvent.objects.values_list("event_code", flat=True))
    assert {"investigation.submitted", "incident.findings_submitted"} <= codes


def test_cascade_conflict_rolls_back_findings(investigating_incident, qi, investigator_a, actor_of):
    inv = InvestigationService.create(
        actor=actor_of(qi), incident_id=investigating_incident.id, investigators=[investigator_a.id]
    )
    # incident moved on out-of-band
    Incident.objects.filter(id=investigating_incident.id).update(status=IncidentStatus.QI_FINAL_REVIEW)

    with pytest.raises(ConflictError):
        InvestigationService.submit(actor=actor_of(investigator_a), investigation_id=inv.id, data=dict(FINDINGS))

    inv.refresh_from_db()
    assert inv.submitted_at is None
    assert inv.findings == ""


def test_qi_must_be_listed_to_submit(investigating_incident, qi, investigator_a, actor_of):
    inv = InvestigationService.create(
        actor=actor_of(qi), incident_id=investigating_incident.id, investigators=[investigator_a.id]
    )

    with pytest.raises(AuthorizationError):
        InvestigationService.submit(actor=actor_of(qi), investigation_id=inv.id, data=dict(FINDINGS))


def test_submit_requires_all_fields_and_happens_once(investigating_incident, qi, investigator_a, actor_of):
    inv = InvestigationService.create(
        actor=actor_of(qi), incident_id=investigating_incident.id, investigators=[investigator_a.id]
    )

    with pytest.raises(ValidationError) as exc:
        InvestigationService.submit(
            actor=actor_of(investigator_a), investigation_id=inv.id, data={**FINDINGS, "cause_details": " "}
        )
    assert exc.value.details["fields"] == ["cause_details"]

    InvestigationService.submit(actor=actor_of(investigator_a), investigation_id=inv.id, data=dict(FINDINGS))
    with pytest.raises(ConflictError):
        InvestigationService.submit(actor=actor_of(investigator_a), investigation_id=inv.id, data=dict(FINDINGS))


def test_member_edits_but_only_qi_changes_roster(investigating_incident, qi, investigator_a, investigator_b, actor_of):
    inv = InvestigationService.create(
        actor=actor_of(qi), incident_id=investigating_incident.id, investigators=[investigator_a.id]
    )

    updated = InvestigationService.update(
        actor=actor_of(investigator_a), investigation_id=inv.id, data={"findings": "draft notes"}
    )
    assert updated.findings == "draft notes"

    with pytest.raises(AuthorizationError):
        InvestigationService.update(
            actor=actor_of(investigator_a), investigation_id=inv.id, data={"investigators": [investigator_b.id]}
        )

    updated = InvestigationService.update(
        actor=actor_of(qi), investigation_id=inv.id, data={"investigators": [investigator_a.id, investigator_b.id]}
    )
    assert updated.investigators == [investigator_a.id, investigator_b.id]


def test_assigning_investigator_extends_open_investigation(investigating_incident, qi, investigator_a, investigator_b, actor_of):
    inv = InvestigationService.create(
        actor=actor_of(qi), incident_id=investigating_incident.id, investigators=[investigator_a.id]
    )

    IncidentService.assign_investigator(
        actor=actor_of(qi), incident_id=investigating_incident.id, investigator_id=investigator_b.id
    )

    assert Investigation.objects.get(id=inv.id).investigators == [investigator_a.id, investigator_b.id]


def test_retrieve_reports_effective_access(investigating_incident, qi, investigator_a, client_for, actor_of):
    inv = InvestigationService.create(
        actor=actor_of(qi), incident_id=investigating_incident.id, investigators=[investigator_a.id]
    )

    res = client_for(investigator_a).get(f"/api/v1/investigations/{inv.id}/")
    assert res.status_code == 200, res.data
    assert res.data["access"]["via"] == ["assignment"]
    assert res.data["access"]["can_submit"] is True

    res = client_for(qi).get(f"/api/v1/investigations/{inv.id}/")
    assert res.data["access"]["via"] == ["role"]


def test_unrelated_user_gets_not_found(investigating_incident, qi, investigator_a, other_reporter, client_for, actor_of):
    inv = InvestigationService.create(
        actor=actor_of(qi), incident_id=investigating_incident.id, investigators=[investigator_a.id]
    )

    res = client_for(other_reporter).get(f"/api/v1/investigations/{inv.id}/")
    assert res.status_code == 404, res.data


def test_submit_over_http(investigating_incident, qi, investigator_a, client_for, actor_of):
    inv = InvestigationService.create(
        actor=actor_of(qi), incident_id=investigating_incident.id, investigators=[investigator_a.id]
    )

    res = client_for(investigator_a).post(f"/api/v1/investigations/{inv.id}/submit/", FINDINGS, format="json")
    assert res.status_code == 200, res.data
    assert res.data["submitted_at"] is not None

    res = client_for(qi).get(f"/api/v1/incidents/{investigating_incident.id}/")
    assert res.data["status"] == "qi_final_actions"
