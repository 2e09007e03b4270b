import pytest

from ovr_core.audit.models import AuditEvent
from ovr_core.common.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ovr_core.incidents import workflow
from ovr_core.incidents.models import Incident, IncidentStatus
from ovr_core.incidents.services import IncidentService

pytestmark = pytest.mark.django_db


def _codes(incident):
    return list(
        AuditEvent.objects.filter(entity_id=incident.id).order_by("occurred_at").values_list("event_code", flat=True)
    )


def test_allowed_transitions_from_submitted():
    assert set(workflow.allowed_transitions(IncidentStatus.SUBMITTED)) == {
        "supervisor_approve",
        "qi_reject",
        "qi_approve",
    }
    assert workflow.allowed_transitions(IncidentStatus.CLOSED) == []
    # system-only edge is never offered to clients
    assert "findings_submitted" not in workflow.allowed_transitions(IncidentStatus.INVESTIGATING)


def test_create_and_submit_in_one_call(submitted_incident):
    assert submitted_incident.status == IncidentStatus.SUBMITTED
    assert submitted_incident.submitted_at is not None
    assert sorted(_codes(submitted_incident)) == ["incident.created", "incident.submitted"]


def test_submit_requires_complete_report(reporter, actor_of):
    incident = IncidentService.create(actor=actor_of(reporter), data={"location": "ER"})

    with pytest.raises(ValidationError) as exc:
        IncidentService.submit(actor=actor_of(reporter), incident_id=incident.id)

    assert "description" in exc.value.details["fields"]
    incident.refresh_from_db()
    assert incident.status == IncidentStatus.DRAFT


def test_patient_report_requires_mrn(reporter, actor_of, incident_data):
    data = {**incident_data, "person_involved": "patient"}

    with pytest.raises(ValidationError) as exc:
        IncidentService.create(actor=actor_of(reporter), data=data, submit=True)

    assert exc.value.details["fields"] == ["involved_person_mrn"]
    # create+submit is one transaction
    assert not Incident.objects.exists()


def test_only_reporter_can_edit_or_submit(draft_incident, other_reporter, qi, actor_of):
    # another user's draft does not exist for them
    with pytest.raises(NotFoundError):
        IncidentService.update_draft(actor=actor_of(other_reporter), incident_id=draft_incident.id, data={"location": "X"})
    with pytest.raises(NotFoundError):
        IncidentService.submit(actor=actor_of(qi), incident_id=draft_incident.id)


def test_edit_after_submit_conflicts(submitted_incident, reporter, actor_of):
    with pytest.raises(ConflictError):
        IncidentService.update_draft(actor=actor_of(reporter), incident_id=submitted_incident.id, data={"location": "X"})


def test_conflict_leaves_status_and_audit_untouched(submitted_incident, reporter, actor_of):
    before = AuditEvent.objects.count()

    with pytest.raises(ConflictError) as exc:
        IncidentService.submit(actor=actor_of(reporter), incident_id=submitted_incident.id)

    assert exc.value.details == {"status": "submitted", "expected": "draft"}
    submitted_incident.refresh_from_db()
    assert submitted_incident.status == IncidentStatus.SUBMITTED
    assert AuditEvent.objects.count() == before


def test_role_gate_runs_before_any_read(submitted_incident, reporter, actor_of):
    with pytest.raises(AuthorizationError):
        IncidentService.qi_review(actor=actor_of(reporter), incident_id=submitted_incident.id, decision="approve")


def test_qi_rejection_returns_to_draft_and_resubmits(submitted_incident, reporter, qi, actor_of):
    rejected = IncidentService.qi_review(
        actor=actor_of(qi),
        incident_id=submitted_incident.id,
        decision="reject",
        rejection_reason="Missing witness account",
    )

    assert rejected.status == IncidentStatus.DRAFT
    assert rejected.submitted_at is None
    assert rejected.qi_rejection_reason == "Missing witness account"
    assert rejected.qi_rejected_by_id == qi.id

    # reporter fixes the draft and submits again
    IncidentService.update_draft(
        actor=actor_of(reporter),
        incident_id=rejected.id,
        data={"witness_account": "Nurse on shift saw the label."},
    )
    again = IncidentService.submit(actor=actor_of(reporter), incident_id=rejected.id)

    assert again.status == IncidentStatus.SUBMITTED
    codes = _codes(again)
    assert {"incident.rejected", "incident.updated"} <= set(codes)
    assert codes.count("incident.submitted") == 2


def test_rejection_requires_reason(submitted_incident, qi, actor_of):
    with pytest.raises(ValidationError):
        IncidentService.qi_review(actor=actor_of(qi), incident_id=submitted_incident.id, decision="reject")


def test_supervisor_path_to_closure(submitted_incident, supervisor, qi, hod, actor_of):
    incident = IncidentService.supervisor_approve(
        actor=actor_of(supervisor), incident_id=submitted_incident.id, note="Seen."
    )
    assert incident.status == IncidentStatus.SUPERVISOR_APPROVED
    assert incident.supervisor_id == supervisor.id

    incident = IncidentService.assign_hod(actor=actor_of(qi), incident_id=incident.id, department_head_id=hod.id)
    assert incident.status == IncidentStatus.HOD_ASSIGNED
    assert incident.department_head_id == hod.id
    assert incident.qi_received_by_id == qi.id

    incident = IncidentService.hod_submit(
        actor=actor_of(hod),
        incident_id=incident.id,
        problems_identified="Look-alike vials",
        cause_classification="system",
        prevention_recommendation="Separate storage",
    )
    assert incident.status == IncidentStatus.QI_FINAL_REVIEW

    incident = IncidentService.qi_close(
        actor=actor_of(qi),
        incident_id=incident.id,
        feedback="Well handled",
        severity_level="near_miss",
        form_complete=True,
    )
    assert incident.status == IncidentStatus.CLOSED
    assert incident.closed_by_id == qi.id
    assert incident.qi_form_complete is True
    assert incident.qi_proper_timeframe is False


def test_assign_hod_requires_department_head(submitted_incident, supervisor, qi, other_reporter, actor_of):
    IncidentService.supervisor_approve(actor=actor_of(supervisor), incident_id=submitted_incident.id)

    with pytest.raises(ValidationError):
        IncidentService.assign_hod(
            actor=actor_of(qi), incident_id=submitted_incident.id, department_head_id=other_reporter.id
        )


def test_only_assigned_hod_can_submit(submitted_incident, supervisor, qi, hod, make_user, actor_of):
    other_hod = make_user("other_hod", "HOD")
    IncidentService.supervisor_approve(actor=actor_of(supervisor), incident_id=submitted_incident.id)
    IncidentService.assign_hod(actor=actor_of(qi), incident_id=submitted_incident.id, department_head_id=hod.id)

    with pytest.raises(AuthorizationError):
        IncidentService.hod_submit(
            actor=actor_of(other_hod),
            incident_id=submitted_incident.id,
            problems_identified="p",
            cause_classification="c",
            prevention_recommendation="r",
        )


def test_qi_approval_stamps_and_skips_supervisor(investigating_incident, qi):
    assert investigating_incident.status == IncidentStatus.INVESTIGATING
    assert investigating_incident.supervisor_id is None
    assert investigating_incident.qi_reviewed_by_id == qi.id
    assert investigating_incident.qi_assigned_at is not None


def test_close_requires_review_text(investigating_incident, qi, actor_of):
    Incident.objects.filter(id=investigating_incident.id).update(status=IncidentStatus.QI_FINAL_ACTIONS)

    with pytest.raises(ValidationError) as exc:
        IncidentService.close(actor=actor_of(qi), incident_id=investigating_incident.id, case_review="ok", reporter_feedback="")

    assert exc.value.details["fields"] == ["reporter_feedback"]


def test_investigator_assignment_and_findings(investigating_incident, qi, investigator_a, actor_of):
    assignment = IncidentService.assign_investigator(
        actor=actor_of(qi), incident_id=investigating_incident.id, investigator_id=investigator_a.id
    )
    assert assignment.status == "pending"

    with pytest.raises(ValidationError):
        IncidentService.assign_investigator(
            actor=actor_of(qi), incident_id=investigating_incident.id, investigator_id=investigator_a.id
        )

    done = IncidentService.submit_investigator_findings(
        actor=actor_of(investigator_a), incident_id=investigating_incident.id, findings="Label misprint"
    )
    assert done.status == "submitted"
    assert done.submitted_at is not None

    with pytest.raises(ConflictError):
        IncidentService.submit_investigator_findings(
            actor=actor_of(investigator_a), incident_id=investigating_incident.id, findings="again"
        )


def test_unassigned_user_cannot_submit_findings(investigating_incident, investigator_b, actor_of):
    with pytest.raises(AuthorizationError):
        IncidentService.submit_investigator_findings(
            actor=actor_of(investigator_b), incident_id=investigating_incident.id, findings="x"
        )


def test_assign_investigator_outside_investigation_conflicts(submitted_incident, qi, investigator_a, actor_of):
    with pytest.raises(ConflictError):
        IncidentService.assign_investigator(
            actor=actor_of(qi), incident_id=submitted_incident.id, investigator_id=investigator_a.id
        )


def test_delete_rules(draft_incident, submitted_incident, reporter, other_reporter, admin, actor_of):
    with pytest.raises(ConflictError):
        IncidentService.delete(actor=actor_of(reporter), incident_id=submitted_incident.id)
    with pytest.raises(AuthorizationError):
        IncidentService.delete(actor=actor_of(other_reporter), incident_id=submitted_incident.id)
    with pytest.raises(NotFoundError):
        IncidentService.delete(actor=actor_of(other_reporter), incident_id=draft_incident.id)

    IncidentService.delete(actor=actor_of(reporter), incident_id=draft_incident.id)
    IncidentService.delete(actor=actor_of(admin), incident_id=submitted_incident.id)

    assert not Incident.objects.exists()
    assert AuditEvent.objects.filter(event_code="incident.deleted").count() == 2
