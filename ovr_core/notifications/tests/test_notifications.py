import logging

import pytest

from ovr_core.common.errors import ConflictError
from ovr_core.common.events import subscribers
from ovr_core.incidents.services import IncidentService

pytestmark = pytest.mark.django_db

LOGGER = "ovr_core.notifications.subscribers"


def _notices(caplog):
    return [r.getMessage() for r in caplog.records if r.name == LOGGER]


def test_every_workflow_event_has_a_handler():
    for event in (
        "incident.submitted",
        "incident.supervisor_approved",
        "incident.rejected",
        "incident.approved",
        "incident.hod_assigned",
        "incident.hod_submitted",
        "incident.closed",
        "investigation.submitted",
        "shared_access.granted",
        "shared_access.revoked",
    ):
        assert subscribers(event), event


def test_submit_notifies_supervisors_and_qi_after_commit(
    reporter, supervisor, qi, actor_of, incident_data, caplog, django_capture_on_commit_callbacks
):
    caplog.set_level(logging.INFO, logger=LOGGER)

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        incident = IncidentService.create(actor=actor_of(reporter), data=dict(incident_data), submit=True)

    assert len(callbacks) == 1
    [line] = _notices(caplog)
    assert line.startswith("notify incident.submitted:")
    assert incident.reference_number in line
    assert f"users=[{supervisor.id}, {qi.id}]" in line


def test_failed_transition_notifies_nobody(
    investigating_incident, qi, actor_of, caplog, django_capture_on_commit_callbacks
):
    caplog.set_level(logging.INFO, logger=LOGGER)

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        with pytest.raises(ConflictError):
            IncidentService.qi_review(actor=actor_of(qi), incident_id=investigating_incident.id, decision="approve")

    assert callbacks == []
    assert _notices(caplog) == []


def test_rejection_notifies_reporter_with_reason(
    submitted_incident, reporter, qi, actor_of, caplog, django_capture_on_commit_callbacks
):
    caplog.set_level(logging.INFO, logger=LOGGER)

    with django_capture_on_commit_callbacks(execute=True):
        IncidentService.qi_review(
            actor=actor_of(qi), incident_id=submitted_incident.id, decision="reject", rejection_reason="Need MRN"
        )

    [line] = _notices(caplog)
    assert "returned to draft: Need MRN" in line
    assert f"users=[{reporter.id}]" in line


def test_failing_handler_does_not_break_the_others(monkeypatch, caplog):
    from ovr_core.common import events

    seen = []

    def boom(payload):
        raise RuntimeError("smtp down")

    monkeypatch.setitem(events._registry, "test.event", [boom, seen.append])

    events.publish("test.event", {"x": 1})

    assert seen == [{"x": 1}]
    assert "smtp down" in caplog.text


def test_quality_recipients_include_alias_groups(qi, make_user, caplog):
    from ovr_core.notifications.subscribers import on_investigation_submitted

    manager = make_user("qmanager", "quality_manager")
    make_user("plain_staff")

    caplog.set_level(logging.INFO, logger=LOGGER)
    on_investigation_submitted({"reference_number": "OVR-2026-03-001"})

    [line] = _notices(caplog)
    assert f"users=[{qi.id}, {manager.id}]" in line
