import uuid

import pytest

from ovr_core.incidents.models import Incident

pytestmark = pytest.mark.django_db

BASE = "/api/v1/incidents/"


def _detail(incident):
    return f"{BASE}{incident.id}/"


def test_create_draft_then_submit(reporter_client, incident_data):
    res = reporter_client.post(BASE, incident_data, format="json")
    assert res.status_code == 201, res.data
    assert res.data["status"] == "draft"
    assert res.data["reference_number"].startswith("OVR-")
    assert "submit" in res.data["allowed_transitions"]

    res = reporter_client.post(f"{BASE}{res.data['id']}/submit/", {}, format="json")
    assert res.status_code == 200, res.data
    assert res.data["status"] == "submitted"


def test_create_with_submit_flag(reporter_client, incident_data):
    res = reporter_client.post(BASE, {**incident_data, "submit": True}, format="json")
    assert res.status_code == 201, res.data
    assert res.data["status"] == "submitted"


def test_drafts_hidden_from_everyone_but_reporter(draft_incident, submitted_incident, client_for, reporter, qi, admin):
    qi_client = client_for(qi)

    res = qi_client.get(_detail(draft_incident))
    assert res.status_code == 404, res.data
    assert res.data["error"]["code"] == "not_found"

    res = qi_client.get(BASE)
    assert res.status_code == 200, res.data
    ids = {row["id"] for row in res.data["results"]}
    assert str(submitted_incident.id) in ids
    assert str(draft_incident.id) not in ids

    # admin bypasses role gates, not draft privacy
    assert client_for(admin).get(_detail(draft_incident)).status_code == 404

    res = client_for(reporter).get(f"{BASE}drafts/")
    assert res.status_code == 200, res.data
    assert [row["id"] for row in res.data["results"]] == [str(draft_incident.id)]


def test_stats_excludes_drafts_and_is_role_gated(draft_incident, submitted_incident, client_for, qi, reporter):
    res = client_for(qi).get(f"{BASE}stats/")
    assert res.status_code == 200, res.data
    assert res.data["total"] == 1
    assert res.data["by_status"].get("submitted") == 1
    assert "draft" not in res.data["by_status"]

    res = client_for(reporter).get(f"{BASE}stats/")
    assert res.status_code == 403, res.data
    assert res.data["error"]["code"] == "permission_denied"


def test_list_filters(investigating_incident, reporter_client, qi_client, incident_data):
    other = reporter_client.post(BASE, {**incident_data, "submit": True}, format="json").data

    res = qi_client.get(BASE, {"status": "investigating"})
    assert res.status_code == 200, res.data
    assert [r["id"] for r in res.data["results"]] == [str(investigating_incident.id)]

    res = qi_client.get(BASE, {"search": other["reference_number"]})
    assert res.status_code == 200, res.data
    assert res.data["count"] == 1


def test_error_envelope_codes(submitted_incident, anon_client, reporter_client, qi_client):
    res = anon_client.get(BASE)
    assert res.status_code == 401
    assert res.data["error"]["code"] == "not_authenticated"
    assert res.data["error"]["request_id"]

    res = reporter_client.post(f"{_detail(submitted_incident)}qi-review/", {"decision": "approve"}, format="json")
    assert res.status_code == 403, res.data

    res = qi_client.get(f"{BASE}{uuid.uuid4()}/")
    assert res.status_code == 404, res.data

    res = reporter_client.post(f"{_detail(submitted_incident)}submit/", {}, format="json")
    assert res.status_code == 409, res.data
    assert res.data["error"]["code"] == "conflict"
    assert res.data["error"]["details"] == {"status": "submitted", "expected": "draft"}


def test_validation_envelope(reporter_client):
    res = reporter_client.post(BASE, {"person_involved": "alien"}, format="json")
    assert res.status_code == 400, res.data
    assert res.data["error"]["code"] == "validation_error"


def test_qi_review_reject_over_http(submitted_incident, qi_client):
    res = qi_client.post(
        f"{_detail(submitted_incident)}qi-review/",
        {"decision": "reject", "rejection_reason": "Incomplete"},
        format="json",
    )
    assert res.status_code == 200, res.data
    assert res.data["status"] == "draft"
    assert res.data["qi_rejection_reason"] == "Incomplete"


def test_delete_draft(draft_incident, reporter_client):
    res = reporter_client.delete(_detail(draft_incident))
    assert res.status_code == 204
    assert not Incident.objects.filter(id=draft_incident.id).exists()


def test_assign_investigator_endpoint(investigating_incident, qi_client, client_for, investigator_a):
    res = qi_client.post(
        f"{_detail(investigating_incident)}assign-investigator/",
        {"investigator_id": investigator_a.id},
        format="json",
    )
    assert res.status_code == 201, res.data
    assert res.data["investigator_id"] == investigator_a.id

    res = client_for(investigator_a).post(
        f"{_detail(investigating_incident)}submit-findings/",
        {"findings": "Mislabelled vial"},
        format="json",
    )
    assert res.status_code == 200, res.data
    assert res.data["status"] == "submitted"


def test_comments_add_list_delete(submitted_incident, reporter_client, client_for, other_reporter, admin):
    url = f"{_detail(submitted_incident)}comments/"

    res = reporter_client.post(url, {"comment": "Added the pharmacy log."}, format="json")
    assert res.status_code == 201, res.data
    comment_id = res.data["id"]

    res = client_for(other_reporter).get(url)
    assert res.status_code == 200, res.data
    assert [c["id"] for c in res.data] == [comment_id]

    res = client_for(other_reporter).delete(f"{url}{comment_id}/")
    assert res.status_code == 403, res.data

    res = client_for(admin).delete(f"{url}{comment_id}/")
    assert res.status_code == 204


def test_comments_on_hidden_draft_are_not_found(draft_incident, client_for, other_reporter):
    res = client_for(other_reporter).get(f"{_detail(draft_incident)}comments/")
    assert res.status_code == 404, res.data


def test_status_is_not_writable_through_patch(draft_incident, reporter_client):
    res = reporter_client.patch(_detail(draft_incident), {"status": "closed", "location": "ICU"}, format="json")
    assert res.status_code == 200, res.data
    assert res.data["status"] == "draft"
    assert res.data["location"] == "ICU"
