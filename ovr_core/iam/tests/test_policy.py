from types import SimpleNamespace

import pytest

from ovr_core.iam import policy
from ovr_core.iam.roles import (
    ROLE_ADMIN,
    ROLE_EMPLOYEE,
    ROLE_HOD,
    ROLE_QI,
    ROLE_SUPERVISOR,
    Actor,
    normalize_role,
    resolve_roles,
)


def _actor(user_id=1, *roles):
    return Actor(user_id=user_id, roles=frozenset(roles))


def _user(**attrs):
    base = {"is_authenticated": True, "is_superuser": False}
    base.update(attrs)
    return SimpleNamespace(**base)


def test_singular_and_plural_role_fields_agree():
    assert resolve_roles(_user(role="qi")) == resolve_roles(_user(roles=["QI"])) == frozenset({ROLE_QI})
    assert resolve_roles(_user(roles="supervisor")) == frozenset({ROLE_SUPERVISOR})


def test_aliases_and_unknown_roles():
    assert normalize_role("department head") == ROLE_HOD
    assert normalize_role("Quality_Manager") == ROLE_QI
    assert normalize_role("janitor") is None
    # no known role -> plain reporter
    assert resolve_roles(_user(role="janitor")) == frozenset({ROLE_EMPLOYEE})


def test_superuser_is_admin_and_anonymous_has_nothing():
    assert ROLE_ADMIN in resolve_roles(_user(is_superuser=True))
    assert resolve_roles(_user(is_authenticated=False, role="QI")) == frozenset()
    assert resolve_roles(None) == frozenset()


@pytest.mark.django_db
def test_group_roles(make_user):
    user = make_user("multi", ROLE_QI, ROLE_HOD)
    assert resolve_roles(user) == frozenset({ROLE_QI, ROLE_HOD})


def test_draft_visible_only_to_reporter():
    reporter = _actor(1)
    admin = _actor(2, ROLE_ADMIN)

    assert policy.can_view_incident(reporter, 1, "draft")
    assert not policy.can_view_incident(admin, 1, "draft")
    assert not policy.can_view_incident(None, 1, "submitted")
    assert policy.can_view_incident(_actor(3), 1, "submitted")


def test_admin_satisfies_roles_but_not_ownership():
    admin = _actor(9, ROLE_ADMIN)

    assert policy.can_review_submission(admin)
    assert policy.can_supervisor_approve(admin)
    assert not policy.can_edit_incident(admin, 1, "draft")
    assert not policy.can_submit_incident(admin, 1)
    # deletion is the explicit exception
    assert policy.can_delete_incident(admin, 1, "closed")


def test_close_gate_counts_open_actions():
    qi = _actor(5, ROLE_QI)
    assert policy.can_close_incident(qi, open_actions=0)
    assert not policy.can_close_incident(qi, open_actions=2)
    assert not policy.can_close_incident(_actor(6, ROLE_HOD), open_actions=0)


def test_findings_need_membership_even_for_qi():
    qi = _actor(5, ROLE_QI)

    assert policy.can_update_investigation(qi, [])
    assert not policy.can_submit_findings(qi, [])
    assert policy.can_submit_findings(qi, [5])
    assert policy.can_submit_findings(None, [], grant_roles={"investigator"})
    assert not policy.can_submit_findings(None, [], grant_roles={"viewer"})


def test_corrective_action_handlers():
    assert policy.can_update_corrective_action(_actor(7), [7])
    assert policy.can_update_corrective_action(None, [], grant_roles={"action_handler"})
    assert not policy.can_update_corrective_action(_actor(8), [7], grant_roles={"viewer"})


def test_stats_and_investigator_assignment_roles():
    assert policy.can_view_stats(_actor(1, ROLE_SUPERVISOR))
    assert not policy.can_view_stats(_actor(1, ROLE_EMPLOYEE))
    assert policy.can_assign_investigator(_actor(1, ROLE_HOD))
    assert not policy.can_assign_investigator(_actor(1, ROLE_SUPERVISOR))


def test_comment_deletion():
    assert policy.can_delete_comment(_actor(4), 4)
    assert policy.can_delete_comment(_actor(1, ROLE_ADMIN), 4)
    assert not policy.can_delete_comment(_actor(1, ROLE_QI), 4)
