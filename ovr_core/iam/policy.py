# ovr_core/iam/policy.py
"""
Access control policy for the OVR workflow.

Pure decision functions: (actor, context values) -> bool. No I/O, no model
imports. Services evaluate role-only gates before touching the database and
state-dependent gates right after the locked read.

ADMIN satisfies every role requirement but never an ownership requirement
(except deletion, where admin is explicitly allowed).
"""
from __future__ import annotations

from typing import Collection, Optional

from ovr_core.iam.roles import (
    ROLE_HOD,
    ROLE_QI,
    ROLE_SUPERVISOR,
    Actor,
)

STATUS_DRAFT = "draft"
STATUS_INVESTIGATING = "investigating"

GRANT_INVESTIGATOR = "investigator"
GRANT_ACTION_HANDLER = "action_handler"
GRANT_VIEWER = "viewer"


def _is(actor: Optional[Actor], user_id) -> bool:
    return actor is not None and user_id is not None and actor.user_id == user_id


def _has(actor: Optional[Actor], *roles: str) -> bool:
    return actor is not None and actor.has_role(*roles)


# -----------------------------
# Incident lifecycle
# -----------------------------

def can_view_incident(actor: Optional[Actor], reporter_id, status: str) -> bool:
    # drafts exist only for their reporter
    if status == STATUS_DRAFT:
        return _is(actor, reporter_id)
    return actor is not None


def can_edit_incident(actor: Optional[Actor], reporter_id, status: str) -> bool:
    return _is(actor, reporter_id) and status == STATUS_DRAFT


def can_delete_incident(actor: Optional[Actor], reporter_id, status: str) -> bool:
    return can_edit_incident(actor, reporter_id, status) or (actor is not None and actor.is_admin)


def can_submit_incident(actor: Optional[Actor], reporter_id) -> bool:
    return _is(actor, reporter_id)


def can_supervisor_approve(actor: Optional[Actor]) -> bool:
    return _has(actor, ROLE_SUPERVISOR)


def can_review_submission(actor: Optional[Actor]) -> bool:
    return _has(actor, ROLE_QI)


def can_assign_hod(actor: Optional[Actor]) -> bool:
    return _has(actor, ROLE_QI)


def can_hod_submit(actor: Optional[Actor], department_head_id) -> bool:
    return _is(actor, department_head_id) or (actor is not None and actor.is_admin)


def can_assign_investigator(actor: Optional[Actor]) -> bool:
    return _has(actor, ROLE_QI, ROLE_HOD)


def can_close_incident(actor: Optional[Actor], open_actions: int) -> bool:
    return _has(actor, ROLE_QI) and open_actions == 0


def can_view_stats(actor: Optional[Actor]) -> bool:
    return _has(actor, ROLE_SUPERVISOR, ROLE_HOD, ROLE_QI)


def can_view_audit(actor: Optional[Actor]) -> bool:
    return _has(actor, ROLE_QI)


# -----------------------------
# Investigation
# -----------------------------

def can_create_investigation(actor: Optional[Actor], incident_status: str) -> bool:
    return _has(actor, ROLE_QI) and incident_status == STATUS_INVESTIGATING


def can_update_investigation(
    actor: Optional[Actor],
    investigator_ids: Collection[int],
    grant_roles: Collection[str] = (),
) -> bool:
    return (
        _has(actor, ROLE_QI)
        or (actor is not None and actor.user_id in investigator_ids)
        or GRANT_INVESTIGATOR in grant_roles
    )


def can_submit_findings(
    actor: Optional[Actor],
    investigator_ids: Collection[int],
    grant_roles: Collection[str] = (),
) -> bool:
    # membership, not role: QI must be listed like anyone else
    return (actor is not None and actor.user_id in investigator_ids) or GRANT_INVESTIGATOR in grant_roles


# -----------------------------
# Corrective actions
# -----------------------------

def can_create_corrective_action(actor: Optional[Actor]) -> bool:
    return _has(actor, ROLE_QI)


def can_update_corrective_action(
    actor: Optional[Actor],
    assignee_ids: Collection[int],
    grant_roles: Collection[str] = (),
) -> bool:
    return (
        _has(actor, ROLE_QI)
        or (actor is not None and actor.user_id in assignee_ids)
        or GRANT_ACTION_HANDLER in grant_roles
    )


def can_close_corrective_action(actor: Optional[Actor]) -> bool:
    return _has(actor, ROLE_QI)


# -----------------------------
# Shared access + comments
# -----------------------------

def can_manage_shared_access(actor: Optional[Actor]) -> bool:
    return _has(actor, ROLE_QI)


def has_full_resource_access(actor: Optional[Actor]) -> bool:
    return _has(actor, ROLE_QI)


def can_delete_comment(actor: Optional[Actor], author_id) -> bool:
    return _is(actor, author_id) or (actor is not None and actor.is_admin)
