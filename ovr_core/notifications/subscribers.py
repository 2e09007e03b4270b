# ovr_core/notifications/subscribers.py
"""
Workflow notification stubs.

Handlers run after the originating transaction commits (see
common.events.publish_on_commit). Delivery is a log line; swapping in email or
push only needs a new `deliver`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from django.contrib.auth import get_user_model

from ovr_core.common.events import subscribe
from ovr_core.iam.roles import ROLE_QI, ROLE_SUPERVISOR, resolve_roles

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    event: str
    subject: str
    user_ids: List[int] = field(default_factory=list)
    emails: List[str] = field(default_factory=list)


def _role_members(role: str) -> List[int]:
    # alias groups and user.role count, as they do for request-time checks
    User = get_user_model()
    return [u.id for u in User.objects.filter(is_active=True).order_by("id") if role in resolve_roles(u)]


def _ids(*values: Any) -> List[int]:
    out: List[int] = []
    for v in values:
        if v is not None and v not in out:
            out.append(v)
    return out


def deliver(notification: Notification) -> None:
    logger.info(
        "notify %s: %s -> users=%s emails=%s",
        notification.event,
        notification.subject,
        notification.user_ids,
        notification.emails,
    )


@subscribe("incident.submitted")
def on_submitted(payload: Dict[str, Any]) -> None:
    deliver(
        Notification(
            event="incident.submitted",
            subject=f"{payload['reference_number']} submitted for review",
            user_ids=_ids(*_role_members(ROLE_SUPERVISOR), *_role_members(ROLE_QI)),
        )
    )


@subscribe("incident.supervisor_approved")
def on_supervisor_approved(payload: Dict[str, Any]) -> None:
    deliver(
        Notification(
            event="incident.supervisor_approved",
            subject=f"{payload['reference_number']} approved by supervisor",
            user_ids=_ids(payload.get("reporter_id"), *_role_members(ROLE_QI)),
        )
    )


@subscribe("incident.rejected")
def on_rejected(payload: Dict[str, Any]) -> None:
    deliver(
        Notification(
            event="incident.rejected",
            subject=f"{payload['reference_number']} returned to draft: {payload.get('reason', '')}",
            user_ids=_ids(payload.get("reporter_id")),
        )
    )


@subscribe("incident.approved")
def on_approved(payload: Dict[str, Any]) -> None:
    deliver(
        Notification(
            event="incident.approved",
            subject=f"{payload['reference_number']} accepted for investigation",
            user_ids=_ids(payload.get("reporter_id")),
        )
    )


@subscribe("incident.hod_assigned")
def on_hod_assigned(payload: Dict[str, Any]) -> None:
    deliver(
        Notification(
            event="incident.hod_assigned",
            subject=f"{payload['reference_number']} assigned to you for review",
            user_ids=_ids(payload.get("department_head_id")),
        )
    )


@subscribe("incident.hod_submitted")
def on_hod_submitted(payload: Dict[str, Any]) -> None:
    deliver(
        Notification(
            event="incident.hod_submitted",
            subject=f"{payload['reference_number']} HOD report ready for final review",
            user_ids=_role_members(ROLE_QI),
        )
    )


@subscribe("incident.closed")
def on_closed(payload: Dict[str, Any]) -> None:
    deliver(
        Notification(
            event="incident.closed",
            subject=f"{payload['reference_number']} closed",
            user_ids=_ids(payload.get("reporter_id")),
        )
    )


@subscribe("investigation.submitted")
def on_investigation_submitted(payload: Dict[str, Any]) -> None:
    deliver(
        Notification(
            event="investigation.submitted",
            subject=f"{payload['reference_number']} investigation findings submitted",
            user_ids=_role_members(ROLE_QI),
        )
    )


@subscribe("shared_access.granted")
def on_granted(payload: Dict[str, Any]) -> None:
    deliver(
        Notification(
            event="shared_access.granted",
            subject=f"You have been invited as {payload['role']} on a {payload['resource_type']}",
            emails=[payload["email"]],
        )
    )


@subscribe("shared_access.revoked")
def on_revoked(payload: Dict[str, Any]) -> None:
    deliver(
        Notification(
            event="shared_access.revoked",
            subject=f"Your access to a {payload['resource_type']} was revoked",
            emails=[payload["email"]],
        )
    )
