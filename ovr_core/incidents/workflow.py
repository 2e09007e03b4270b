# ovr_core/incidents/workflow.py
"""
Incident status transition table.

Both approval paths out of `submitted` are kept as separate branches:
- supervisor sign-off, then QI hands the report to a department head;
- direct QI review (approve opens an investigation, reject returns the draft).

Only the QI rejection moves backwards.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from ovr_core.common.errors import ConflictError
from ovr_core.incidents.models import IncidentStatus


@dataclass(frozen=True)
class Transition:
    name: str
    source: str
    target: str
    event_code: str


SUBMIT = Transition("submit", IncidentStatus.DRAFT, IncidentStatus.SUBMITTED, "incident.submitted")
SUPERVISOR_APPROVE = Transition(
    "supervisor_approve", IncidentStatus.SUBMITTED, IncidentStatus.SUPERVISOR_APPROVED, "incident.supervisor_approved"
)
QI_REJECT = Transition("qi_reject", IncidentStatus.SUBMITTED, IncidentStatus.DRAFT, "incident.rejected")
QI_APPROVE = Transition("qi_approve", IncidentStatus.SUBMITTED, IncidentStatus.INVESTIGATING, "incident.approved")
ASSIGN_HOD = Transition(
    "assign_hod", IncidentStatus.SUPERVISOR_APPROVED, IncidentStatus.HOD_ASSIGNED, "incident.hod_assigned"
)
HOD_SUBMIT = Transition("hod_submit", IncidentStatus.HOD_ASSIGNED, IncidentStatus.QI_FINAL_REVIEW, "incident.hod_submitted")
FINDINGS_SUBMITTED = Transition(
    "findings_submitted", IncidentStatus.INVESTIGATING, IncidentStatus.QI_FINAL_ACTIONS, "incident.findings_submitted"
)
QI_CLOSE = Transition("qi_close", IncidentStatus.QI_FINAL_REVIEW, IncidentStatus.CLOSED, "incident.closed")
CLOSE = Transition("close", IncidentStatus.QI_FINAL_ACTIONS, IncidentStatus.CLOSED, "incident.closed")

TRANSITIONS: Dict[str, Transition] = {
    t.name: t
    for t in (
        SUBMIT,
        SUPERVISOR_APPROVE,
        QI_REJECT,
        QI_APPROVE,
        ASSIGN_HOD,
        HOD_SUBMIT,
        FINDINGS_SUBMITTED,
        QI_CLOSE,
        CLOSE,
    )
}

# Transitions fired by the system as a side effect of another write, never by a user action.
SYSTEM_TRANSITIONS = frozenset({FINDINGS_SUBMITTED.name})


def check_source(transition: Transition, actual: str) -> None:
    if actual != transition.source:
        label = transition.name.replace("_", " ")
        raise ConflictError(
            f"Cannot {label} incident in status '{actual}'",
            details={"status": str(actual), "expected": str(transition.source)},
        )


def allowed_transitions(status: str) -> List[str]:
    """Names of user-facing transitions whose source is `status`."""
    return [t.name for t in TRANSITIONS.values() if t.source == status and t.name not in SYSTEM_TRANSITIONS]
