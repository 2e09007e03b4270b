# ovr_core/incidents/services.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from ovr_core.audit.services import AuditService
from ovr_core.common.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ovr_core.common.events import publish_on_commit
from ovr_core.iam import policy
from ovr_core.iam.roles import ROLE_HOD, Actor, resolve_roles
from ovr_core.incidents import workflow
from ovr_core.incidents.models import (
    Incident,
    IncidentComment,
    IncidentInvestigator,
    IncidentStatus,
    InvestigatorStatus,
    PersonInvolved,
    SeverityLevel,
)
from ovr_core.incidents.numbering import IncidentNumberService

logger = logging.getLogger(__name__)

ENTITY = "Incident"

CONTENT_FIELDS = (
    "person_involved",
    "involved_person_name",
    "involved_person_mrn",
    "occurrence_date",
    "occurrence_time",
    "location",
    "occurrence_category",
    "occurrence_subcategory",
    "description",
    "witness_account",
    "medical_assessment",
    "level_of_harm",
    "severity_level",
)

REQUIRED_ON_SUBMIT = (
    "person_involved",
    "occurrence_date",
    "location",
    "occurrence_category",
    "description",
)

INVESTIGATOR_ASSIGNABLE = {IncidentStatus.INVESTIGATING, IncidentStatus.HOD_ASSIGNED}

CREATE_ATTEMPTS = 3


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _require_text(**fields: Any) -> Dict[str, str]:
    missing = [name for name, value in fields.items() if _blank(value)]
    if missing:
        raise ValidationError(
            f"Missing required field(s): {', '.join(missing)}",
            details={"fields": missing},
        )
    return {name: str(value).strip() for name, value in fields.items()}


def _deny(actor: Optional[Actor], message: str) -> AuthorizationError:
    logger.warning("denied actor=%s: %s", getattr(actor, "user_id", None), message)
    return AuthorizationError(message)


def _clean_content(data: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(data) - set(CONTENT_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(unknown)}", details={"fields": unknown})

    cleaned = dict(data)

    person = cleaned.get("person_involved")
    if person and person not in PersonInvolved.values:
        raise ValidationError("Invalid person_involved.", details={"allowed": list(PersonInvolved.values)})

    severity = cleaned.get("severity_level")
    if severity and severity not in SeverityLevel.values:
        raise ValidationError("Invalid severity_level.", details={"allowed": list(SeverityLevel.values)})

    for key, value in cleaned.items():
        if value is None and key not in ("occurrence_date", "occurrence_time"):
            cleaned[key] = ""

    return cleaned


def _require_complete(incident: Incident) -> None:
    missing = [name for name in REQUIRED_ON_SUBMIT if _blank(getattr(incident, name))]
    if incident.person_involved == PersonInvolved.PATIENT and _blank(incident.involved_person_mrn):
        missing.append("involved_person_mrn")
    if missing:
        raise ValidationError(
            f"Incident is incomplete: {', '.join(missing)}",
            details={"fields": missing},
        )


def _payload(incident: Incident, actor: Optional[Actor], **extra) -> Dict[str, Any]:
    return {
        "incident_id": str(incident.id),
        "reference_number": incident.reference_number,
        "status": incident.status,
        "reporter_id": incident.reporter_id,
        "actor_user_id": getattr(actor, "user_id", None),
        **extra,
    }


class IncidentService:
    """
    Incident lifecycle writes.

    Every method is one transaction:
    role gate -> locked read -> visibility/ownership -> source status -> guards
    -> stamps + save -> audit -> publish on commit.
    """

    # ---------------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------------
    @staticmethod
    def _lock(*, incident_id: UUID, actor: Optional[Actor]) -> Incident:
        try:
            incident = Incident.objects.select_for_update().get(id=incident_id)
        except Incident.DoesNotExist:
            raise NotFoundError("Incident not found.")

        if not policy.can_view_incident(actor, incident.reporter_id, incident.status):
            # drafts of other users are indistinguishable from missing rows
            raise NotFoundError("Incident not found.")
        return incident

    @staticmethod
    def _check(transition: workflow.Transition, incident: Incident) -> None:
        try:
            workflow.check_source(transition, incident.status)
        except ConflictError:
            logger.warning(
                "conflict %s on %s: status=%s expected=%s",
                transition.name,
                incident.reference_number,
                incident.status,
                transition.source,
            )
            raise

    @staticmethod
    def _apply(
        *,
        incident: Incident,
        transition: workflow.Transition,
        actor: Optional[Actor],
        stamps: Dict[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Incident:
        from_status = incident.status

        incident.status = transition.target
        for field, value in stamps.items():
            setattr(incident, field, value)
        incident.save(update_fields=["status", *stamps.keys(), "updated_at"])

        AuditService.log(
            event_code=transition.event_code,
            entity_type=ENTITY,
            entity_id=incident.id,
            actor_user_id=getattr(actor, "user_id", None),
            metadata={"from": from_status, "to": incident.status, **(metadata or {})},
        )

        publish_on_commit(
            transition.event_code,
            _payload(incident, actor, from_status=from_status, **(metadata or {})),
        )

        logger.info(
            "%s %s: %s -> %s by actor=%s",
            transition.name,
            incident.reference_number,
            from_status,
            incident.status,
            getattr(actor, "user_id", None),
        )
        return incident

    @staticmethod
    def _open_action_count(incident: Incident) -> int:
        from ovr_core.corrective_actions.models import CorrectiveAction, ActionStatus

        return CorrectiveAction.objects.filter(incident=incident, status=ActionStatus.OPEN).count()

    @staticmethod
    def _close_gate(incident: Incident) -> None:
        open_actions = IncidentService._open_action_count(incident)
        if open_actions:
            logger.warning("close blocked on %s: %s open action(s)", incident.reference_number, open_actions)
            raise ConflictError(
                f"Cannot close incident: {open_actions} corrective action(s) still open",
                details={"open_actions": open_actions},
            )

    # ---------------------------------------------------------------------
    # Draft lifecycle
    # ---------------------------------------------------------------------
    @staticmethod
    @transaction.atomic
    def create(*, actor: Actor, data: Dict[str, Any], submit: bool = False) -> Incident:
        fields = _clean_content(data)

        incident = None
        for _ in range(CREATE_ATTEMPTS):
            reference = IncidentNumberService.next_reference()
            try:
                with transaction.atomic():
                    incident = Incident.objects.create(
                        reference_number=reference,
                        reporter_id=actor.user_id,
                        status=IncidentStatus.DRAFT,
                        **fields,
                    )
                break
            except IntegrityError:
                logger.warning("reference %s already taken, retrying", reference)

        if incident is None:
            raise ConflictError("Could not allocate a reference number, please retry.")

        AuditService.log(
            event_code="incident.created",
            entity_type=ENTITY,
            entity_id=incident.id,
            actor_user_id=actor.user_id,
            metadata={"reference_number": incident.reference_number},
        )
        logger.info("created %s by actor=%s", incident.reference_number, actor.user_id)

        if submit:
            _require_complete(incident)
            IncidentService._apply(
                incident=incident,
                transition=workflow.SUBMIT,
                actor=actor,
                stamps={"submitted_at": timezone.now()},
            )

        return incident

    @staticmethod
    @transaction.atomic
    def update_draft(*, actor: Actor, incident_id: UUID, data: Dict[str, Any]) -> Incident:
        fields = _clean_content(data)

        incident = IncidentService._lock(incident_id=incident_id, actor=actor)

        if incident.reporter_id != actor.user_id:
            raise _deny(actor, "Only the reporter can edit this incident.")
        if not policy.can_edit_incident(actor, incident.reporter_id, incident.status):
            raise ConflictError(
                f"Cannot edit incident in status '{incident.status}'",
                details={"status": incident.status, "expected": IncidentStatus.DRAFT},
            )

        if not fields:
            return incident

        for field, value in fields.items():
            setattr(incident, field, value)
        incident.save(update_fields=[*fields.keys(), "updated_at"])

        AuditService.log(
            event_code="incident.updated",
            entity_type=ENTITY,
            entity_id=incident.id,
            actor_user_id=actor.user_id,
            metadata={"fields": sorted(fields)},
        )
        return incident

    @staticmethod
    @transaction.atomic
    def delete(*, actor: Actor, incident_id: UUID) -> None:
        try:
            incident = Incident.objects.select_for_update().get(id=incident_id)
        except Incident.DoesNotExist:
            raise NotFoundError("Incident not found.")

        if not policy.can_delete_incident(actor, incident.reporter_id, incident.status):
            if not policy.can_view_incident(actor, incident.reporter_id, incident.status):
                raise NotFoundError("Incident not found.")
            if incident.reporter_id == actor.user_id:
                raise ConflictError(
                    f"Cannot delete incident in status '{incident.status}'",
                    details={"status": incident.status, "expected": IncidentStatus.DRAFT},
                )
            raise _deny(actor, "Only the reporter (draft) or an admin can delete this incident.")

        incident_pk, reference = incident.id, incident.reference_number
        incident.delete()

        AuditService.log(
            event_code="incident.deleted",
            entity_type=ENTITY,
            entity_id=incident_pk,
            actor_user_id=actor.user_id,
            metadata={"reference_number": reference},
        )
        logger.info("deleted %s by actor=%s", reference, actor.user_id)

    # ---------------------------------------------------------------------
    # Transitions
    # ---------------------------------------------------------------------
    @staticmethod
    @transaction.atomic
    def submit(*, actor: Actor, incident_id: UUID) -> Incident:
        incident = IncidentService._lock(incident_id=incident_id, actor=actor)

        if not policy.can_submit_incident(actor, incident.reporter_id):
            raise _deny(actor, "Only the reporter can submit this incident.")
        IncidentService._check(workflow.SUBMIT, incident)
        _require_complete(incident)

        return IncidentService._apply(
            incident=incident,
            transition=workflow.SUBMIT,
            actor=actor,
            stamps={"submitted_at": timezone.now()},
        )

    @staticmethod
    @transaction.atomic
    def supervisor_approve(*, actor: Actor, incident_id: UUID, note: str = "") -> Incident:
        if not policy.can_supervisor_approve(actor):
            raise _deny(actor, "Only supervisors can approve incidents.")

        incident = IncidentService._lock(incident_id=incident_id, actor=actor)
        IncidentService._check(workflow.SUPERVISOR_APPROVE, incident)

        return IncidentService._apply(
            incident=incident,
            transition=workflow.SUPERVISOR_APPROVE,
            actor=actor,
            stamps={
                "supervisor_id": actor.user_id,
                "supervisor_approved_at": timezone.now(),
                "supervisor_note": (note or "").strip(),
            },
        )

    @staticmethod
    @transaction.atomic
    def qi_review(
        *,
        actor: Actor,
        incident_id: UUID,
        decision: str,
        rejection_reason: str = "",
    ) -> Incident:
        if not policy.can_review_submission(actor):
            raise _deny(actor, "Only QI staff can review submissions.")
        if decision not in ("approve", "reject"):
            raise ValidationError("decision must be 'approve' or 'reject'.")

        incident = IncidentService._lock(incident_id=incident_id, actor=actor)
        now = timezone.now()

        if decision == "reject":
            IncidentService._check(workflow.QI_REJECT, incident)
            reason = _require_text(rejection_reason=rejection_reason)["rejection_reason"]
            return IncidentService._apply(
                incident=incident,
                transition=workflow.QI_REJECT,
                actor=actor,
                stamps={
                    "submitted_at": None,
                    "qi_rejection_reason": reason,
                    "qi_rejected_by_id": actor.user_id,
                    "qi_rejected_at": now,
                },
                metadata={"reason": reason},
            )

        IncidentService._check(workflow.QI_APPROVE, incident)
        return IncidentService._apply(
            incident=incident,
            transition=workflow.QI_APPROVE,
            actor=actor,
            stamps={
                "qi_received_by_id": actor.user_id,
                "qi_received_at": now,
                "qi_reviewed_by_id": actor.user_id,
                "qi_reviewed_at": now,
                "qi_assigned_by_id": actor.user_id,
                "qi_assigned_at": now,
            },
        )

    @staticmethod
    @transaction.atomic
    def assign_hod(*, actor: Actor, incident_id: UUID, department_head_id) -> Incident:
        if not policy.can_assign_hod(actor):
            raise _deny(actor, "Only QI staff can assign a department head.")
        if department_head_id in (None, ""):
            raise ValidationError("department_head_id is required.", details={"fields": ["department_head_id"]})

        incident = IncidentService._lock(incident_id=incident_id, actor=actor)
        IncidentService._check(workflow.ASSIGN_HOD, incident)

        User = get_user_model()
        head = User.objects.filter(id=department_head_id, is_active=True).first()
        if head is None or ROLE_HOD not in resolve_roles(head):
            raise ValidationError(
                "department_head_id must reference an active department head.",
                details={"department_head_id": department_head_id},
            )

        now = timezone.now()
        stamps = {"department_head_id": head.id, "hod_assigned_at": now}
        if incident.qi_received_by_id is None:
            stamps.update(qi_received_by_id=actor.user_id, qi_received_at=now)
        if incident.qi_assigned_by_id is None:
            stamps.update(qi_assigned_by_id=actor.user_id, qi_assigned_at=now)

        return IncidentService._apply(
            incident=incident,
            transition=workflow.ASSIGN_HOD,
            actor=actor,
            stamps=stamps,
            metadata={"department_head_id": head.id},
        )

    @staticmethod
    @transaction.atomic
    def hod_submit(
        *,
        actor: Actor,
        incident_id: UUID,
        problems_identified: str,
        cause_classification: str,
        prevention_recommendation: str,
    ) -> Incident:
        incident = IncidentService._lock(incident_id=incident_id, actor=actor)

        if not policy.can_hod_submit(actor, incident.department_head_id):
            raise _deny(actor, "Only the assigned department head can submit this report.")
        IncidentService._check(workflow.HOD_SUBMIT, incident)

        report = _require_text(
            problems_identified=problems_identified,
            cause_classification=cause_classification,
            prevention_recommendation=prevention_recommendation,
        )

        return IncidentService._apply(
            incident=incident,
            transition=workflow.HOD_SUBMIT,
            actor=actor,
            stamps={**report, "hod_submitted_at": timezone.now()},
        )

    @staticmethod
    @transaction.atomic
    def apply_system_transition(
        *,
        incident: Incident,
        transition: workflow.Transition,
        actor: Optional[Actor],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Incident:
        """
        Cascade entry point for writes owned by another aggregate
        (investigation submit). The caller must already hold the incident lock.
        """
        IncidentService._check(transition, incident)
        return IncidentService._apply(
            incident=incident,
            transition=transition,
            actor=actor,
            stamps={},
            metadata=metadata,
        )

    @staticmethod
    @transaction.atomic
    def close(*, actor: Actor, incident_id: UUID, case_review: str, reporter_feedback: str) -> Incident:
        # role half of the gate; the open-actions half needs the locked row
        if not policy.can_close_incident(actor, open_actions=0):
            raise _deny(actor, "Only QI staff can close incidents.")

        incident = IncidentService._lock(incident_id=incident_id, actor=actor)
        IncidentService._check(workflow.CLOSE, incident)
        IncidentService._close_gate(incident)

        review = _require_text(case_review=case_review, reporter_feedback=reporter_feedback)

        return IncidentService._apply(
            incident=incident,
            transition=workflow.CLOSE,
            actor=actor,
            stamps={**review, "closed_by_id": actor.user_id, "closed_at": timezone.now()},
        )

    @staticmethod
    @transaction.atomic
    def qi_close(
        *,
        actor: Actor,
        incident_id: UUID,
        feedback: str,
        severity_level: str,
        form_complete: bool = False,
        proper_cause_identified: bool = False,
        proper_timeframe: bool = False,
        action_complies_standards: bool = False,
        effective_corrective_action: bool = False,
    ) -> Incident:
        if not policy.can_close_incident(actor, open_actions=0):
            raise _deny(actor, "Only QI staff can close incidents.")

        incident = IncidentService._lock(incident_id=incident_id, actor=actor)
        IncidentService._check(workflow.QI_CLOSE, incident)
        IncidentService._close_gate(incident)

        text = _require_text(feedback=feedback, severity_level=severity_level)
        if text["severity_level"] not in SeverityLevel.values:
            raise ValidationError("Invalid severity_level.", details={"allowed": list(SeverityLevel.values)})

        now = timezone.now()
        return IncidentService._apply(
            incident=incident,
            transition=workflow.QI_CLOSE,
            actor=actor,
            stamps={
                "qi_feedback": text["feedback"],
                "severity_level": text["severity_level"],
                "qi_form_complete": bool(form_complete),
                "qi_proper_cause_identified": bool(proper_cause_identified),
                "qi_proper_timeframe": bool(proper_timeframe),
                "qi_action_complies_standards": bool(action_complies_standards),
                "qi_effective_corrective_action": bool(effective_corrective_action),
                "qi_reviewed_by_id": actor.user_id,
                "qi_reviewed_at": now,
                "closed_by_id": actor.user_id,
                "closed_at": now,
            },
        )

    # ---------------------------------------------------------------------
    # Investigator assignments
    # ---------------------------------------------------------------------
    @staticmethod
    @transaction.atomic
    def assign_investigator(*, actor: Actor, incident_id: UUID, investigator_id) -> IncidentInvestigator:
        from ovr_core.investigations.models import Investigation

        if not policy.can_assign_investigator(actor):
            raise _deny(actor, "Only QI staff or department heads can assign investigators.")
        if investigator_id in (None, ""):
            raise ValidationError("investigator_id is required.", details={"fields": ["investigator_id"]})

        incident = IncidentService._lock(incident_id=incident_id, actor=actor)
        if incident.status not in INVESTIGATOR_ASSIGNABLE:
            raise ConflictError(
                f"Cannot assign investigator to incident in status '{incident.status}'",
                details={"status": incident.status, "expected": sorted(INVESTIGATOR_ASSIGNABLE)},
            )

        User = get_user_model()
        user = User.objects.filter(id=investigator_id, is_active=True).first()
        if user is None:
            raise ValidationError("investigator_id must reference an active user.")

        try:
            with transaction.atomic():
                assignment = IncidentInvestigator.objects.create(
                    incident=incident,
                    investigator=user,
                    assigned_by_id=actor.user_id,
                )
        except IntegrityError:
            raise ValidationError("Investigator is already assigned to this incident.")

        investigation = (
            Investigation.objects.select_for_update()
            .filter(incident=incident, submitted_at__isnull=True)
            .first()
        )
        if investigation is not None and user.id not in investigation.investigators:
            investigation.investigators = [*investigation.investigators, user.id]
            investigation.save(update_fields=["investigators", "updated_at"])

        AuditService.log(
            event_code="incident.investigator_assigned",
            entity_type=ENTITY,
            entity_id=incident.id,
            actor_user_id=actor.user_id,
            metadata={"investigator_id": user.id},
        )
        publish_on_commit(
            "incident.investigator_assigned",
            _payload(incident, actor, investigator_id=user.id),
        )
        logger.info("assigned investigator=%s to %s", user.id, incident.reference_number)
        return assignment

    @staticmethod
    @transaction.atomic
    def submit_investigator_findings(*, actor: Actor, incident_id: UUID, findings: str) -> IncidentInvestigator:
        incident = IncidentService._lock(incident_id=incident_id, actor=actor)

        assignment = (
            IncidentInvestigator.objects.select_for_update()
            .filter(incident=incident, investigator_id=actor.user_id)
            .first()
        )
        if assignment is None:
            raise _deny(actor, "You are not assigned to investigate this incident.")
        if assignment.status != InvestigatorStatus.PENDING:
            raise ConflictError(
                "Findings already submitted for this assignment.",
                details={"status": assignment.status},
            )

        text = _require_text(findings=findings)

        assignment.findings = text["findings"]
        assignment.status = InvestigatorStatus.SUBMITTED
        assignment.submitted_at = timezone.now()
        assignment.save(update_fields=["findings", "status", "submitted_at", "updated_at"])

        AuditService.log(
            event_code="incident.investigator_findings_submitted",
            entity_type=ENTITY,
            entity_id=incident.id,
            actor_user_id=actor.user_id,
            metadata={"assignment_id": str(assignment.id)},
        )
        logger.info("investigator=%s submitted findings on %s", actor.user_id, incident.reference_number)
        return assignment


class CommentService:
    @staticmethod
    @transaction.atomic
    def add(*, actor: Actor, incident_id: UUID, comment: str) -> IncidentComment:
        text = _require_text(comment=comment)["comment"]
        if len(text) > 5000:
            raise ValidationError("Comment must be at most 5000 characters.")

        incident = IncidentService._lock(incident_id=incident_id, actor=actor)

        obj = IncidentComment.objects.create(incident=incident, user_id=actor.user_id, comment=text)
        AuditService.log(
            event_code="incident.comment_added",
            entity_type=ENTITY,
            entity_id=incident.id,
            actor_user_id=actor.user_id,
            metadata={"comment_id": str(obj.id)},
        )
        return obj

    @staticmethod
    @transaction.atomic
    def delete(*, actor: Actor, incident_id: UUID, comment_id: UUID) -> None:
        incident = IncidentService._lock(incident_id=incident_id, actor=actor)

        obj = IncidentComment.objects.filter(id=comment_id, incident=incident).first()
        if obj is None:
            raise NotFoundError("Comment not found.")
        if not policy.can_delete_comment(actor, obj.user_id):
            raise _deny(actor, "Only the author or an admin can delete this comment.")

        obj.delete()
        AuditService.log(
            event_code="incident.comment_deleted",
            entity_type=ENTITY,
            entity_id=incident.id,
            actor_user_id=actor.user_id,
            metadata={"comment_id": str(comment_id)},
        )

