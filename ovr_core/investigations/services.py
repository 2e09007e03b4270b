# ovr_core/investigations/services.py
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from ovr_core.audit.services import AuditService
from ovr_core.common.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ovr_core.common.events import publish_on_commit
from ovr_core.iam import policy
from ovr_core.iam.roles import ROLE_QI, Actor
from ovr_core.incidents import workflow
from ovr_core.incidents.models import Incident
from ovr_core.incidents.services import IncidentService
from ovr_core.investigations.models import Investigation
from ovr_core.shared_access.access import EffectiveAccess, grant_roles, resolve_access
from ovr_core.shared_access.models import ResourceType

logger = logging.getLogger(__name__)

ENTITY = "Investigation"

WORKING_FIELDS = ("findings", "problems_identified", "cause_classification", "cause_details", "investigators")
SUBMIT_FIELDS = ("findings", "problems_identified", "cause_classification", "cause_details")


def _dedupe(ids: Iterable[Any]) -> List[int]:
    seen: List[int] = []
    for raw in ids:
        try:
            uid = int(raw)
        except (TypeError, ValueError):
            raise ValidationError("investigators must be a list of user ids.", details={"value": raw})
        if uid not in seen:
            seen.append(uid)
    return seen


def _check_users(ids: List[int]) -> None:
    User = get_user_model()
    found = set(User.objects.filter(id__in=ids, is_active=True).values_list("id", flat=True))
    missing = [i for i in ids if i not in found]
    if missing:
        raise ValidationError("Unknown investigator id(s).", details={"investigators": missing})


def access_for(
    *, actor: Optional[Actor], investigation: Investigation, token: Optional[str] = None
) -> EffectiveAccess:
    return resolve_access(
        actor=actor,
        resource_type=ResourceType.INVESTIGATION,
        resource_id=investigation.id,
        member_ids=investigation.investigators or [],
        token=token,
    )


class InvestigationService:
    @staticmethod
    @transaction.atomic
    def create(
        *,
        actor: Actor,
        incident_id: UUID,
        investigators: Optional[Iterable[Any]] = None,
    ) -> Investigation:
        if actor is None or not actor.has_role(ROLE_QI):
            raise AuthorizationError("Only QI staff can open investigations.")

        incident = Incident.objects.select_for_update().filter(id=incident_id).first()
        if incident is None or not policy.can_view_incident(actor, incident.reporter_id, incident.status):
            raise NotFoundError("Incident not found.")
        if not policy.can_create_investigation(actor, incident.status):
            raise ConflictError(
                f"Cannot open investigation for incident in status '{incident.status}'",
                details={"status": incident.status, "expected": workflow.FINDINGS_SUBMITTED.source},
            )

        ids = _dedupe(investigators or [actor.user_id])
        if not ids:
            ids = [actor.user_id]
        _check_users(ids)

        try:
            with transaction.atomic():
                investigation = Investigation.objects.create(
                    incident=incident,
                    investigators=ids,
                    created_by_id=actor.user_id,
                )
        except IntegrityError:
            raise ConflictError("An investigation already exists for this incident.")

        AuditService.log(
            event_code="investigation.created",
            entity_type=ENTITY,
            entity_id=investigation.id,
            actor_user_id=actor.user_id,
            metadata={"incident_id": str(incident.id), "investigators": ids},
        )
        logger.info("investigation opened on %s investigators=%s", incident.reference_number, ids)
        return investigation

    @staticmethod
    @transaction.atomic
    def update(
        *,
        actor: Optional[Actor],
        investigation_id: UUID,
        data: Dict[str, Any],
        token: Optional[str] = None,
    ) -> Investigation:
        unknown = sorted(set(data) - set(WORKING_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown field(s): {', '.join(unknown)}", details={"fields": unknown})

        investigation = Investigation.objects.select_for_update().filter(id=investigation_id).first()
        if investigation is None:
            raise NotFoundError("Investigation not found.")

        access = access_for(actor=actor, investigation=investigation, token=token)
        if not policy.can_update_investigation(actor, investigation.investigators or [], grant_roles(access)):
            raise AuthorizationError("You cannot edit this investigation.")
        if "investigators" in data and not access.is_full:
            raise AuthorizationError("Only QI staff can change the investigator list.")
        if investigation.is_submitted:
            raise ConflictError("Investigation has already been submitted.", details={"submitted_at": investigation.submitted_at})

        fields = dict(data)
        if "investigators" in fields:
            fields["investigators"] = _dedupe(fields["investigators"] or [])
            if not fields["investigators"]:
                raise ValidationError("investigators cannot be empty.")
            _check_users(fields["investigators"])

        for field, value in fields.items():
            setattr(investigation, field, value if value is not None else "")
        if fields:
            investigation.save(update_fields=[*fields.keys(), "updated_at"])

            AuditService.log(
                event_code="investigation.updated",
                entity_type=ENTITY,
                entity_id=investigation.id,
                actor_user_id=getattr(actor, "user_id", None),
                metadata={"fields": sorted(fields), "via": list(access.via)},
            )
        return investigation

    @staticmethod
    @transaction.atomic
    def submit(
        *,
        actor: Optional[Actor],
        investigation_id: UUID,
        data: Dict[str, Any],
        token: Optional[str] = None,
    ) -> Investigation:
        """
        Record findings and move the incident to QI final actions.
        Both writes commit together or not at all.
        """
        # incident first, then investigation: same lock order as every incident write
        incident_id = Investigation.objects.filter(id=investigation_id).values_list("incident_id", flat=True).first()
        if incident_id is None:
            raise NotFoundError("Investigation not found.")

        incident = Incident.objects.select_for_update().get(id=incident_id)
        investigation = Investigation.objects.select_for_update().get(id=investigation_id)

        access = access_for(actor=actor, investigation=investigation, token=token)
        if not access.can_submit or not policy.can_submit_findings(
            actor, investigation.investigators or [], grant_roles(access)
        ):
            logger.warning(
                "denied submit on investigation %s for actor=%s via=%s",
                investigation.id,
                getattr(actor, "user_id", None),
                access.via,
            )
            raise AuthorizationError("Only a listed investigator can submit findings.")

        if investigation.is_submitted:
            raise ConflictError(
                "Investigation has already been submitted.",
                details={"submitted_at": investigation.submitted_at},
            )
        workflow.check_source(workflow.FINDINGS_SUBMITTED, incident.status)

        missing = [f for f in SUBMIT_FIELDS if not str(data.get(f) or "").strip()]
        if missing:
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}", details={"fields": missing})

        for field in SUBMIT_FIELDS:
            setattr(investigation, field, str(data[field]).strip())
        investigation.submitted_by_id = getattr(actor, "user_id", None)
        investigation.submitted_at = timezone.now()
        investigation.save(update_fields=[*SUBMIT_FIELDS, "submitted_by", "submitted_at", "updated_at"])

        AuditService.log(
            event_code="investigation.submitted",
            entity_type=ENTITY,
            entity_id=investigation.id,
            actor_user_id=getattr(actor, "user_id", None),
            metadata={"incident_id": str(incident.id), "via": list(access.via), "grant_id": str(access.grant_id or "")},
        )

        IncidentService.apply_system_transition(
            incident=incident,
            transition=workflow.FINDINGS_SUBMITTED,
            actor=actor,
            metadata={"investigation_id": str(investigation.id)},
        )

        publish_on_commit(
            "investigation.submitted",
            {
                "investigation_id": str(investigation.id),
                "incident_id": str(incident.id),
                "reference_number": incident.reference_number,
                "actor_user_id": getattr(actor, "user_id", None),
            },
        )
        logger.info("investigation %s submitted on %s", investigation.id, incident.reference_number)
        return investigation
