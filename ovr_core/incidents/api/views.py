# ovr_core/incidents/api/views.py
from __future__ import annotations

from uuid import UUID

from django.utils.dateparse import parse_date
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from ovr_core.common.api.pagination import paginate
from ovr_core.common.errors import NotFoundError, ValidationError
from ovr_core.common.permissions import IncidentPermission
from ovr_core.iam.roles import actor_from_user
from ovr_core.incidents.api.serializers import (
    AssignHODInputSerializer,
    AssignInvestigatorInputSerializer,
    CloseInputSerializer,
    CommentInputSerializer,
    HODSubmitInputSerializer,
    IncidentCommentSerializer,
    IncidentCreateSerializer,
    IncidentInvestigatorSerializer,
    IncidentListSerializer,
    IncidentSerializer,
    IncidentStatsSerializer,
    IncidentWriteSerializer,
    InvestigatorFindingsInputSerializer,
    QICloseInputSerializer,
    QIReviewInputSerializer,
    SupervisorApproveInputSerializer,
)
from ovr_core.incidents.models import Incident
from ovr_core.incidents.selectors import IncidentSelectors
from ovr_core.incidents.services import CommentService, IncidentService

UUID_RE = r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"


def _uuid(value, *, label: str = "Incident") -> UUID:
    try:
        return UUID(str(value))
    except ValueError:
        raise NotFoundError(f"{label} not found.")


def _int_param(request, name: str) -> int | None:
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"Invalid {name} (int expected).")


def _date_param(request, name: str):
    raw = request.query_params.get(name)
    if not raw:
        return None
    try:
        value = parse_date(raw)
    except ValueError:
        value = None
    if value is None:
        raise ValidationError(f"Invalid {name} (YYYY-MM-DD expected).")
    return value


def _detail(incident: Incident) -> Response:
    return Response(IncidentSerializer(incident).data, status=status.HTTP_200_OK)


class IncidentViewSet(viewsets.ViewSet):
    """
    Occurrence variance reports and their workflow transitions.
    """
    permission_classes = [IncidentPermission]
    serializer_class = IncidentSerializer
    queryset = Incident.objects.none()
    lookup_value_regex = UUID_RE

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------
    @extend_schema(
        tags=["Incidents"],
        responses={200: IncidentListSerializer(many=True)},
        parameters=[
            OpenApiParameter("status", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("category", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("reporter", OpenApiTypes.INT, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("date_from", OpenApiTypes.DATE, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("date_to", OpenApiTypes.DATE, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("search", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False,
                             description="Matches reference number, description or person name."),
            OpenApiParameter("mine", OpenApiTypes.BOOL, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("ordering", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False,
                             description="created_at, occurrence_date or status; prefix with - for descending."),
        ],
    )
    def list(self, request):
        qp = request.query_params
        qs = IncidentSelectors.list_incidents(
            actor=actor_from_user(request.user),
            status=qp.get("status") or None,
            category=qp.get("category") or None,
            reporter_id=_int_param(request, "reporter"),
            date_from=_date_param(request, "date_from"),
            date_to=_date_param(request, "date_to"),
            search=qp.get("search") or None,
            mine=qp.get("mine") in ("1", "true", "True"),
            ordering=qp.get("ordering") or None,
        )
        return paginate(request, qs, IncidentListSerializer)

    @extend_schema(tags=["Incidents"], responses={200: IncidentSerializer})
    def retrieve(self, request, pk=None):
        incident = IncidentSelectors.get_for_actor(actor=actor_from_user(request.user), incident_id=_uuid(pk))
        return _detail(incident)

    @extend_schema(tags=["Incidents"], responses={200: IncidentListSerializer(many=True)})
    @action(detail=False, methods=["get"], url_path="drafts")
    def drafts(self, request):
        qs = IncidentSelectors.list_drafts(actor=actor_from_user(request.user))
        return paginate(request, qs, IncidentListSerializer)

    @extend_schema(tags=["Incidents"], responses={200: IncidentStatsSerializer})
    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        data = IncidentSelectors.stats(actor=actor_from_user(request.user))
        return Response(IncidentStatsSerializer(data).data, status=status.HTTP_200_OK)

    # ------------------------------------------------------------
    # Draft lifecycle
    # ------------------------------------------------------------
    @extend_schema(tags=["Incidents"], request=IncidentCreateSerializer, responses={201: IncidentSerializer})
    def create(self, request):
        ser = IncidentCreateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        data = dict(ser.validated_data)
        submit = data.pop("submit", False)

        incident = IncidentService.create(actor=actor_from_user(request.user), data=data, submit=submit)
        return Response(IncidentSerializer(incident).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Incidents"], request=IncidentWriteSerializer, responses={200: IncidentSerializer})
    def partial_update(self, request, pk=None):
        ser = IncidentWriteSerializer(data=request.data or {}, partial=True)
        ser.is_valid(raise_exception=True)

        incident = IncidentService.update_draft(
            actor=actor_from_user(request.user),
            incident_id=_uuid(pk),
            data=dict(ser.validated_data),
        )
        return _detail(incident)

    @extend_schema(tags=["Incidents"], responses={204: None})
    def destroy(self, request, pk=None):
        IncidentService.delete(actor=actor_from_user(request.user), incident_id=_uuid(pk))
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------
    # Workflow transitions
    # ------------------------------------------------------------
    @extend_schema(tags=["Incidents"], request=None, responses={200: IncidentSerializer})
    @action(detail=True, methods=["post"], url_path="submit")
    def submit(self, request, pk=None):
        incident = IncidentService.submit(actor=actor_from_user(request.user), incident_id=_uuid(pk))
        return _detail(incident)

    @extend_schema(tags=["Incidents"], request=SupervisorApproveInputSerializer, responses={200: IncidentSerializer})
    @action(detail=True, methods=["post"], url_path="supervisor-approve")
    def supervisor_approve(self, request, pk=None):
        ser = SupervisorApproveInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        incident = IncidentService.supervisor_approve(
            actor=actor_from_user(request.user),
            incident_id=_uuid(pk),
            note=ser.validated_data["note"],
        )
        return _detail(incident)

    @extend_schema(tags=["Incidents"], request=QIReviewInputSerializer, responses={200: IncidentSerializer})
    @action(detail=True, methods=["post"], url_path="qi-review")
    def qi_review(self, request, pk=None):
        ser = QIReviewInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        incident = IncidentService.qi_review(
            actor=actor_from_user(request.user),
            incident_id=_uuid(pk),
            decision=ser.validated_data["decision"],
            rejection_reason=ser.validated_data["rejection_reason"],
        )
        return _detail(incident)

    @extend_schema(tags=["Incidents"], request=AssignHODInputSerializer, responses={200: IncidentSerializer})
    @action(detail=True, methods=["post"], url_path="qi-assign-hod")
    def qi_assign_hod(self, request, pk=None):
        ser = AssignHODInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        incident = IncidentService.assign_hod(
            actor=actor_from_user(request.user),
            incident_id=_uuid(pk),
            department_head_id=ser.validated_data["department_head_id"],
        )
        return _detail(incident)

    @extend_schema(tags=["Incidents"], request=HODSubmitInputSerializer, responses={200: IncidentSerializer})
    @action(detail=True, methods=["post"], url_path="hod-submit")
    def hod_submit(self, request, pk=None):
        ser = HODSubmitInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        incident = IncidentService.hod_submit(
            actor=actor_from_user(request.user),
            incident_id=_uuid(pk),
            **ser.validated_data,
        )
        return _detail(incident)

    @extend_schema(
        tags=["Incidents"],
        request=AssignInvestigatorInputSerializer,
        responses={201: IncidentInvestigatorSerializer},
    )
    @action(detail=True, methods=["post"], url_path="assign-investigator")
    def assign_investigator(self, request, pk=None):
        ser = AssignInvestigatorInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        assignment = IncidentService.assign_investigator(
            actor=actor_from_user(request.user),
            incident_id=_uuid(pk),
            investigator_id=ser.validated_data["investigator_id"],
        )
        return Response(IncidentInvestigatorSerializer(assignment).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Incidents"],
        request=InvestigatorFindingsInputSerializer,
        responses={200: IncidentInvestigatorSerializer},
    )
    @action(detail=True, methods=["post"], url_path="submit-findings")
    def submit_findings(self, request, pk=None):
        ser = InvestigatorFindingsInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        assignment = IncidentService.submit_investigator_findings(
            actor=actor_from_user(request.user),
            incident_id=_uuid(pk),
            findings=ser.validated_data["findings"],
        )
        return Response(IncidentInvestigatorSerializer(assignment).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Incidents"], request=CloseInputSerializer, responses={200: IncidentSerializer})
    @action(detail=True, methods=["post"], url_path="close")
    def close(self, request, pk=None):
        ser = CloseInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        incident = IncidentService.close(
            actor=actor_from_user(request.user),
            incident_id=_uuid(pk),
            **ser.validated_data,
        )
        return _detail(incident)

    @extend_schema(tags=["Incidents"], request=QICloseInputSerializer, responses={200: IncidentSerializer})
    @action(detail=True, methods=["post"], url_path="qi-close")
    def qi_close(self, request, pk=None):
        ser = QICloseInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        incident = IncidentService.qi_close(
            actor=actor_from_user(request.user),
            incident_id=_uuid(pk),
            **ser.validated_data,
        )
        return _detail(incident)

    # ------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------
    @extend_schema(
        tags=["Incidents"],
        request=CommentInputSerializer,
        responses={200: IncidentCommentSerializer(many=True), 201: IncidentCommentSerializer},
    )
    @action(detail=True, methods=["get", "post"], url_path="comments")
    def comments(self, request, pk=None):
        actor = actor_from_user(request.user)
        incident_id = _uuid(pk)

        if request.method == "GET":
            qs = IncidentSelectors.comments(actor=actor, incident_id=incident_id)
            return Response(IncidentCommentSerializer(qs, many=True).data, status=status.HTTP_200_OK)

        ser = CommentInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        comment = CommentService.add(actor=actor, incident_id=incident_id, comment=ser.validated_data["comment"])
        return Response(IncidentCommentSerializer(comment).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Incidents"], responses={204: None})
    @action(detail=True, methods=["delete"], url_path=rf"comments/(?P<comment_id>{UUID_RE})")
    def delete_comment(self, request, pk=None, comment_id=None):
        CommentService.delete(
            actor=actor_from_user(request.user),
            incident_id=_uuid(pk),
            comment_id=_uuid(comment_id, label="Comment"),
        )
        return Response(status=status.HTTP_204_NO_CONTENT)
