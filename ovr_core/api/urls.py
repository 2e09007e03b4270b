# ovr_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from ovr_core.audit.api.views import AuditEventViewSet
from ovr_core.corrective_actions.api.views import CorrectiveActionViewSet
from ovr_core.iam.api.auth import LoginView, LogoutView, RefreshView
from ovr_core.iam.api.me import MeView
from ovr_core.incidents.api.views import IncidentViewSet
from ovr_core.investigations.api.views import InvestigationViewSet
from ovr_core.shared_access.api.views import SharedAccessAcceptView, SharedAccessView

router = DefaultRouter()

router.register(r"incidents", IncidentViewSet, basename="incidents")
router.register(r"investigations", InvestigationViewSet, basename="investigations")
router.register(r"corrective-actions", CorrectiveActionViewSet, basename="corrective-actions")
router.register(r"audit/events", AuditEventViewSet, basename="audit-events")

urlpatterns = [
    # Auth + /me
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/refresh/", RefreshView.as_view(), name="refresh"),
    path("auth/logout/", LogoutView.as_view(), name="logout"),
    path("me/", MeView.as_view(), name="me"),

    # Shared access (non-ViewSet: PUT/DELETE on the collection)
    path("shared-access/", SharedAccessView.as_view(), name="shared-access"),
    path("shared-access/accept/", SharedAccessAcceptView.as_view(), name="shared-access-accept"),

    # Router URLs last (so explicit paths win if ever overlapping)
    *router.urls,
]
