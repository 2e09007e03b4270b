# ovr_core/common/permissions.py

from __future__ import annotations

from rest_framework.permissions import SAFE_METHODS, BasePermission

from ovr_core.iam.roles import ALL_ROLES, ROLE_ADMIN, ROLE_HOD, ROLE_QI, ROLE_SUPERVISOR, resolve_roles


class BaseRolePermission(BasePermission):
    """
    Coarse role gate at the view layer.

    Key behavior:
    - Requires authentication.
    - ADMIN bypass.
    - Uses allowed_roles_per_action for strict RBAC.
    - Unknown SAFE actions fall back to list/retrieve; unknown writes are denied.

    Fine-grained, state-dependent rules live in ovr_core.iam.policy and are
    enforced by the services.
    """
    message = "You do not have permission to perform this action."

    # Override in subclasses: dict of action -> set of allowed roles
    allowed_roles_per_action: dict[str, set[str]] = {}

    def _infer_action(self, request, view) -> str | None:
        action = getattr(view, "action", None)
        if action:
            return action

        kwargs = getattr(view, "kwargs", {}) or {}
        is_detail = "pk" in kwargs

        method = request.method.upper()
        if method in SAFE_METHODS:
            return "retrieve" if is_detail else "list"
        return {
            "POST": "create",
            "PUT": "update",
            "PATCH": "partial_update",
            "DELETE": "destroy",
        }.get(method)

    def has_permission(self, request, view) -> bool:
        user = request.user
        if not user or not getattr(user, "is_authenticated", False):
            return False

        roles = resolve_roles(user)
        if ROLE_ADMIN in roles:
            return True

        action = self._infer_action(request, view)
        allowed = self.allowed_roles_per_action.get(action)

        if allowed is None and request.method in SAFE_METHODS:
            kwargs = getattr(view, "kwargs", {}) or {}
            allowed = self.allowed_roles_per_action.get("retrieve" if "pk" in kwargs else "list")

        if allowed is not None:
            return bool(roles & allowed)

        # Unknown action => deny by default
        return False

    def has_object_permission(self, request, view, obj) -> bool:
        return self.has_permission(request, view)


class AuditPermission(BaseRolePermission):
    """Audit trail is for quality staff only."""
    allowed_roles_per_action = {
        "list": {ROLE_QI},
        "retrieve": {ROLE_QI},
    }


class IncidentPermission(BaseRolePermission):
    """
    Role gates for incident endpoints. Ownership and status rules are applied
    by IncidentService after the locked read.
    """
    allowed_roles_per_action = {
        "list": ALL_ROLES,
        "retrieve": ALL_ROLES,
        "create": ALL_ROLES,
        "partial_update": ALL_ROLES,
        "destroy": ALL_ROLES,
        "drafts": ALL_ROLES,
        "stats": {ROLE_SUPERVISOR, ROLE_HOD, ROLE_QI},
        "submit": ALL_ROLES,
        "supervisor_approve": {ROLE_SUPERVISOR},
        "qi_review": {ROLE_QI},
        "qi_assign_hod": {ROLE_QI},
        "hod_submit": {ROLE_HOD},
        "assign_investigator": {ROLE_QI, ROLE_HOD},
        "submit_findings": ALL_ROLES,
        "close": {ROLE_QI},
        "qi_close": {ROLE_QI},
        "comments": ALL_ROLES,
        "delete_comment": ALL_ROLES,
    }


class ShareTokenRolePermission(BaseRolePermission):
    """
    Actions listed in `token_actions` are reachable with a shared-access token
    instead of a session. The view resolves the effective access through
    ovr_core.shared_access.access.resolve_access and raises AuthenticationError
    when neither a session nor a token is present.
    """
    token_actions: set[str] = set()

    def has_permission(self, request, view) -> bool:
        if self._infer_action(request, view) in self.token_actions:
            return True
        return super().has_permission(request, view)


class InvestigationPermission(ShareTokenRolePermission):
    token_actions = {"retrieve", "partial_update", "submit"}
    allowed_roles_per_action = {
        "list": {ROLE_QI},
        "create": {ROLE_QI},
    }


class CorrectiveActionPermission(ShareTokenRolePermission):
    token_actions = {"retrieve", "partial_update", "checklist"}
    allowed_roles_per_action = {
        "list": ALL_ROLES,
        "create": {ROLE_QI},
        "close": {ROLE_QI},
    }


class SharedAccessPermission(ShareTokenRolePermission):
    token_actions = {"accept"}
    allowed_roles_per_action = {
        "list": {ROLE_QI},
        "create": {ROLE_QI},
        "update": {ROLE_QI},
        "destroy": {ROLE_QI},
    }
