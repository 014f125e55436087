from rest_framework.permissions import BasePermission

from .ip_utils import get_client_ip
from .rbac import Action, Role, evaluate, has_minimum_role_level
from .rbac_log import RbacLogEntry, get_rbac_log

METHOD_ACTIONS = {
    'GET': Action.READ,
    'HEAD': Action.READ,
    'OPTIONS': Action.READ,
    'POST': Action.CREATE,
    'PUT': Action.UPDATE,
    'PATCH': Action.UPDATE,
    'DELETE': Action.DELETE,
}


def record_decision(request, resource, action, decision):
    """Write one permission decision to the shared RBAC log."""
    user = request.user
    return get_rbac_log().record(RbacLogEntry(
        user_id=str(getattr(user, 'uuid', '') or 'anonymous'),
        email=getattr(user, 'email', '') or '',
        role=getattr(user, 'role', '') or '',
        resource=str(resource),
        action=str(action),
        allowed=decision.allowed,
        reason=decision.reason,
        ip=get_client_ip(request),
        path=request.path,
        method=request.method,
    ))


# =====================================================
# Matrix-driven permission
# =====================================================

class HasResourcePermission(BasePermission):
    """
    Checks the caller's role against the permission matrix.

    Views declare `rbac_resource`; the action is taken from the HTTP method
    unless the view provides `rbac_actions` ({method: Action}) to override it.
    """
    message = 'Your role does not allow this action.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        resource = getattr(view, 'rbac_resource')
        overrides = getattr(view, 'rbac_actions', {}) or {}
        action = overrides.get(request.method, METHOD_ACTIONS.get(request.method, Action.READ))

        decision = evaluate(request.user.role, resource, action)
        record_decision(request, resource, action, decision)
        return decision.allowed


# =====================================================
# Role Permissions
# =====================================================

class MinimumRoleLevel(BasePermission):
    """Subclasses set `required_role`; higher roles pass too."""
    required_role = Role.CUSTOMER

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return has_minimum_role_level(request.user.role, self.required_role)


class IsAdmin(MinimumRoleLevel):
    required_role = Role.ADMIN


class IsRestaurantOwner(BasePermission):
    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.is_restaurant_owner


class IsDeliveryGuy(BasePermission):
    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.is_delivery_guy


class IsAdminOrDeliveryGuy(BasePermission):
    def has_permission(self, request, view):
        return request.user.is_authenticated and (request.user.is_admin or request.user.is_delivery_guy)
