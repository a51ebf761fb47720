"""
Role-based DRF permission classes.

Roles live on ``User.role`` (STAFF, LINE_MANAGER, MANAGER, ADMIN); superusers
are treated as ADMIN everywhere.
"""

from rest_framework.permissions import BasePermission, SAFE_METHODS

ROLE_STAFF = 'STAFF'
ROLE_LINE_MANAGER = 'LINE_MANAGER'
ROLE_MANAGER = 'MANAGER'
ROLE_ADMIN = 'ADMIN'

APPROVER_ROLES = (ROLE_LINE_MANAGER, ROLE_MANAGER, ROLE_ADMIN)


def is_admin(user) -> bool:
    if not user or not user.is_authenticated:
        return False
    return user.is_superuser or getattr(user, 'role', None) == ROLE_ADMIN


class HasRole(BasePermission):
    """
    DRF permission class for checking roles.
    
    Usage:
        permission_classes = [HasRole]
        required_roles = ['LINE_MANAGER', 'MANAGER']
    """

    message = 'Your role does not allow this action.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        
        if is_admin(request.user):
            return True
        
        required_roles = getattr(view, 'required_roles', [])
        if not required_roles:
            return True
        return request.user.has_role(*required_roles)


class IsAdminRole(BasePermission):
    """Allows access only to ADMIN users."""

    message = 'Admin access required.'

    def has_permission(self, request, view):
        return is_admin(request.user)


class IsAdminOrReadOnly(BasePermission):
    """Authenticated users may read; only admins may write."""

    message = 'Admin access required.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        if request.method in SAFE_METHODS:
            return True
        return is_admin(request.user)


class IsApproverRole(BasePermission):
    """LINE_MANAGER, MANAGER and ADMIN users."""

    message = 'Only approvers can access approvals.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return is_admin(request.user) or request.user.has_role(*APPROVER_ROLES)
