from rest_framework import permissions


class IsLGUAdmin(permissions.BasePermission):
    """Only LGU reviewers can access"""
    message = 'Forbidden - Admin access required'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.role == 'lgu_admin')


class IsLGUAdminOrReadOnly(permissions.BasePermission):
    """Reviewers can edit, others can only read"""
    message = 'Forbidden - Admin access required'

    def has_permission(self, request, view):
        if not (request.user and request.user.is_authenticated):
            return False
        if request.method in permissions.SAFE_METHODS:
            return True
        return request.user.role == 'lgu_admin'


class IsOwnerOrLGUAdmin(permissions.BasePermission):
    """Owner or reviewer can read; only the owner edits"""
    def has_object_permission(self, request, view, obj):
        if request.method in permissions.SAFE_METHODS and request.user.role == 'lgu_admin':
            return True
        return obj.user == request.user
