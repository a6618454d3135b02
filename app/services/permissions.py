"""Role/branch permission checks"""

from typing import Dict, List, Optional
from uuid import UUID

from app.errors import ForbiddenError
from app.models.user import User, UserRole

WILDCARD = "*"

PERMISSION_MATRIX: Dict[UserRole, Dict[str, List[str]]] = {
    UserRole.MASTER_ADMIN: {
        "branches": [WILDCARD],
        "bookings": [WILDCARD],
        "customers": [WILDCARD],
        "tables": [WILDCARD],
        "blocked_slots": [WILDCARD],
        "analytics": [WILDCARD],
    },
    UserRole.BRANCH_ADMIN: {
        "branches": ["read", "update", "operating_hours"],
        "bookings": ["create", "read", "update", "complete"],
        "customers": ["create", "read", "update", "blacklist"],
        "tables": ["read", "create", "update", "combine"],
        "blocked_slots": ["read", "manage"],
        "analytics": ["view"],
    },
    UserRole.STAFF: {
        "branches": ["read"],
        "bookings": ["create", "read", "update", "complete"],
        "customers": ["create", "read", "update"],
        "tables": ["read"],
        "blocked_slots": ["read"],
        "analytics": ["view"],
    },
}


class PermissionService:
    """Checks a user's role matrix and branch scope"""

    @staticmethod
    def has_permission(
        user: User,
        resource: str,
        action: str,
        branch_id: Optional[UUID] = None,
    ) -> bool:
        permissions = PERMISSION_MATRIX.get(user.role, {}).get(resource, [])

        if WILDCARD in permissions:
            return True

        if action not in permissions:
            return False

        if branch_id is None:
            return True

        return user.branch_id is not None and user.branch_id == branch_id

    @classmethod
    def assert_allowed(
        cls,
        user: User,
        resource: str,
        action: str,
        branch_id: Optional[UUID] = None,
    ) -> None:
        """Raise ForbiddenError unless ``user`` may perform ``action``"""
        if not cls.has_permission(user, resource, action, branch_id):
            raise ForbiddenError()

    @staticmethod
    def accessible_branches(user: User) -> Optional[List[UUID]]:
        """Branch ids a user may see; None means all"""
        if user.role == UserRole.MASTER_ADMIN:
            return None
        return [user.branch_id] if user.branch_id else []
