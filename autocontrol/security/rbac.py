"""Role-based access control for container operations."""

from autocontrol.domain.models.user import Role
from autocontrol.security.exceptions import AuthorizationError

VIEW = "view"
CREATE = "create"
DELETE = "delete"
MANAGE_USERS = "manage_users"
MANAGE_ESTABLISHMENT = "manage_establishment"

# Permission matrix:
# Role           View  Create  Delete  Manage users  Manage establishment
# Administrator  ✓     ✓       ✓       ✓             ✓
# User           ✓     ✓       ✓       ✗             ✗
# ReadOnly       ✓     ✗       ✗       ✗             ✗

_ACTION_PERMISSIONS: dict[tuple[Role, str], bool] = {
    (Role.ADMINISTRATOR, VIEW): True,
    (Role.ADMINISTRATOR, CREATE): True,
    (Role.ADMINISTRATOR, DELETE): True,
    (Role.ADMINISTRATOR, MANAGE_USERS): True,
    (Role.ADMINISTRATOR, MANAGE_ESTABLISHMENT): True,
    (Role.USER, VIEW): True,
    (Role.USER, CREATE): True,
    (Role.USER, DELETE): True,
    (Role.USER, MANAGE_USERS): False,
    (Role.USER, MANAGE_ESTABLISHMENT): False,
    (Role.READ_ONLY, VIEW): True,
    (Role.READ_ONLY, CREATE): False,
    (Role.READ_ONLY, DELETE): False,
    (Role.READ_ONLY, MANAGE_USERS): False,
    (Role.READ_ONLY, MANAGE_ESTABLISHMENT): False,
}


class RBACService:
    """Check permission for role and action. Raise AuthorizationError if invalid."""

    def is_allowed(self, role: Role, action: str) -> bool:
        return _ACTION_PERMISSIONS.get((role, action), False)

    def check_permission(self, role: Role, action: str) -> None:
        """Raises AuthorizationError if role does not have permission for action."""
        if not self.is_allowed(role, action):
            raise AuthorizationError(
                f"Role {role.value} does not have permission for action '{action}'"
            )
