"""Security: RBAC and company scoping."""

from autocontrol.security.exceptions import AuthorizationError, SecurityError, TenantIsolationError
from autocontrol.security.rbac import RBACService
from autocontrol.security.tenant_context import TenantContext

__all__ = [
    "AuthorizationError",
    "RBACService",
    "SecurityError",
    "TenantContext",
    "TenantIsolationError",
]
