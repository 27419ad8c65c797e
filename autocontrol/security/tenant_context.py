"""
Company scoping of listings. Client-side only: it hides other companies' rows in
listings, it does not isolate them. Real isolation needs enforcement on the server.
"""

from typing import Iterable, List, Optional

from autocontrol.domain.models.user import User
from autocontrol.security.exceptions import TenantIsolationError


class TenantContext:
    """Filter and check records against the current user's company."""

    @staticmethod
    def validate_access(resource_company: Optional[str], current_company: Optional[str]) -> None:
        """Raise TenantIsolationError when both companies are known and differ."""
        if resource_company and current_company and resource_company != current_company:
            raise TenantIsolationError(
                f"Company isolation: record of company '{resource_company}' "
                f"is not visible to company '{current_company}'"
            )

    @staticmethod
    def visible_users(
        users: Iterable[User],
        current_user: Optional[User],
        active_only: bool = False,
    ) -> List[User]:
        """Users of the current user's company. Without a current user nothing is visible."""
        if current_user is None:
            return []
        company = current_user.company_id
        return [
            u
            for u in users
            if u.company_id == company and (u.is_active or not active_only)
        ]
