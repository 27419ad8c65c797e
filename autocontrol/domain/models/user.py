"""Users, establishment profile and the client session."""

from enum import Enum
from typing import Optional

from pydantic import ConfigDict

from autocontrol.domain.models.base import AutoControlModel


class Role(str, Enum):
    ADMINISTRATOR = "Administrator"
    USER = "User"
    READ_ONLY = "ReadOnly"


class User(AutoControlModel):
    # Passwords and other credentials coming back from forms are never kept.
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    email: str
    role: Role = Role.USER
    is_active: bool = True
    company_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMINISTRATOR


class EstablishmentInfo(AutoControlModel):
    """Organization profile. Extra fields (cif, phone, ...) are preserved as sent."""

    name: str = ""
    address: str = ""
    city: str = ""
    postal_code: str = ""
    sanitary_registry: str = ""


class Session(AutoControlModel):
    """
    Authenticated session. current_user is set only once the token has been validated,
    except for an offline restore (offline=True) that reuses the last validated user.
    """

    token: Optional[str] = None
    current_user: Optional[User] = None
    offline: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None and self.current_user is not None
