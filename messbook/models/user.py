from enum import Enum

from pydantic import BaseModel, Field, ConfigDict

from messbook.models.base import MongoModel


class UserRole(str, Enum):
    MEMBER = "member"
    ADMIN = "admin"


class User(MongoModel):
    """Member of the mess, as read from the user directory."""
    name: str = Field(..., min_length=1, max_length=100)
    is_active: bool = True
    role: UserRole = UserRole.MEMBER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class UserResponse(BaseModel):
    """Authenticated caller, as exposed to route handlers."""
    id: str
    name: str
    role: UserRole
    is_active: bool

    model_config = ConfigDict(use_enum_values=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
