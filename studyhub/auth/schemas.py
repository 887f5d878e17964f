from enum import Enum
from typing import Optional

from pydantic import BaseModel


class Role(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class CurrentUser(BaseModel):
    """Identity extracted from a verified access token."""
    id: str
    role: Role = Role.STUDENT
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class TokenData(BaseModel):
    user_id: str | None = None
    role: Role = Role.STUDENT
    name: str | None = None
