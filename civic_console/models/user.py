"""
User models for console authentication and role resolution.
"""

from pydantic import BaseModel, Field
from typing import Optional
from enum import Enum


class UserRole(str, Enum):
    """Roles allowed into the console. Anyone else is denied."""
    ADMIN = "ADMIN"
    SUPERVISOR = "SUPERVISOR"


class ConsoleUser(BaseModel):
    """Role-scoped user, resolved once per auth session."""
    id: str = Field(..., description="Firebase UID")
    email: Optional[str] = Field(None, description="Email from the identity token")
    role: UserRole
    block_id: Optional[str] = Field(None, description="Municipal block the user is responsible for")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
