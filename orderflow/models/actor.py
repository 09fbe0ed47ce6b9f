"""Who is acting on an order or task."""

from enum import Enum

from pydantic import BaseModel


class ActorRole(str, Enum):
    GUEST = "guest"
    STAFF = "staff"
    MANAGER = "manager"
    SYSTEM = "system"


class Actor(BaseModel):
    id: str
    role: ActorRole = ActorRole.GUEST

    @property
    def is_staff(self) -> bool:
        return self.role in (ActorRole.STAFF, ActorRole.MANAGER)
