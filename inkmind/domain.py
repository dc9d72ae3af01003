# domain.py
"""
Core value types shared by the design store, the lineage walker and the
branch operation.

These are plain pydantic models so that every repository implementation
(SQL or in-memory) hands out the same immutable snapshots. Routers never
see ORM rows directly.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class DesignStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    CONFIRMED = "confirmed"


class Role(str, enum.Enum):
    USER = "user"
    STUDIO_ADMIN = "studio_admin"
    ADMIN = "admin"


class Actor(BaseModel):
    """Whoever is performing an operation: the signed-in user and their role."""
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: uuid.UUID
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class Design(BaseModel):
    """Snapshot of one stored design."""
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: uuid.UUID
    owner_id: uuid.UUID
    prompt: Optional[str] = None
    style: Optional[str] = None
    placement: Optional[str] = None
    image_ref: Optional[str] = None
    reference_image_ref: Optional[str] = None
    final_image_ref: Optional[str] = None
    parent_id: Optional[uuid.UUID] = None
    collection_id: Optional[uuid.UUID] = None
    status: DesignStatus = DesignStatus.DRAFT
    is_starred: bool = False
    is_shared: bool = False
    submitted_at: Optional[datetime] = None
    created_at: datetime

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def visible_to(self, actor: Actor) -> bool:
        """Owners and admins always see a design; everyone else only once it is shared."""
        return self.owner_id == actor.id or actor.is_admin or self.is_shared


class DesignUpdate(BaseModel):
    """Value types of the fields `update()` may change after creation."""
    model_config = ConfigDict(extra="forbid")

    status: DesignStatus = DesignStatus.DRAFT
    is_starred: bool = False
    is_shared: bool = False
    collection_id: Optional[uuid.UUID] = None
    final_image_ref: Optional[str] = None
    submitted_at: Optional[datetime] = None


MUTABLE_FIELDS = frozenset(DesignUpdate.model_fields)

# History-defining fields: changing these would rewrite lineage or pixels.
WRITE_ONCE_FIELDS = frozenset({"parent_id", "image_ref"})
