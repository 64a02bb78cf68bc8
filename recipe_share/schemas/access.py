from pydantic import BaseModel, Field
from typing import Optional
import enum


class ResourceType(str, enum.Enum):
    """Household-owned resource types"""

    COLLECTION = "collection"
    RECIPE = "recipe"
    INGREDIENT = "ingredient"


class AccessLevel(str, enum.Enum):
    """A household's relationship to a resource, strongest first."""

    OWNED = "owned"
    SUBSCRIBED = "subscribed"
    PUBLIC = "public"
    NONE = "none"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @property
    def can_read(self) -> bool:
        return self is not AccessLevel.NONE

    @classmethod
    def strongest(cls, *levels: "AccessLevel") -> "AccessLevel":
        """Return the strongest of the given levels (NONE when empty)."""
        return max(levels, key=lambda level: level.rank, default=cls.NONE)


_RANKS = {
    AccessLevel.OWNED: 3,
    AccessLevel.SUBSCRIBED: 2,
    AccessLevel.PUBLIC: 1,
    AccessLevel.NONE: 0,
}


class ResourceRef(BaseModel):
    """Reference to a resource, optionally viewed through a collection."""
    type: ResourceType
    id: int = Field(..., gt=0)
    collection_id: Optional[int] = Field(
        None, gt=0, description="Collection context, only meaningful for recipes"
    )

    model_config = {"frozen": True}


class AccessResponse(BaseModel):
    """Schema for an access check response."""
    resource_type: ResourceType
    resource_id: int
    access: AccessLevel
    can_mutate: bool


class PermissionResponse(BaseModel):
    """Schema for a mutate permission check response."""
    resource_type: ResourceType
    resource_id: int
    can_mutate: bool
