from pydantic import BaseModel, Field
from typing import List
import enum


class ForkAction(str, enum.Enum):
    """Rows a fork created"""

    COLLECTION_COPIED = "collection_copied"
    RECIPE_COPIED = "recipe_copied"
    INGREDIENT_COPIED = "ingredient_copied"
    RECIPE_LINKED = "recipe_linked"


class ForkResult(BaseModel):
    """Ids the caller should mutate instead of the shared originals."""
    new_collection_id: int
    new_recipe_id: int
    actions_taken: List[ForkAction] = Field(default_factory=list)

    @property
    def forked(self) -> bool:
        """Whether this call created any rows."""
        return bool(self.actions_taken)


class IngredientForkResult(ForkResult):
    """Fork result that also carries the household's copy of one ingredient."""
    new_ingredient_id: int


class CopyResult(BaseModel):
    """Outcome of forking a single resource outside a collection context."""
    copied: bool
    new_id: int
