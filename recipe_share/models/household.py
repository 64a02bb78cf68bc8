from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import List, TYPE_CHECKING
from recipe_share.models.base import BaseModel

if TYPE_CHECKING:
    from recipe_share.models.collection import Collection, CollectionSubscription
    from recipe_share.models.recipe import Recipe
    from recipe_share.models.ingredient import Ingredient


class Household(BaseModel):
    """
    Household model, the unit of ownership.
    Every collection, recipe and ingredient belongs to exactly one household.
    """

    __tablename__ = "households"

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Relationships
    collections: Mapped[List["Collection"]] = relationship(
        "Collection", back_populates="household", lazy="select"
    )

    recipes: Mapped[List["Recipe"]] = relationship(
        "Recipe", back_populates="household", lazy="select"
    )

    ingredients: Mapped[List["Ingredient"]] = relationship(
        "Ingredient", back_populates="household", lazy="select"
    )

    subscriptions: Mapped[List["CollectionSubscription"]] = relationship(
        "CollectionSubscription", back_populates="household", lazy="select"
    )
