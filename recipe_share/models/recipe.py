from sqlalchemy import String, Integer, Text, Boolean, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import List, Optional, TYPE_CHECKING
from recipe_share.models.base import BaseModel, HouseholdOwnedMixin
if TYPE_CHECKING:
    from recipe_share.models.household import Household
    from recipe_share.models.ingredient import RecipeIngredient


class Recipe(HouseholdOwnedMixin, BaseModel):
    """
    Recipe model for storing meal recipes.
    Owned by one household and listed in any number of collections.
    """

    __tablename__ = "recipes"
    __table_args__ = (
        UniqueConstraint("household_id", "parent_id", name="uq_recipes_household_parent"),
    )

    # Basic info
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True, default=None
    )

    # Cooking details
    instructions: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True, default=None
    )
    prep_time_minutes: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True, default=None
    )
    cook_time_minutes: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True, default=None
    )
    servings: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    url_slug: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, default=None
    )

    # Media references (file names in blob storage)
    image_filename: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, default=None
    )
    pdf_filename: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, default=None
    )

    archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Relationships
    household: Mapped["Household"] = relationship(
        "Household", back_populates="recipes", lazy="select"
    )

    ingredients: Mapped[List["RecipeIngredient"]] = relationship(
        "RecipeIngredient",
        back_populates="recipe",
        order_by="RecipeIngredient.id",
        lazy="select",
    )