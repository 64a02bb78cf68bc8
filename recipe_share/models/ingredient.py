from sqlalchemy import String, Float, Boolean, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import Optional, TYPE_CHECKING
from recipe_share.models.base import BaseModel, HouseholdOwnedMixin
if TYPE_CHECKING:
    from recipe_share.models.recipe import Recipe
    from recipe_share.models.household import Household
    from recipe_share.models.lookup import Measure, Preparation, SupermarketCategory


class Ingredient(HouseholdOwnedMixin, BaseModel):
    """
    Household-owned ingredient.
    Public ingredients are shared reference data and are reused, never copied.
    """

    __tablename__ = "ingredients"
    __table_args__ = (
        UniqueConstraint("household_id", "parent_id", name="uq_ingredients_household_parent"),
    )

    # Basic info
    name: Mapped[str] = mapped_column(
        String(200), nullable=False, index=True
    )
    fresh: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    cost: Mapped[Optional[float]] = mapped_column(
        Float, nullable=True, default=None
    )
    stockcode: Mapped[Optional[str]] = mapped_column(
        String(50), nullable=True, default=None
    )

    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    supermarket_category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("supermarket_categories.id", ondelete="SET NULL"), nullable=True
    )

    # Relationships
    household: Mapped["Household"] = relationship(
        "Household", back_populates="ingredients", lazy="select"
    )
    supermarket_category: Mapped[Optional["SupermarketCategory"]] = relationship(
        "SupermarketCategory", lazy="select"
    )


class RecipeIngredient(BaseModel):
    """
    Junction table linking recipes to ingredients with quantities.
    Independent of ingredient ownership: a recipe may use another household's
    public ingredient.
    """

    __tablename__ = "recipe_ingredients"

    # Foreign keys
    recipe_id: Mapped[int] = mapped_column(
        ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False, index=True
    )

    ingredient_id: Mapped[int] = mapped_column(
        ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Quantity details, kept as entered
    quantity: Mapped[Optional[str]] = mapped_column(
        String(50), nullable=True, default=None
    )
    quantity4: Mapped[Optional[str]] = mapped_column(
        String(50), nullable=True, default=None
    )
    measure_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("measures.id", ondelete="SET NULL"), nullable=True
    )
    preparation_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("preparations.id", ondelete="SET NULL"), nullable=True
    )

    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Display order in recipe
    order: Mapped[Optional[int]] = mapped_column(Integer, default=0, nullable=True)

    # Provenance: the join row this one was copied from
    parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("recipe_ingredients.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Relationships
    recipe: Mapped["Recipe"] = relationship(
        "Recipe", back_populates="ingredients", lazy="select"
    )

    ingredient: Mapped["Ingredient"] = relationship("Ingredient", lazy="select")

    measure: Mapped[Optional["Measure"]] = relationship("Measure", lazy="select")

    preparation: Mapped[Optional["Preparation"]] = relationship("Preparation", lazy="select")
