from sqlalchemy.orm import Session
from sqlalchemy import and_, select, update
from typing import List, Optional
from recipe_share.models.recipe import Recipe
from recipe_share.models.ingredient import RecipeIngredient
from recipe_share.repositories.repository import OwnedRepository


class RecipeRepository(OwnedRepository[Recipe]):
    """Repository for recipe operations."""

    def __init__(self, db: Session):
        super().__init__(Recipe, db)

    def get_ingredient_rows(self, recipe_id: int) -> List[RecipeIngredient]:
        """Get the recipe's ingredient rows in display order."""
        return (
            self.db.query(RecipeIngredient)
            .filter(RecipeIngredient.recipe_id == recipe_id)
            .order_by(RecipeIngredient.order, RecipeIngredient.id)
            .all()
        )

    def get_ingredient_row(self, recipe_id: int, ingredient_id: int) -> Optional[RecipeIngredient]:
        """Get the row linking a recipe to one ingredient."""
        return (
            self.db.query(RecipeIngredient)
            .filter(
                and_(
                    RecipeIngredient.recipe_id == recipe_id,
                    RecipeIngredient.ingredient_id == ingredient_id
                )
            )
            .first()
        )

    def get_ids_using_ingredient(self, ingredient_id: int) -> List[int]:
        """Get the ids of every recipe that uses an ingredient."""
        rows = (
            self.db.query(RecipeIngredient.recipe_id)
            .filter(RecipeIngredient.ingredient_id == ingredient_id)
            .distinct()
            .all()
        )
        return [row.recipe_id for row in rows]

    def add_ingredient(self, recipe_id: int, ingredient_data: dict) -> RecipeIngredient:
        """Add an ingredient to a recipe."""
        recipe_ingredient = RecipeIngredient(recipe_id=recipe_id, **ingredient_data)
        self.db.add(recipe_ingredient)
        self.db.flush()
        return recipe_ingredient

    def repoint_ingredient_for_household(
        self, household_id: int, old_ingredient_id: int, new_ingredient_id: int
    ) -> int:
        """
        Use ``new_ingredient_id`` in place of ``old_ingredient_id`` in every recipe the household owns.

        Bulk update; rows already loaded in the session are not refreshed.

        Returns:
            Number of recipe ingredient rows re-pointed
        """
        owned_recipes = select(Recipe.id).where(Recipe.household_id == household_id)
        stmt = (
            update(RecipeIngredient)
            .where(
                and_(
                    RecipeIngredient.ingredient_id == old_ingredient_id,
                    RecipeIngredient.recipe_id.in_(owned_recipes)
                )
            )
            .values(ingredient_id=new_ingredient_id)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount
