from sqlalchemy.orm import Session
from recipe_share.models.ingredient import Ingredient
from recipe_share.repositories.repository import OwnedRepository


class IngredientRepository(OwnedRepository[Ingredient]):
    """Repository for ingredient operations."""

    def __init__(self, db: Session):
        super().__init__(Ingredient, db)
