from recipe_share.models.base import Base, BaseModel, HouseholdOwnedMixin
from recipe_share.models.household import Household
from recipe_share.models.collection import (
    Collection,
    CollectionSubscription,
    CollectionRecipe,
)
from recipe_share.models.recipe import Recipe
from recipe_share.models.ingredient import Ingredient, RecipeIngredient
from recipe_share.models.lookup import Measure, Preparation, SupermarketCategory

__all__ = [
    # Base
    "Base",
    "BaseModel",
    "HouseholdOwnedMixin",
    # Household
    "Household",
    # Collection
    "Collection",
    "CollectionSubscription",
    "CollectionRecipe",
    # Recipe
    "Recipe",
    # Ingredient
    "Ingredient",
    "RecipeIngredient",
    # Lookups
    "Measure",
    "Preparation",
    "SupermarketCategory",
]
