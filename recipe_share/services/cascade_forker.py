"""
Copy-on-write forking of shared recipes.

When a household edits a collection, recipe or ingredient it does not own,
the shared rows are left untouched and a private copy of the minimal
dependency subgraph is created instead. Callers continue with the returned ids.
"""
import logging
from sqlalchemy.orm import Session
from typing import Callable, Dict, List, Optional, TypeVar
from recipe_share.core.consistency import ConsistencyGuard
from recipe_share.core.exception import (
    ResourceNotFoundException,
    AuthorizationException,
    ConflictException,
)
from recipe_share.models.collection import Collection
from recipe_share.models.recipe import Recipe
from recipe_share.models.ingredient import Ingredient, RecipeIngredient
from recipe_share.repositories.household_repository import HouseholdRepository
from recipe_share.repositories.collection_repository import CollectionRepository
from recipe_share.repositories.recipe_repository import RecipeRepository
from recipe_share.repositories.ingredient_repository import IngredientRepository
from recipe_share.schemas.access import AccessLevel, ResourceRef, ResourceType
from recipe_share.schemas.fork import ForkAction, ForkResult, IngredientForkResult, CopyResult
from recipe_share.services.access_resolver import AccessResolver

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Attributes carried over to a copy; ownership and provenance are set explicitly
COLLECTION_COPY_FIELDS = ("title", "subtitle", "filename", "filename_dark", "url_slug")
RECIPE_COPY_FIELDS = (
    "name",
    "description",
    "instructions",
    "prep_time_minutes",
    "cook_time_minutes",
    "servings",
    "url_slug",
    "image_filename",
    "pdf_filename",
    "archived",
)
INGREDIENT_COPY_FIELDS = ("name", "fresh", "cost", "stockcode", "supermarket_category_id")
RECIPE_INGREDIENT_COPY_FIELDS = (
    "quantity",
    "quantity4",
    "measure_id",
    "preparation_id",
    "is_primary",
    "order",
)


def _copy_fields(source, fields) -> dict:
    return {field: getattr(source, field) for field in fields}


class _ForkUnit:
    """
    One fork, bound to one session and one household.

    Holds the ingredient arena (source id -> resolved id) so an ingredient
    used twice by a recipe is copied at most once.
    """

    def __init__(self, db: Session, household_id: int):
        self.db = db
        self.household_id = household_id
        self.household_repo = HouseholdRepository(db)
        self.collection_repo = CollectionRepository(db)
        self.recipe_repo = RecipeRepository(db)
        self.ingredient_repo = IngredientRepository(db)
        self.resolver = AccessResolver(db)
        self.actions: List[ForkAction] = []
        self._ingredient_arena: Dict[int, int] = {}

    def owns(self, resource) -> bool:
        return resource.household_id == self.household_id

    # Preconditions

    def require_household(self) -> None:
        if not self.household_repo.exists(self.household_id):
            raise ResourceNotFoundException("Household", self.household_id)

    def require_access(self, ref: ResourceRef) -> AccessLevel:
        level = self.resolver.resolve_access(self.household_id, ref)
        if not level.can_read:
            raise AuthorizationException(
                message=f"Household {self.household_id} has no access to {ref.type.value} {ref.id}."
            )
        return level

    def load_pair(self, collection_id: int, recipe_id: int) -> tuple:
        """Load and validate the (collection, recipe) pair being forked."""
        self.require_household()

        collection = self.collection_repo.get(collection_id)
        if not collection:
            raise ResourceNotFoundException("Collection", collection_id)

        recipe = self.recipe_repo.get(recipe_id)
        if not recipe:
            raise ResourceNotFoundException("Recipe", recipe_id)

        if not self.collection_repo.contains_recipe(collection_id, recipe_id):
            raise ResourceNotFoundException(f"Recipe in collection {collection_id}", recipe_id)

        self.require_access(
            ResourceRef(type=ResourceType.RECIPE, id=recipe_id, collection_id=collection_id)
        )
        if not self.owns(collection):
            # Read access is required to the collection as well as the recipe
            self.require_access(ResourceRef(type=ResourceType.COLLECTION, id=collection_id))
        return collection, recipe

    # Known-fork lookup

    def existing_fork(self, collection: Collection, recipe: Recipe) -> Optional[ForkResult]:
        """Return the household's complete, linked fork of the pair, if there is one."""
        target_collection = collection if self.owns(collection) else (
            self.collection_repo.find_fork(self.household_id, collection.id)
        )
        if target_collection is None:
            return None

        target_recipe = recipe if self.owns(recipe) else (
            self.recipe_repo.find_fork(self.household_id, recipe.id)
        )
        if target_recipe is None:
            return None

        if not self.collection_repo.contains_recipe(target_collection.id, target_recipe.id):
            return None

        return ForkResult(new_collection_id=target_collection.id, new_recipe_id=target_recipe.id)

    # Copy steps, in foreign key order

    def ensure_collection(self, collection: Collection) -> Collection:
        if self.owns(collection):
            return collection

        existing = self.collection_repo.find_fork(self.household_id, collection.id)
        if existing is not None:
            return existing

        copy = Collection(
            **_copy_fields(collection, COLLECTION_COPY_FIELDS),
            is_public=False,
            household_id=self.household_id,
            parent_id=collection.id,
        )
        self.collection_repo.create(copy)
        self.actions.append(ForkAction.COLLECTION_COPIED)
        return copy

    def ensure_recipe(self, recipe: Recipe) -> Recipe:
        if self.owns(recipe):
            return recipe

        existing = self.recipe_repo.find_fork(self.household_id, recipe.id)
        if existing is not None:
            return existing

        copy = Recipe(
            **_copy_fields(recipe, RECIPE_COPY_FIELDS),
            household_id=self.household_id,
            parent_id=recipe.id,
        )
        self.recipe_repo.create(copy)
        self.actions.append(ForkAction.RECIPE_COPIED)

        for row in self.recipe_repo.get_ingredient_rows(recipe.id):
            self.recipe_repo.add_ingredient(
                copy.id,
                {
                    **_copy_fields(row, RECIPE_INGREDIENT_COPY_FIELDS),
                    "ingredient_id": self.resolve_ingredient(row.ingredient_id),
                    "parent_id": row.id,
                },
            )
        return copy

    def resolve_ingredient(self, ingredient_id: int) -> int:
        """Id the household's recipe should use in place of ``ingredient_id``."""
        if ingredient_id in self._ingredient_arena:
            return self._ingredient_arena[ingredient_id]

        ingredient = self.ingredient_repo.get(ingredient_id)
        if ingredient is None:
            raise ResourceNotFoundException("Ingredient", ingredient_id)

        if self.owns(ingredient) or ingredient.is_public:
            resolved = ingredient.id
        else:
            resolved = self.ensure_ingredient_copy(ingredient).id

        self._ingredient_arena[ingredient_id] = resolved
        return resolved

    def ensure_ingredient_copy(self, ingredient: Ingredient) -> Ingredient:
        """Get or create the household's private copy of an ingredient it doesn't own."""
        existing = self.ingredient_repo.find_fork(self.household_id, ingredient.id)
        if existing is not None:
            return existing

        copy = Ingredient(
            **_copy_fields(ingredient, INGREDIENT_COPY_FIELDS),
            is_public=False,
            household_id=self.household_id,
            parent_id=ingredient.id,
        )
        self.ingredient_repo.create(copy)
        self.actions.append(ForkAction.INGREDIENT_COPIED)
        return copy

    def repoint_ingredient(self, source_id: int, copy_id: int) -> None:
        """Switch every recipe the household owns from a shared ingredient to its copy."""
        count = self.recipe_repo.repoint_ingredient_for_household(self.household_id, source_id, copy_id)
        if count:
            logger.debug(f"Household {self.household_id}: {count} recipe rows now use ingredient {copy_id}")

    def link(self, collection: Collection, recipe: Recipe, display_order: int) -> None:
        if self.collection_repo.contains_recipe(collection.id, recipe.id):
            return
        self.collection_repo.add_recipe(collection.id, recipe.id, display_order)
        self.actions.append(ForkAction.RECIPE_LINKED)

    def fork_pair(self, collection_id: int, recipe_id: int) -> ForkResult:
        collection, recipe = self.load_pair(collection_id, recipe_id)

        existing = self.existing_fork(collection, recipe)
        if existing is not None:
            return existing

        target_collection = self.ensure_collection(collection)
        target_recipe = self.ensure_recipe(recipe)
        listing = self.collection_repo.get_listing(collection.id, recipe.id)
        self.link(target_collection, target_recipe, listing.display_order)

        return ForkResult(
            new_collection_id=target_collection.id,
            new_recipe_id=target_recipe.id,
            actions_taken=list(self.actions),
        )

    def find_target_row(self, recipe_id: int, ingredient_id: int) -> Optional[RecipeIngredient]:
        """Row in the household's recipe standing in for ``ingredient_id``."""
        row = self.recipe_repo.get_ingredient_row(recipe_id, ingredient_id)
        if row is not None:
            return row
        fork = self.ingredient_repo.find_fork(self.household_id, ingredient_id)
        if fork is None:
            return None
        return self.recipe_repo.get_ingredient_row(recipe_id, fork.id)


class CascadeForker:
    """
    Forks shared resources into a household's ownership.

    Every fork runs in a single ConsistencyGuard transaction. If a concurrent
    request wins the race for the same fork, the known-fork lookup is
    re-evaluated once in a fresh transaction and the winner's ids are returned.
    """

    def __init__(self, guard: ConsistencyGuard):
        self.guard = guard

    def fork_for_mutation(self, household_id: int, collection_id: int, recipe_id: int) -> ForkResult:
        """
        Give the household its own copy of a recipe in a collection.

        Args:
            household_id: Household attempting the edit
            collection_id: Collection the recipe is being edited from
            recipe_id: Recipe being edited

        Returns:
            ForkResult with the collection and recipe ids to edit instead

        Raises:
            ResourceNotFoundException: If the household, collection or recipe is
                missing, or the recipe isn't in the collection
            AuthorizationException: If the household can't read the recipe
            ConflictException: If a concurrent fork could not be converged
            StoreException: If the database failed; nothing was saved
        """
        result = self._run_with_recheck(
            lambda db: _ForkUnit(db, household_id).fork_pair(collection_id, recipe_id)
        )
        self._log(household_id, f"recipe {recipe_id} in collection {collection_id}", result.actions_taken)
        return result

    def fork_ingredient_for_mutation(
        self, household_id: int, collection_id: int, recipe_id: int, ingredient_id: int
    ) -> IngredientForkResult:
        """
        Give the household its own copy of an ingredient as used by a recipe.

        The collection and recipe are forked first if needed. Every recipe the
        household owns, this one included, is then switched to a household-owned
        copy of the ingredient.

        Raises:
            ResourceNotFoundException: If the recipe doesn't use the ingredient
            AuthorizationException: If the household can't read the recipe
        """
        def work(db: Session) -> IngredientForkResult:
            unit = _ForkUnit(db, household_id)
            base = unit.fork_pair(collection_id, recipe_id)

            if unit.recipe_repo.get_ingredient_row(recipe_id, ingredient_id) is None:
                raise ResourceNotFoundException(f"Ingredient in recipe {recipe_id}", ingredient_id)

            row = unit.find_target_row(base.new_recipe_id, ingredient_id)
            if row is None:
                raise ResourceNotFoundException(
                    f"Ingredient in recipe {base.new_recipe_id}", ingredient_id
                )

            ingredient = unit.ingredient_repo.get(row.ingredient_id)
            if not unit.owns(ingredient):
                source_id = ingredient.id
                ingredient = unit.ensure_ingredient_copy(ingredient)
                unit.repoint_ingredient(source_id, ingredient.id)

            return IngredientForkResult(
                new_collection_id=base.new_collection_id,
                new_recipe_id=base.new_recipe_id,
                new_ingredient_id=ingredient.id,
                actions_taken=list(unit.actions),
            )

        result = self._run_with_recheck(work)
        self._log(household_id, f"ingredient {ingredient_id} of recipe {recipe_id}", result.actions_taken)
        return result

    def fork_recipe(self, household_id: int, recipe_id: int) -> CopyResult:
        """
        Fork a recipe outside of any collection context.

        Requires read access through at least one visible collection. The
        household's own collections that list the recipe are switched to the copy.
        """
        def work(db: Session) -> CopyResult:
            unit = _ForkUnit(db, household_id)
            unit.require_household()
            recipe = unit.recipe_repo.get(recipe_id)
            if not recipe:
                raise ResourceNotFoundException("Recipe", recipe_id)
            unit.require_access(ResourceRef(type=ResourceType.RECIPE, id=recipe_id))

            target = unit.ensure_recipe(recipe)
            if target.id != recipe.id:
                unit.collection_repo.repoint_recipe_for_household(household_id, recipe.id, target.id)
            return CopyResult(copied=ForkAction.RECIPE_COPIED in unit.actions, new_id=target.id)

        result = self._run_with_recheck(work)
        if result.copied:
            logger.info(f"Household {household_id} forked recipe {recipe_id} as {result.new_id}")
        return result

    def fork_ingredient(self, household_id: int, ingredient_id: int) -> CopyResult:
        """
        Fork a single ingredient for editing.

        Every recipe the household owns is switched to the copy; shared
        recipes keep the original.
        """
        def work(db: Session) -> CopyResult:
            unit = _ForkUnit(db, household_id)
            unit.require_household()
            ingredient = unit.ingredient_repo.get(ingredient_id)
            if not ingredient:
                raise ResourceNotFoundException("Ingredient", ingredient_id)
            unit.require_access(ResourceRef(type=ResourceType.INGREDIENT, id=ingredient_id))

            if unit.owns(ingredient):
                return CopyResult(copied=False, new_id=ingredient.id)
            target = unit.ensure_ingredient_copy(ingredient)
            unit.repoint_ingredient(ingredient.id, target.id)
            return CopyResult(copied=ForkAction.INGREDIENT_COPIED in unit.actions, new_id=target.id)

        result = self._run_with_recheck(work)
        if result.copied:
            logger.info(f"Household {household_id} forked ingredient {ingredient_id} as {result.new_id}")
        return result

    def _run_with_recheck(self, work: Callable[[Session], T]) -> T:
        try:
            return self.guard.run_atomic(work)
        except ConflictException:
            # A concurrent request committed the same fork first. Running the
            # work again re-evaluates the known-fork lookup against its rows.
            logger.warning("Fork collided with a concurrent fork; re-checking for the committed copy")
            return self.guard.run_atomic(work)

    @staticmethod
    def _log(household_id: int, target: str, actions: List[ForkAction]) -> None:
        if actions:
            logger.info(
                f"Household {household_id} forked {target}: "
                f"{', '.join(action.value for action in actions)}"
            )
        else:
            logger.debug(f"Household {household_id} already owns a fork of {target}")
