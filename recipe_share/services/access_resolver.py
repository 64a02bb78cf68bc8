from sqlalchemy.orm import Session
from typing import Dict, Iterable, List, Optional
from recipe_share.core.consistency import store_errors
from recipe_share.models.collection import Collection
from recipe_share.repositories.collection_repository import CollectionRepository
from recipe_share.repositories.recipe_repository import RecipeRepository
from recipe_share.repositories.ingredient_repository import IngredientRepository
from recipe_share.schemas.access import AccessLevel, ResourceRef, ResourceType


class AccessResolver:
    """
    Read-only classification of a household's relationship to a resource.

    Levels, strongest first: owned > subscribed > public > none. A missing
    resource resolves to ``none``; a failing store raises StoreException.
    """

    def __init__(self, db: Session):
        self.db = db
        self.collection_repo = CollectionRepository(db)
        self.recipe_repo = RecipeRepository(db)
        self.ingredient_repo = IngredientRepository(db)

    def resolve_access(self, household_id: int, ref: ResourceRef) -> AccessLevel:
        """
        Resolve the household's access level to a resource.

        Args:
            household_id: Requesting household
            ref: Resource reference; recipes may carry a collection context

        Returns:
            The strongest applicable AccessLevel

        Raises:
            StoreException: If the lookup itself failed
        """
        with store_errors(f"access check on {ref.type.value} {ref.id}"):
            if ref.type is ResourceType.COLLECTION:
                return self._collection_access(household_id, ref.id)
            if ref.type is ResourceType.RECIPE:
                return self._recipe_access(household_id, ref.id, ref.collection_id)
            return self._ingredient_access(household_id, ref.id)

    def resolve_many(self, household_id: int, refs: Iterable[ResourceRef]) -> Dict[ResourceRef, AccessLevel]:
        """Resolve several references for the same household."""
        return {ref: self.resolve_access(household_id, ref) for ref in refs}

    def _collection_access(self, household_id: int, collection_id: int) -> AccessLevel:
        collection = self.collection_repo.get(collection_id)
        if not collection:
            return AccessLevel.NONE
        if collection.household_id == household_id:
            return AccessLevel.OWNED
        subscribed = self.collection_repo.is_subscribed(household_id, collection_id)
        return self._collection_level(household_id, collection, {collection_id} if subscribed else set())

    def _recipe_access(
        self, household_id: int, recipe_id: int, collection_id: Optional[int] = None
    ) -> AccessLevel:
        recipe = self.recipe_repo.get(recipe_id)
        if not recipe:
            return AccessLevel.NONE
        if recipe.household_id == household_id:
            return AccessLevel.OWNED

        via_collections = self._levels_via_collections(household_id, [recipe_id], collection_id)
        return via_collections.get(recipe_id, AccessLevel.NONE)

    def _ingredient_access(self, household_id: int, ingredient_id: int) -> AccessLevel:
        ingredient = self.ingredient_repo.get(ingredient_id)
        if not ingredient:
            return AccessLevel.NONE
        if ingredient.household_id == household_id:
            return AccessLevel.OWNED

        levels = [AccessLevel.PUBLIC] if ingredient.is_public else []

        # ingredient -> recipe -> collection -> subscription
        recipe_ids = self.recipe_repo.get_ids_using_ingredient(ingredient_id)
        owners = self.recipe_repo.get_owner_ids(recipe_ids)
        if household_id in owners.values():
            levels.append(AccessLevel.SUBSCRIBED)

        for level in self._levels_via_collections(household_id, recipe_ids).values():
            # Reachability grants read access only, never ownership
            levels.append(AccessLevel.PUBLIC if level is AccessLevel.PUBLIC else AccessLevel.SUBSCRIBED)

        return AccessLevel.strongest(*levels)

    def _levels_via_collections(
        self, household_id: int, recipe_ids: List[int], collection_id: Optional[int] = None
    ) -> Dict[int, AccessLevel]:
        """Strongest visible-collection level for each recipe, skipping recipes with none."""
        listings = self.collection_repo.get_listings_for_recipes(recipe_ids)
        if collection_id is not None:
            listings = [listing for listing in listings if listing.collection_id == collection_id]
        if not listings:
            return {}

        collections = {
            c.id: c for c in self.collection_repo.get_by_ids({listing.collection_id for listing in listings})
        }
        foreign_ids = [cid for cid, c in collections.items() if c.household_id != household_id]
        subscribed_ids = self.collection_repo.get_subscribed_ids(household_id, foreign_ids)

        levels: Dict[int, AccessLevel] = {}
        for listing in listings:
            level = self._collection_level(
                household_id, collections[listing.collection_id], subscribed_ids
            )
            if level.can_read:
                levels[listing.recipe_id] = AccessLevel.strongest(
                    level, levels.get(listing.recipe_id, AccessLevel.NONE)
                )
        return levels

    @staticmethod
    def _collection_level(household_id: int, collection: Collection, subscribed_ids: set) -> AccessLevel:
        if collection.household_id == household_id:
            return AccessLevel.OWNED
        if collection.id in subscribed_ids:
            return AccessLevel.SUBSCRIBED
        if collection.is_public:
            return AccessLevel.PUBLIC
        return AccessLevel.NONE
