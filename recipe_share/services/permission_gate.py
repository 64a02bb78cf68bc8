from sqlalchemy.orm import Session
from typing import Dict, Iterable
from recipe_share.core.consistency import store_errors
from recipe_share.core.exception import ResourceNotFoundException
from recipe_share.repositories.repository import OwnedRepository
from recipe_share.repositories.collection_repository import CollectionRepository
from recipe_share.repositories.recipe_repository import RecipeRepository
from recipe_share.repositories.ingredient_repository import IngredientRepository
from recipe_share.schemas.access import ResourceType


class PermissionGate:
    """
    Decides whether a household may mutate a resource in place.

    Only durable ownership grants write access. Subscriptions and the public
    flag are revocable, so they never do.
    """

    def __init__(self, db: Session):
        self.db = db
        self._repos: Dict[ResourceType, OwnedRepository] = {
            ResourceType.COLLECTION: CollectionRepository(db),
            ResourceType.RECIPE: RecipeRepository(db),
            ResourceType.INGREDIENT: IngredientRepository(db),
        }

    def can_mutate(self, household_id: int, resource_type: ResourceType, resource_id: int) -> bool:
        """
        Check whether the household owns the resource.

        Raises:
            ResourceNotFoundException: If the resource doesn't exist
            StoreException: If the lookup itself failed
        """
        with store_errors(f"permission check on {resource_type.value} {resource_id}"):
            owner_id = self._repos[resource_type].get_owner_id(resource_id)

        if owner_id is None:
            raise ResourceNotFoundException(resource_type.value.capitalize(), resource_id)

        return owner_id == household_id

    def can_mutate_many(
        self, household_id: int, resource_type: ResourceType, resource_ids: Iterable[int]
    ) -> Dict[int, bool]:
        """Bulk ownership check; unknown ids map to False."""
        resource_ids = list(resource_ids)
        with store_errors(f"bulk permission check on {resource_type.value}"):
            owners = self._repos[resource_type].get_owner_ids(resource_ids)

        return {rid: owners.get(rid) == household_id for rid in resource_ids}
