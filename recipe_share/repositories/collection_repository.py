from sqlalchemy.orm import Session
from sqlalchemy import select, and_, insert, delete, update
from typing import List, Optional
from recipe_share.models.collection import Collection, CollectionSubscription, CollectionRecipe
from recipe_share.repositories.repository import OwnedRepository


class CollectionRepository(OwnedRepository[Collection]):
    """Repository for collections, their subscriptions and recipe listings."""

    def __init__(self, db: Session):
        super().__init__(Collection, db)

    # Subscriptions

    def is_subscribed(self, household_id: int, collection_id: int) -> bool:
        """Check if a household is subscribed to a collection."""
        stmt = select(CollectionSubscription.household_id).where(
            and_(
                CollectionSubscription.household_id == household_id,
                CollectionSubscription.collection_id == collection_id
            )
        )
        return self.db.execute(stmt).first() is not None

    def get_subscribed_ids(self, household_id: int, collection_ids: List[int]) -> set:
        """Return the subset of collection ids the household is subscribed to."""
        if not collection_ids:
            return set()
        stmt = select(CollectionSubscription.collection_id).where(
            and_(
                CollectionSubscription.household_id == household_id,
                CollectionSubscription.collection_id.in_(collection_ids)
            )
        )
        return set(self.db.execute(stmt).scalars().all())

    def add_subscription(self, household_id: int, collection_id: int) -> None:
        """Subscribe a household to a collection."""
        stmt = insert(CollectionSubscription).values(
            household_id=household_id,
            collection_id=collection_id
        )
        self.db.execute(stmt)

    def remove_subscription(self, household_id: int, collection_id: int) -> bool:
        """
        Remove a subscription.

        Returns:
            True if removed, False if the household wasn't subscribed
        """
        stmt = delete(CollectionSubscription).where(
            and_(
                CollectionSubscription.household_id == household_id,
                CollectionSubscription.collection_id == collection_id
            )
        )
        return self.db.execute(stmt).rowcount > 0

    # Recipe listings

    def get_listing(self, collection_id: int, recipe_id: int) -> Optional[CollectionRecipe]:
        """Get the junction row placing a recipe in a collection."""
        return self.db.get(CollectionRecipe, (collection_id, recipe_id))

    def contains_recipe(self, collection_id: int, recipe_id: int) -> bool:
        """Check if a recipe is listed in a collection."""
        return self.get_listing(collection_id, recipe_id) is not None

    def get_listings_for_recipes(self, recipe_ids: List[int]) -> List[CollectionRecipe]:
        """Get every (collection, recipe) junction row for the given recipes."""
        if not recipe_ids:
            return []
        return (
            self.db.query(CollectionRecipe)
            .filter(CollectionRecipe.recipe_id.in_(recipe_ids))
            .all()
        )

    def add_recipe(self, collection_id: int, recipe_id: int, display_order: int = 0) -> CollectionRecipe:
        """List a recipe in a collection."""
        listing = CollectionRecipe(
            collection_id=collection_id,
            recipe_id=recipe_id,
            display_order=display_order
        )
        self.db.add(listing)
        self.db.flush()
        return listing

    def repoint_recipe_for_household(self, household_id: int, old_recipe_id: int, new_recipe_id: int) -> int:
        """
        List ``new_recipe_id`` in place of ``old_recipe_id`` in the household's own collections.

        Collections that already list the new recipe are left alone. Bulk
        update; listings already loaded in the session are not refreshed.

        Returns:
            Number of listings re-pointed
        """
        owned_collections = select(Collection.id).where(Collection.household_id == household_id)
        already_listed = select(CollectionRecipe.collection_id).where(
            CollectionRecipe.recipe_id == new_recipe_id
        )
        stmt = (
            update(CollectionRecipe)
            .where(
                and_(
                    CollectionRecipe.recipe_id == old_recipe_id,
                    CollectionRecipe.collection_id.in_(owned_collections),
                    CollectionRecipe.collection_id.not_in(already_listed)
                )
            )
            .values(recipe_id=new_recipe_id)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount
