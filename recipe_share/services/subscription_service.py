import logging
from sqlalchemy.orm import Session
from recipe_share.core.consistency import ConsistencyGuard
from recipe_share.core.exception import (
    ResourceNotFoundException,
    BadRequestException,
    ConflictException,
)
from recipe_share.repositories.household_repository import HouseholdRepository
from recipe_share.repositories.collection_repository import CollectionRepository

logger = logging.getLogger(__name__)


class SubscriptionService:
    """Service layer for collection subscriptions."""

    def __init__(self, guard: ConsistencyGuard):
        self.guard = guard

    def subscribe(self, household_id: int, collection_id: int) -> bool:
        """
        Subscribe a household to a public collection.

        Args:
            household_id: Subscribing household
            collection_id: Collection to subscribe to

        Returns:
            True if subscribed, False if already subscribed

        Raises:
            ResourceNotFoundException: If household or collection not found
            BadRequestException: If the collection is private or owned by the household
        """
        def work(db: Session) -> bool:
            if not HouseholdRepository(db).exists(household_id):
                raise ResourceNotFoundException("Household", household_id)

            collection_repo = CollectionRepository(db)
            collection = collection_repo.get(collection_id)
            if not collection:
                raise ResourceNotFoundException("Collection", collection_id)

            if collection.household_id == household_id:
                raise BadRequestException("Cannot subscribe to your own collection")

            if not collection.is_public:
                raise BadRequestException("Cannot subscribe to a private collection")

            if collection_repo.is_subscribed(household_id, collection_id):
                return False

            collection_repo.add_subscription(household_id, collection_id)
            return True

        try:
            subscribed = self.guard.run_atomic(work)
        except ConflictException:
            # A concurrent request inserted the same subscription
            return False

        if subscribed:
            logger.info(f"Household {household_id} subscribed to collection {collection_id}")
        return subscribed

    def unsubscribe(self, household_id: int, collection_id: int) -> bool:
        """
        Remove a household's subscription.

        Returns:
            True if removed, False if the household wasn't subscribed
        """
        removed = self.guard.run_atomic(
            lambda db: CollectionRepository(db).remove_subscription(household_id, collection_id)
        )
        if removed:
            logger.info(f"Household {household_id} unsubscribed from collection {collection_id}")
        return removed

    def is_subscribed(self, household_id: int, collection_id: int) -> bool:
        """Check if a household is subscribed to a collection."""
        return self.guard.run_atomic(
            lambda db: CollectionRepository(db).is_subscribed(household_id, collection_id)
        )
