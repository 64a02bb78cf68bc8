from fastapi import APIRouter, Depends

from recipe_share.core.consistency import ConsistencyGuard
from recipe_share.dependencies import get_consistency_guard, get_current_household_id
from recipe_share.schema.result import Result
from recipe_share.schemas.subscription import SubscriptionResponse
from recipe_share.services.subscription_service import SubscriptionService

router = APIRouter()


@router.post("/collections/{collection_id}/subscription", response_model=Result[SubscriptionResponse])
async def subscribe(
    collection_id: int,
    household_id: int = Depends(get_current_household_id),
    guard: ConsistencyGuard = Depends(get_consistency_guard)
):
    """Subscribe the household to a public collection."""
    changed = SubscriptionService(guard).subscribe(household_id, collection_id)
    return Result.successful(
        data=SubscriptionResponse(collection_id=collection_id, subscribed=True, changed=changed)
    )


@router.delete("/collections/{collection_id}/subscription", response_model=Result[SubscriptionResponse])
async def unsubscribe(
    collection_id: int,
    household_id: int = Depends(get_current_household_id),
    guard: ConsistencyGuard = Depends(get_consistency_guard)
):
    """Remove the household's subscription. Forks already made are kept."""
    changed = SubscriptionService(guard).unsubscribe(household_id, collection_id)
    return Result.successful(
        data=SubscriptionResponse(collection_id=collection_id, subscribed=False, changed=changed)
    )
