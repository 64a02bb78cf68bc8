from fastapi import APIRouter, Depends

from recipe_share.core.consistency import ConsistencyGuard
from recipe_share.dependencies import get_consistency_guard, get_current_household_id
from recipe_share.schema.result import Result
from recipe_share.schemas.fork import ForkResult, IngredientForkResult, CopyResult
from recipe_share.services.cascade_forker import CascadeForker

router = APIRouter()


@router.post(
    "/collections/{collection_id}/recipes/{recipe_id}/fork",
    response_model=Result[ForkResult],
)
async def fork_recipe_in_collection(
    collection_id: int,
    recipe_id: int,
    household_id: int = Depends(get_current_household_id),
    guard: ConsistencyGuard = Depends(get_consistency_guard)
):
    """
    Fork a recipe, and its collection if needed, before editing it.

    Returns the ids to edit instead; calling it again returns the same ids.
    """
    result = CascadeForker(guard).fork_for_mutation(household_id, collection_id, recipe_id)
    return Result.successful(data=result)


@router.post(
    "/collections/{collection_id}/recipes/{recipe_id}/ingredients/{ingredient_id}/fork",
    response_model=Result[IngredientForkResult],
)
async def fork_ingredient_in_recipe(
    collection_id: int,
    recipe_id: int,
    ingredient_id: int,
    household_id: int = Depends(get_current_household_id),
    guard: ConsistencyGuard = Depends(get_consistency_guard)
):
    """Fork an ingredient as used by a recipe in a collection."""
    result = CascadeForker(guard).fork_ingredient_for_mutation(
        household_id, collection_id, recipe_id, ingredient_id
    )
    return Result.successful(data=result)


@router.post("/recipes/{recipe_id}/fork", response_model=Result[CopyResult])
async def fork_recipe(
    recipe_id: int,
    household_id: int = Depends(get_current_household_id),
    guard: ConsistencyGuard = Depends(get_consistency_guard)
):
    """Fork a recipe outside of a collection."""
    result = CascadeForker(guard).fork_recipe(household_id, recipe_id)
    return Result.successful(data=result)


@router.post("/ingredients/{ingredient_id}/fork", response_model=Result[CopyResult])
async def fork_ingredient(
    ingredient_id: int,
    household_id: int = Depends(get_current_household_id),
    guard: ConsistencyGuard = Depends(get_consistency_guard)
):
    """Fork a single ingredient."""
    result = CascadeForker(guard).fork_ingredient(household_id, ingredient_id)
    return Result.successful(data=result)
