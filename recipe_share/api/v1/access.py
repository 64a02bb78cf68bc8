from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from recipe_share.dependencies import get_db, get_current_household_id
from recipe_share.schema.result import Result
from recipe_share.schemas.access import (
    AccessResponse,
    PermissionResponse,
    ResourceRef,
    ResourceType,
)
from recipe_share.services.access_resolver import AccessResolver
from recipe_share.services.permission_gate import PermissionGate

router = APIRouter()


@router.get("/access/{resource_type}/{resource_id}", response_model=Result[AccessResponse])
async def get_access(
    resource_type: ResourceType,
    resource_id: int,
    collection_id: Optional[int] = Query(None, gt=0, description="Collection the recipe is viewed through"),
    household_id: int = Depends(get_current_household_id),
    db: Session = Depends(get_db)
):
    """Resolve the household's access level to a resource."""
    ref = ResourceRef(type=resource_type, id=resource_id, collection_id=collection_id)
    access = AccessResolver(db).resolve_access(household_id, ref)
    can_mutate = PermissionGate(db).can_mutate_many(household_id, resource_type, [resource_id])
    return Result.successful(
        data=AccessResponse(
            resource_type=resource_type,
            resource_id=resource_id,
            access=access,
            can_mutate=can_mutate[resource_id],
        )
    )


@router.get("/permissions/{resource_type}/{resource_id}", response_model=Result[PermissionResponse])
async def get_permission(
    resource_type: ResourceType,
    resource_id: int,
    household_id: int = Depends(get_current_household_id),
    db: Session = Depends(get_db)
):
    """Check whether the household may edit a resource in place."""
    can_mutate = PermissionGate(db).can_mutate(household_id, resource_type, resource_id)
    return Result.successful(
        data=PermissionResponse(
            resource_type=resource_type, resource_id=resource_id, can_mutate=can_mutate
        )
    )
