from typing import Generator

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session, sessionmaker

from .core.consistency import ConsistencyGuard, store_errors
from .core.exception import ResourceNotFoundException
from .repositories.household_repository import HouseholdRepository


def get_session_factory(request: Request) -> sessionmaker:
    """Session factory built by the application lifespan."""
    return request.app.state.session_factory


def get_db(session_factory: sessionmaker = Depends(get_session_factory)) -> Generator[Session, None, None]:
    """
    Dependency that provides a database session for read-only requests.

    Writes go through ``get_consistency_guard`` instead, which owns its own
    transaction.
    """
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def get_consistency_guard(
    session_factory: sessionmaker = Depends(get_session_factory),
) -> ConsistencyGuard:
    return ConsistencyGuard(session_factory)


async def get_current_household_id(
    x_household_id: int = Header(..., gt=0, description="Acting household"),
    db: Session = Depends(get_db),
) -> int:
    """
    Dependency to resolve the acting household from the ``X-Household-Id`` header.

    Example:
        @router.get("/mine")
        async def mine(household_id: int = Depends(get_current_household_id)):
            return {"household_id": household_id}
    """
    with store_errors(f"household lookup for {x_household_id}"):
        exists = HouseholdRepository(db).exists(x_household_id)

    if not exists:
        raise ResourceNotFoundException("Household", x_household_id)

    return x_household_id
