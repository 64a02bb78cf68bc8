from sqlalchemy.orm import Session
from recipe_share.models.household import Household
from recipe_share.repositories.repository import BaseRepository


class HouseholdRepository(BaseRepository[Household]):
    """Repository for household operations."""

    def __init__(self, db: Session):
        super().__init__(Household, db)
