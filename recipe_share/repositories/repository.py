from sqlalchemy import select
from sqlalchemy.orm import Session
from typing import Generic, Type, TypeVar, List, Optional, Dict, Iterable
from recipe_share.models.base import BaseModel

T = TypeVar("T", bound=BaseModel)


class BaseRepository(Generic[T]):
    """
    Base repository with common read/insert operations.

    Repositories never commit. Writes are flushed so generated ids are
    available, and the surrounding transaction decides whether they persist.
    """

    def __init__(self, model: Type[T], db: Session):
        """
        Initialize repository with model and database session.

        Args:
            model: The SQLAlchemy model class
            db: Database session
        """
        self.model = model
        self.db = db

    def get(self, id: int) -> Optional[T]:
        """Get a single record by ID."""
        return self.db.get(self.model, id)

    def get_by_ids(self, ids: Iterable[int]) -> List[T]:
        """Get multiple records by ID, silently skipping unknown ids."""
        ids = list(ids)
        if not ids:
            return []
        return self.db.query(self.model).filter(self.model.id.in_(ids)).all()

    def create(self, obj: T) -> T:
        """Add a new record and flush it to obtain its ID."""
        self.db.add(obj)
        self.db.flush()
        return obj

    def exists(self, id: int) -> bool:
        """Check if a record exists by ID."""
        return self.db.query(self.model).filter(self.model.id == id).count() > 0


class OwnedRepository(BaseRepository[T]):
    """
    Repository for household-owned, forkable entities.

    The model must carry ``household_id`` and the ``parent_id`` provenance marker.
    """

    def get_owner_id(self, id: int) -> Optional[int]:
        """Return the owning household id, or None if the record doesn't exist."""
        stmt = select(self.model.household_id).where(self.model.id == id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_owner_ids(self, ids: Iterable[int]) -> Dict[int, int]:
        """Map each existing id to its owning household id."""
        ids = list(ids)
        if not ids:
            return {}
        stmt = select(self.model.id, self.model.household_id).where(self.model.id.in_(ids))
        return {row.id: row.household_id for row in self.db.execute(stmt)}

    def find_fork(self, household_id: int, source_id: int) -> Optional[T]:
        """Find the household's existing fork of a source record."""
        return (
            self.db.query(self.model)
            .filter(
                self.model.household_id == household_id,
                self.model.parent_id == source_id,
            )
            .first()
        )
