from sqlalchemy import String, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, DeclarativeBase, declared_attr
from typing import Optional
from datetime import datetime
import uuid

class Base(DeclarativeBase):
    """Base class for all models"""
    pass


class BaseModel(Base):

    __abstract__ = True

    id: Mapped[int] = mapped_column(primary_key=True, index=True, autoincrement=True)
    uuid: Mapped[str] = mapped_column(
        String(36), 
        default=lambda: str(uuid.uuid4()), 
        unique=True, 
        index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), 
        server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=True
    )


class HouseholdOwnedMixin:
    """
    Ownership and provenance columns for forkable entities.

    ``household_id`` is the only thing that grants write access. ``parent_id``
    points at the row this one was forked from, in the same table.
    """

    @declared_attr
    def household_id(cls) -> Mapped[int]:
        return mapped_column(
            ForeignKey("households.id", ondelete="CASCADE"), nullable=False, index=True
        )

    @declared_attr
    def parent_id(cls) -> Mapped[Optional[int]]:
        return mapped_column(
            ForeignKey(f"{cls.__tablename__}.id", ondelete="SET NULL"), nullable=True, index=True
        )
