from sqlalchemy import (
    String,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import Optional, TYPE_CHECKING
from datetime import datetime
from recipe_share.models.base import Base, BaseModel, HouseholdOwnedMixin

if TYPE_CHECKING:
    from recipe_share.models.household import Household
    from recipe_share.models.recipe import Recipe


class Collection(HouseholdOwnedMixin, BaseModel):
    """
    Named, shareable container of recipes.
    Visible to a household when owned, subscribed to, or public.
    """

    __tablename__ = "collections"
    __table_args__ = (
        # One fork of a given source collection per household
        UniqueConstraint("household_id", "parent_id", name="uq_collections_household_parent"),
    )

    # Display info
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    subtitle: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, default=None
    )
    filename: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, default=None
    )
    filename_dark: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, default=None
    )
    url_slug: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, default=None
    )

    # Sharing settings
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Relationships
    household: Mapped["Household"] = relationship(
        "Household", back_populates="collections", lazy="select"
    )


class CollectionSubscription(Base):
    """Read access to a collection owned by another household."""

    __tablename__ = "collection_subscriptions"

    household_id: Mapped[int] = mapped_column(
        ForeignKey("households.id", ondelete="CASCADE"), primary_key=True
    )
    collection_id: Mapped[int] = mapped_column(
        ForeignKey("collections.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    subscribed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    household: Mapped["Household"] = relationship(
        "Household", back_populates="subscriptions", lazy="select"
    )
    collection: Mapped["Collection"] = relationship("Collection", lazy="select")


class CollectionRecipe(Base):
    """
    Junction table listing recipes in collections.
    The recipe's owner is independent of the collection's owner.
    """

    __tablename__ = "collection_recipes"

    collection_id: Mapped[int] = mapped_column(
        ForeignKey("collections.id", ondelete="CASCADE"), primary_key=True
    )
    recipe_id: Mapped[int] = mapped_column(
        ForeignKey("recipes.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    collection: Mapped["Collection"] = relationship("Collection", lazy="select")
    recipe: Mapped["Recipe"] = relationship("Recipe", lazy="select")
