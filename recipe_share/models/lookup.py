"""
Global lookup tables shared by every household.
Rows here are referenced by id from copied rows and are never copied themselves.
"""
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from recipe_share.models.base import Base


class Measure(Base):
    __tablename__ = "measures"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)


class Preparation(Base):
    __tablename__ = "preparations"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)


class SupermarketCategory(Base):
    __tablename__ = "supermarket_categories"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
