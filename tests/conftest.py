import os
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

# Set required environment variables for testing
os.environ["API_V1_STR"] = "/api/v1"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["CREATE_TABLES"] = "false"

from recipe_share.main import app
from recipe_share.core.consistency import ConsistencyGuard
from recipe_share.database import build_session_factory
from recipe_share.dependencies import get_session_factory
from recipe_share.models import (
    Base,
    Household,
    Collection,
    CollectionSubscription,
    CollectionRecipe,
    Recipe,
    Ingredient,
    RecipeIngredient,
    Measure,
    Preparation,
)

TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture
def engine():
    """
    Create a fresh in-memory database for each test.

    StaticPool keeps a single connection so every session sees the same database.
    """
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db_session(session_factory):
    """
    Session for seeding and assertions.

    Commit seed data before calling a service; call ``expire_all()`` before
    reading rows a service has written.
    """
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def guard(session_factory):
    return ConsistencyGuard(session_factory)


@pytest.fixture
def world(db_session):
    """
    Three households and the resources they share.

    - A owns private collection ``c1`` listing ``r1`` (display order 3).
      ``r1`` uses A's private ingredient ``i1`` and A's public ingredient ``p1``.
    - B is subscribed to ``c1``.
    - A owns public collection ``c_pub`` listing ``r_pub``, which uses A's
      private ingredient ``i_pub``.
    - A owns ``r_hidden`` (in no collection), which uses private ``i_hidden``.
    - C has no relationship with anything.
    """
    db = db_session

    a = Household(name="Household A")
    b = Household(name="Household B")
    c = Household(name="Household C")
    measure = Measure(name="cup")
    preparation = Preparation(name="chopped")
    db.add_all([a, b, c, measure, preparation])
    db.flush()

    i1 = Ingredient(name="Basil", fresh=True, cost=1.5, stockcode="BAS-1", household_id=a.id)
    p1 = Ingredient(name="Salt", is_public=True, household_id=a.id)
    i_pub = Ingredient(name="Saffron", cost=12.0, household_id=a.id)
    i_hidden = Ingredient(name="Truffle", household_id=a.id)
    db.add_all([i1, p1, i_pub, i_hidden])
    db.flush()

    r1 = Recipe(
        name="Pesto Pasta",
        description="Quick weeknight pasta",
        instructions="Blend, boil, toss.",
        prep_time_minutes=10,
        cook_time_minutes=12,
        servings=4,
        url_slug="pesto-pasta",
        image_filename="pesto.jpg",
        pdf_filename="pesto.pdf",
        household_id=a.id,
    )
    r_pub = Recipe(name="Paella", instructions="Simmer.", servings=6, household_id=a.id)
    r_hidden = Recipe(name="Truffle Risotto", servings=2, household_id=a.id)
    db.add_all([r1, r_pub, r_hidden])
    db.flush()

    row1 = RecipeIngredient(
        recipe_id=r1.id,
        ingredient_id=i1.id,
        quantity="2",
        quantity4="8",
        measure_id=measure.id,
        preparation_id=preparation.id,
        is_primary=True,
        order=1,
    )
    row2 = RecipeIngredient(recipe_id=r1.id, ingredient_id=p1.id, quantity="1/2", order=2)
    db.add_all([
        row1,
        row2,
        RecipeIngredient(recipe_id=r_pub.id, ingredient_id=i_pub.id, quantity="1", order=1),
        RecipeIngredient(recipe_id=r_hidden.id, ingredient_id=i_hidden.id, quantity="1", order=1),
    ])

    c1 = Collection(
        title="Weeknight Dinners",
        subtitle="Fast and easy",
        filename="weeknight.png",
        filename_dark="weeknight-dark.png",
        url_slug="weeknight-dinners",
        is_public=False,
        household_id=a.id,
    )
    c_pub = Collection(title="Spanish Classics", is_public=True, household_id=a.id)
    db.add_all([c1, c_pub])
    db.flush()

    db.add_all([
        CollectionRecipe(collection_id=c1.id, recipe_id=r1.id, display_order=3),
        CollectionRecipe(collection_id=c_pub.id, recipe_id=r_pub.id, display_order=1),
        CollectionSubscription(household_id=b.id, collection_id=c1.id),
    ])
    db.commit()

    return SimpleNamespace(
        a=a.id,
        b=b.id,
        c=c.id,
        c1=c1.id,
        c_pub=c_pub.id,
        r1=r1.id,
        r_pub=r_pub.id,
        r_hidden=r_hidden.id,
        i1=i1.id,
        p1=p1.id,
        i_pub=i_pub.id,
        i_hidden=i_hidden.id,
        row1=row1.id,
        row2=row2.id,
        measure=measure.id,
        preparation=preparation.id,
    )


@pytest.fixture
def client(session_factory):
    """Create a FastAPI TestClient bound to the test database."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def headers_for():
    """Build tenant headers for a household id."""
    def _headers(household_id: int) -> dict:
        return {"X-Household-Id": str(household_id)}
    return _headers
