import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from recipe_share.core.consistency import ConsistencyGuard
from recipe_share.core.exception import (
    AuthorizationException,
    ResourceNotFoundException,
    StoreException,
)
from recipe_share.models import (
    Collection,
    CollectionRecipe,
    Ingredient,
    Recipe,
    RecipeIngredient,
)
from recipe_share.repositories.collection_repository import CollectionRepository
from recipe_share.repositories.ingredient_repository import IngredientRepository
from recipe_share.schemas.access import ResourceType
from recipe_share.schemas.fork import ForkAction
from recipe_share.services.cascade_forker import CascadeForker
from recipe_share.services.permission_gate import PermissionGate
from recipe_share.services.subscription_service import SubscriptionService


def snapshot(db: Session, model, id: int) -> dict:
    """Column values of a row as currently stored."""
    db.expire_all()
    obj = db.get(model, id)
    return {column.key: getattr(obj, column.key) for column in model.__table__.columns}


def rows_of(db: Session, recipe_id: int):
    db.expire_all()
    return (
        db.query(RecipeIngredient)
        .filter(RecipeIngredient.recipe_id == recipe_id)
        .order_by(RecipeIngredient.order)
        .all()
    )


def forks_of(db: Session, model, household_id: int, source_id: int) -> int:
    db.expire_all()
    return (
        db.query(model)
        .filter(model.household_id == household_id, model.parent_id == source_id)
        .count()
    )


@pytest.mark.unit
class TestForkForMutation:
    """Copy-on-write forking of a recipe in a collection."""

    def test_subscriber_fork_copies_subgraph(self, db_session: Session, guard, world):
        """Subscribed B forks A's private recipe and gets C2, R2 and a private I2."""
        assert PermissionGate(db_session).can_mutate(world.b, ResourceType.RECIPE, world.r1) is False

        result = CascadeForker(guard).fork_for_mutation(world.b, world.c1, world.r1)

        assert result.actions_taken == [
            ForkAction.COLLECTION_COPIED,
            ForkAction.RECIPE_COPIED,
            ForkAction.INGREDIENT_COPIED,
            ForkAction.RECIPE_LINKED,
        ]
        assert result.forked is True

        db_session.expire_all()
        c2 = db_session.get(Collection, result.new_collection_id)
        assert c2.id != world.c1
        assert c2.household_id == world.b
        assert c2.parent_id == world.c1
        assert c2.title == "Weeknight Dinners"
        assert c2.subtitle == "Fast and easy"
        assert c2.filename == "weeknight.png"
        assert c2.filename_dark == "weeknight-dark.png"
        assert c2.url_slug == "weeknight-dinners"
        assert c2.is_public is False

        r2 = db_session.get(Recipe, result.new_recipe_id)
        assert r2.id != world.r1
        assert r2.household_id == world.b
        assert r2.parent_id == world.r1
        assert r2.name == "Pesto Pasta"
        assert r2.instructions == "Blend, boil, toss."
        assert r2.prep_time_minutes == 10
        assert r2.cook_time_minutes == 12
        assert r2.servings == 4
        assert r2.image_filename == "pesto.jpg"
        assert r2.pdf_filename == "pesto.pdf"

        primary, salt = rows_of(db_session, r2.id)
        i2 = db_session.get(Ingredient, primary.ingredient_id)
        assert i2.id != world.i1
        assert i2.household_id == world.b
        assert i2.parent_id == world.i1
        assert i2.is_public is False
        assert (i2.name, i2.fresh, i2.cost, i2.stockcode) == ("Basil", True, 1.5, "BAS-1")

        assert primary.quantity == "2"
        assert primary.quantity4 == "8"
        assert primary.measure_id == world.measure
        assert primary.preparation_id == world.preparation
        assert primary.is_primary is True
        assert primary.order == 1
        assert primary.parent_id == world.row1

        # Public ingredient is reused by reference
        assert salt.ingredient_id == world.p1
        assert salt.parent_id == world.row2

        listing = db_session.get(CollectionRecipe, (c2.id, r2.id))
        assert listing.display_order == 3

        gate = PermissionGate(db_session)
        assert gate.can_mutate(world.b, ResourceType.COLLECTION, c2.id) is True
        assert gate.can_mutate(world.b, ResourceType.RECIPE, r2.id) is True
        assert gate.can_mutate(world.b, ResourceType.INGREDIENT, i2.id) is True

    def test_originals_unchanged(self, db_session: Session, guard, world):
        before = {
            "collection": snapshot(db_session, Collection, world.c1),
            "recipe": snapshot(db_session, Recipe, world.r1),
            "ingredient": snapshot(db_session, Ingredient, world.i1),
            "public": snapshot(db_session, Ingredient, world.p1),
            "row": snapshot(db_session, RecipeIngredient, world.row1),
        }

        CascadeForker(guard).fork_for_mutation(world.b, world.c1, world.r1)

        assert before == {
            "collection": snapshot(db_session, Collection, world.c1),
            "recipe": snapshot(db_session, Recipe, world.r1),
            "ingredient": snapshot(db_session, Ingredient, world.i1),
            "public": snapshot(db_session, Ingredient, world.p1),
            "row": snapshot(db_session, RecipeIngredient, world.row1),
        }
        assert len(rows_of(db_session, world.r1)) == 2

    def test_public_ingredient_not_copied(self, db_session: Session, guard, world):
        """When I1 is public the fork references it directly."""
        db_session.get(Ingredient, world.i1).is_public = True
        db_session.commit()

        result = CascadeForker(guard).fork_for_mutation(world.b, world.c1, world.r1)

        assert ForkAction.INGREDIENT_COPIED not in result.actions_taken
        ingredient_ids = [row.ingredient_id for row in rows_of(db_session, result.new_recipe_id)]
        assert ingredient_ids == [world.i1, world.p1]
        assert forks_of(db_session, Ingredient, world.b, world.i1) == 0

    def test_existing_ingredient_fork_reused(self, db_session: Session, guard, world):
        forker = CascadeForker(guard)
        earlier = forker.fork_ingredient(world.b, world.i1)

        result = forker.fork_for_mutation(world.b, world.c1, world.r1)

        assert ForkAction.INGREDIENT_COPIED not in result.actions_taken
        primary = rows_of(db_session, result.new_recipe_id)[0]
        assert primary.ingredient_id == earlier.new_id

    def test_idempotent(self, db_session: Session, guard, world):
        forker = CascadeForker(guard)

        first = forker.fork_for_mutation(world.b, world.c1, world.r1)
        second = forker.fork_for_mutation(world.b, world.c1, world.r1)

        assert (second.new_collection_id, second.new_recipe_id) == (
            first.new_collection_id,
            first.new_recipe_id,
        )
        assert second.actions_taken == []
        assert forks_of(db_session, Collection, world.b, world.c1) == 1
        assert forks_of(db_session, Recipe, world.b, world.r1) == 1
        assert forks_of(db_session, Ingredient, world.b, world.i1) == 1

    def test_fork_keeps_subscription(self, guard, world):
        CascadeForker(guard).fork_for_mutation(world.b, world.c1, world.r1)

        assert SubscriptionService(guard).is_subscribed(world.b, world.c1) is True

    def test_public_collection_fork(self, db_session: Session, guard, world):
        result = CascadeForker(guard).fork_for_mutation(world.c, world.c_pub, world.r_pub)

        db_session.expire_all()
        assert db_session.get(Collection, result.new_collection_id).household_id == world.c
        assert db_session.get(Recipe, result.new_recipe_id).household_id == world.c
        assert forks_of(db_session, Ingredient, world.c, world.i_pub) == 1

    def test_owner_gets_original_ids(self, db_session: Session, guard, world):
        result = CascadeForker(guard).fork_for_mutation(world.a, world.c1, world.r1)

        assert result.new_collection_id == world.c1
        assert result.new_recipe_id == world.r1
        assert result.actions_taken == []
        assert forks_of(db_session, Recipe, world.a, world.r1) == 0

    def test_owned_collection_foreign_recipe(self, db_session: Session, guard, world):
        """B lists A's recipe in B's own collection: only the recipe is forked."""
        own = Collection(title="B's picks", household_id=world.b)
        db_session.add(own)
        db_session.flush()
        db_session.add(CollectionRecipe(collection_id=own.id, recipe_id=world.r1, display_order=7))
        db_session.commit()
        own_id = own.id

        result = CascadeForker(guard).fork_for_mutation(world.b, own_id, world.r1)

        assert result.new_collection_id == own_id
        assert result.new_recipe_id != world.r1
        assert result.actions_taken == [
            ForkAction.RECIPE_COPIED,
            ForkAction.INGREDIENT_COPIED,
            ForkAction.RECIPE_LINKED,
        ]
        db_session.expire_all()
        assert db_session.get(CollectionRecipe, (own_id, world.r1)) is not None
        assert db_session.get(CollectionRecipe, (own_id, result.new_recipe_id)).display_order == 7
        assert forks_of(db_session, Collection, world.b, world.c1) == 0

    def test_recipe_fork_shared_across_collections(self, guard, world):
        """A recipe forked from one collection is reused when forked from another."""
        forker = CascadeForker(guard)
        first = forker.fork_for_mutation(world.b, world.c1, world.r1)

        def list_in_public(db):
            db.add(CollectionRecipe(collection_id=world.c_pub, recipe_id=world.r1))

        guard.run_atomic(list_in_public)
        second = forker.fork_for_mutation(world.b, world.c_pub, world.r1)

        assert second.new_recipe_id == first.new_recipe_id
        assert second.new_collection_id != first.new_collection_id
        assert ForkAction.RECIPE_COPIED not in second.actions_taken

    def test_no_access_denied(self, db_session: Session, guard, world):
        with pytest.raises(AuthorizationException) as exc_info:
            CascadeForker(guard).fork_for_mutation(world.c, world.c1, world.r1)

        assert exc_info.value.status_code == 403
        assert forks_of(db_session, Collection, world.c, world.c1) == 0

    def _list_in_collection_of_c(
        self, db_session: Session, world, recipe_id: int, is_public: bool
    ) -> int:
        collection = Collection(
            title="C secret", subtitle="private", is_public=is_public, household_id=world.c
        )
        db_session.add(collection)
        db_session.flush()
        db_session.add(CollectionRecipe(collection_id=collection.id, recipe_id=recipe_id))
        db_session.commit()
        return collection.id

    @pytest.mark.parametrize("household, recipe", [("a", "r_hidden"), ("b", "r1")])
    def test_readable_recipe_in_private_collection_denied(
        self, db_session: Session, guard, world, household, recipe
    ):
        """Reading the recipe doesn't grant access to another household's private collection."""
        household_id, recipe_id = getattr(world, household), getattr(world, recipe)
        secret_id = self._list_in_collection_of_c(db_session, world, recipe_id, is_public=False)

        with pytest.raises(AuthorizationException):
            CascadeForker(guard).fork_for_mutation(household_id, secret_id, recipe_id)

        assert forks_of(db_session, Collection, household_id, secret_id) == 0
        assert forks_of(db_session, Recipe, household_id, recipe_id) == 0

    def test_recipe_owner_forks_public_collection(self, db_session: Session, guard, world):
        public_id = self._list_in_collection_of_c(
            db_session, world, world.r_hidden, is_public=True
        )

        result = CascadeForker(guard).fork_for_mutation(world.a, public_id, world.r_hidden)

        assert result.new_recipe_id == world.r_hidden
        assert result.actions_taken == [ForkAction.COLLECTION_COPIED, ForkAction.RECIPE_LINKED]
        assert forks_of(db_session, Collection, world.a, public_id) == 1

    @pytest.mark.parametrize(
        "household, collection, recipe",
        [
            ("b", 9999, "r1"),
            ("b", "c1", 9999),
            ("b", "c_pub", "r1"),
            (9999, "c1", "r1"),
        ],
    )
    def test_not_found(self, guard, world, household, collection, recipe):
        def resolve(value):
            return getattr(world, value) if isinstance(value, str) else value

        with pytest.raises(ResourceNotFoundException):
            CascadeForker(guard).fork_for_mutation(
                resolve(household), resolve(collection), resolve(recipe)
            )


@pytest.mark.unit
class TestForkConsistency:
    """Atomicity and convergence of concurrent forks."""

    def test_failure_rolls_back_everything(self, db_session: Session, guard, world, monkeypatch):
        """A store failure on the ingredient copy leaves no partial fork behind."""
        def broken_create(self, obj):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(IngredientRepository, "create", broken_create)

        with pytest.raises(StoreException):
            CascadeForker(guard).fork_for_mutation(world.b, world.c1, world.r1)

        assert forks_of(db_session, Collection, world.b, world.c1) == 0
        assert forks_of(db_session, Recipe, world.b, world.r1) == 0

    def test_concurrent_fork_converges(self, db_session: Session, session_factory, world, monkeypatch):
        """
        The losing request of a fork race hits the uniqueness constraint,
        re-checks, and returns the winner's fork.
        """
        winner = CascadeForker(ConsistencyGuard(session_factory)).fork_for_mutation(
            world.b, world.c1, world.r1
        )

        # The loser's first attempt doesn't see the winner's committed fork
        blind = {"on": True}
        original_find_fork = CollectionRepository.find_fork

        def racing_find_fork(self, household_id, source_id):
            if blind["on"]:
                return None
            return original_find_fork(self, household_id, source_id)

        class RacingGuard(ConsistencyGuard):
            def run_atomic(self, work):
                try:
                    return super().run_atomic(work)
                finally:
                    blind["on"] = False

        monkeypatch.setattr(CollectionRepository, "find_fork", racing_find_fork)

        loser = CascadeForker(RacingGuard(session_factory)).fork_for_mutation(
            world.b, world.c1, world.r1
        )

        assert (loser.new_collection_id, loser.new_recipe_id) == (
            winner.new_collection_id,
            winner.new_recipe_id,
        )
        assert forks_of(db_session, Collection, world.b, world.c1) == 1
        assert forks_of(db_session, Recipe, world.b, world.r1) == 1


@pytest.mark.unit
class TestForkIngredientForMutation:
    """Forking one ingredient as used by a recipe in a collection."""

    def test_private_ingredient(self, db_session: Session, guard, world):
        result = CascadeForker(guard).fork_ingredient_for_mutation(
            world.b, world.c1, world.r1, world.i1
        )

        db_session.expire_all()
        copy = db_session.get(Ingredient, result.new_ingredient_id)
        assert copy.household_id == world.b
        assert copy.parent_id == world.i1
        primary = rows_of(db_session, result.new_recipe_id)[0]
        assert primary.ingredient_id == copy.id

    def test_public_ingredient_is_repointed(self, db_session: Session, guard, world):
        """Editing a shared public ingredient gives the household its own copy."""
        result = CascadeForker(guard).fork_ingredient_for_mutation(
            world.b, world.c1, world.r1, world.p1
        )

        assert result.new_ingredient_id != world.p1
        salt = rows_of(db_session, result.new_recipe_id)[1]
        assert salt.ingredient_id == result.new_ingredient_id
        assert salt.quantity == "1/2"
        # Original recipe keeps the public ingredient
        assert rows_of(db_session, world.r1)[1].ingredient_id == world.p1

    def test_idempotent(self, guard, world):
        forker = CascadeForker(guard)

        first = forker.fork_ingredient_for_mutation(world.b, world.c1, world.r1, world.p1)
        second = forker.fork_ingredient_for_mutation(world.b, world.c1, world.r1, world.p1)

        assert second.new_ingredient_id == first.new_ingredient_id
        assert second.new_recipe_id == first.new_recipe_id
        assert second.actions_taken == []

    def test_owner_keeps_own_ingredient(self, guard, world):
        result = CascadeForker(guard).fork_ingredient_for_mutation(
            world.a, world.c1, world.r1, world.i1
        )

        assert result.new_ingredient_id == world.i1
        assert result.actions_taken == []

    def test_other_household_recipes_use_copy(self, db_session: Session, guard, world):
        """The copy replaces the shared ingredient in every recipe the household owns."""
        def own_recipe(db):
            recipe = Recipe(name="Salted Caramel", household_id=world.b)
            db.add(recipe)
            db.flush()
            db.add(RecipeIngredient(recipe_id=recipe.id, ingredient_id=world.p1, order=1))
            return recipe.id

        caramel_id = guard.run_atomic(own_recipe)

        result = CascadeForker(guard).fork_ingredient_for_mutation(
            world.b, world.c1, world.r1, world.p1
        )

        assert rows_of(db_session, result.new_recipe_id)[1].ingredient_id == result.new_ingredient_id
        assert rows_of(db_session, caramel_id)[0].ingredient_id == result.new_ingredient_id
        assert rows_of(db_session, world.r1)[1].ingredient_id == world.p1

    def test_ingredient_not_in_recipe(self, db_session: Session, guard, world):
        with pytest.raises(ResourceNotFoundException):
            CascadeForker(guard).fork_ingredient_for_mutation(
                world.b, world.c1, world.r1, world.i_hidden
            )

        assert forks_of(db_session, Collection, world.b, world.c1) == 0


@pytest.mark.unit
class TestForkSingleResource:
    """Forking a recipe or an ingredient outside a collection."""

    def test_fork_recipe(self, db_session: Session, guard, world):
        forker = CascadeForker(guard)

        first = forker.fork_recipe(world.b, world.r1)
        second = forker.fork_recipe(world.b, world.r1)

        assert first.copied is True
        assert second.copied is False
        assert second.new_id == first.new_id
        db_session.expire_all()
        assert db_session.get(Recipe, first.new_id).household_id == world.b
        assert len(rows_of(db_session, first.new_id)) == 2

    def test_fork_own_recipe(self, guard, world):
        result = CascadeForker(guard).fork_recipe(world.a, world.r1)

        assert result.copied is False
        assert result.new_id == world.r1

    def test_fork_recipe_requires_access(self, guard, world):
        with pytest.raises(AuthorizationException):
            CascadeForker(guard).fork_recipe(world.c, world.r1)

    def test_fork_recipe_missing(self, guard, world):
        with pytest.raises(ResourceNotFoundException):
            CascadeForker(guard).fork_recipe(world.b, 9999)

    def test_fork_ingredient(self, db_session: Session, guard, world):
        forker = CascadeForker(guard)

        first = forker.fork_ingredient(world.b, world.i1)
        second = forker.fork_ingredient(world.b, world.i1)

        assert first.copied is True
        assert second == first.model_copy(update={"copied": False})
        db_session.expire_all()
        copy = db_session.get(Ingredient, first.new_id)
        assert copy.household_id == world.b
        assert copy.is_public is False

    def test_fork_public_ingredient(self, guard, world):
        result = CascadeForker(guard).fork_ingredient(world.c, world.p1)

        assert result.copied is True
        assert result.new_id != world.p1

    def test_fork_own_ingredient(self, guard, world):
        result = CascadeForker(guard).fork_ingredient(world.a, world.i1)

        assert result.copied is False
        assert result.new_id == world.i1

    def test_fork_ingredient_requires_access(self, guard, world):
        with pytest.raises(AuthorizationException):
            CascadeForker(guard).fork_ingredient(world.c, world.i1)

    def test_fork_ingredient_missing(self, guard, world):
        with pytest.raises(ResourceNotFoundException):
            CascadeForker(guard).fork_ingredient(world.b, 9999)

    def test_fork_recipe_updates_own_collections(self, db_session: Session, guard, world):
        """Collections the household owns list the copy; other collections keep the original."""
        def own_collection(db):
            collection = Collection(title="B Favourites", household_id=world.b)
            db.add(collection)
            db.flush()
            db.add(CollectionRecipe(collection_id=collection.id, recipe_id=world.r_pub, display_order=2))
            return collection.id

        favourites_id = guard.run_atomic(own_collection)

        result = CascadeForker(guard).fork_recipe(world.b, world.r_pub)

        repo = CollectionRepository(db_session)
        db_session.expire_all()
        assert repo.contains_recipe(favourites_id, result.new_id)
        assert not repo.contains_recipe(favourites_id, world.r_pub)
        assert repo.get_listing(favourites_id, result.new_id).display_order == 2
        assert repo.contains_recipe(world.c_pub, world.r_pub)
        assert not repo.contains_recipe(world.c_pub, result.new_id)

    def test_fork_ingredient_updates_own_recipes(self, db_session: Session, guard, world):
        """Recipes the household owns use the copy; shared recipes keep the original."""
        forker = CascadeForker(guard)
        fork = forker.fork_for_mutation(world.b, world.c1, world.r1)
        assert rows_of(db_session, fork.new_recipe_id)[1].ingredient_id == world.p1

        result = forker.fork_ingredient(world.b, world.p1)

        assert result.copied is True
        assert rows_of(db_session, fork.new_recipe_id)[1].ingredient_id == result.new_id
        assert rows_of(db_session, world.r1)[1].ingredient_id == world.p1
