"""
Transaction boundary for multi-table writes.

Every fork runs inside ``ConsistencyGuard.run_atomic``: one session, one
transaction, committed only when the whole unit of work succeeds.
"""
import logging
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from recipe_share.core.exception import ConflictException, StoreException

logger = logging.getLogger(__name__)

T = TypeVar("T")


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Surface database failures as StoreException instead of a default answer."""
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        logger.error(f"Store failure during {operation}: {exc}")
        raise StoreException(f"Database failure during {operation}. Please retry.") from exc


class ConsistencyGuard:
    """Runs units of work atomically against an injected session factory."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def run_atomic(self, work: Callable[[Session], T]) -> T:
        """
        Run ``work`` in a single transaction.

        Commits on success. On any exception the transaction is rolled back
        before the error reaches the caller, and the session is always closed.

        Raises:
            ConflictException: If a uniqueness constraint rejected a write
            StoreException: For connectivity, timeout or other store failures
        """
        session = self.session_factory()
        try:
            result = work(session)
            session.commit()
            return result
        except IntegrityError as exc:
            session.rollback()
            logger.warning(f"Transaction rolled back on constraint violation: {exc.orig}")
            raise ConflictException(
                "A concurrent request already created this resource."
            ) from exc
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(f"Transaction rolled back on store failure: {exc}")
            raise StoreException("Database failure; nothing was saved. Please retry.") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
