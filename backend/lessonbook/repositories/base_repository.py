# backend/lessonbook/repositories/base_repository.py
"""
Repository base classes.

Repositories translate between services and SQLAlchemy. They flush so that
generated keys and constraint violations show up early, but they never
commit: the calling service owns the unit of work.
"""

from abc import ABC, abstractmethod
import logging
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException

T = TypeVar("T")

logger = logging.getLogger(__name__)


class IRepository(ABC, Generic[T]):
    """Minimal data-access contract shared by every aggregate."""

    @abstractmethod
    def get_by_id(self, id: Any, *, for_update: bool = False) -> Optional[T]:
        """
        Look up one row by primary key (a tuple for composite keys).

        With ``for_update`` the row stays locked until the transaction ends.
        """

    @abstractmethod
    def create(self, **kwargs: Any) -> T:
        """Insert and flush a new row. Raises RepositoryException on failure."""

    @abstractmethod
    def exists(self, **kwargs: Any) -> bool:
        """True when a row matches every given column value."""

    @abstractmethod
    def count(self, **kwargs: Any) -> int:
        """Number of rows matching every given column value."""


class BaseRepository(IRepository[T]):
    """SQLAlchemy implementation of IRepository for one mapped class."""

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def get_by_id(self, id: Any, *, for_update: bool = False) -> Optional[T]:
        """
        Locked reads bypass the identity map (``populate_existing``) so the
        caller acts on committed state rather than on a stale cached copy.
        """
        options: dict[str, Any] = {}
        if for_update:
            options = {"with_for_update": True, "populate_existing": True}
        try:
            return self.db.get(self.model, id, **options)
        except SQLAlchemyError as exc:
            self.logger.error("Lookup of %s %r failed: %s", self.model.__name__, id, exc)
            raise RepositoryException(f"Failed to load {self.model.__name__} {id!r}") from exc

    def create(self, **kwargs: Any) -> T:
        entity = self.model(**kwargs)
        try:
            self.db.add(entity)
            self.db.flush()
        except IntegrityError as exc:
            self.logger.error(
                "Constraint violated creating %s: %s", self.model.__name__, exc, exc_info=True
            )
            raise RepositoryException(f"Integrity constraint violated: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            self.logger.error("Creating %s failed: %s", self.model.__name__, exc)
            raise RepositoryException(f"Failed to create {self.model.__name__}") from exc
        return entity

    def flush(self) -> None:
        self.db.flush()

    def exists(self, **kwargs: Any) -> bool:
        try:
            return self.db.query(self.model).filter_by(**kwargs).first() is not None
        except SQLAlchemyError as exc:
            self.logger.error("Existence check on %s failed: %s", self.model.__name__, exc)
            raise RepositoryException(f"Failed to query {self.model.__name__}") from exc

    def count(self, **kwargs: Any) -> int:
        try:
            return self.db.query(self.model).filter_by(**kwargs).count()
        except SQLAlchemyError as exc:
            self.logger.error("Counting %s failed: %s", self.model.__name__, exc)
            raise RepositoryException(f"Failed to count {self.model.__name__}") from exc
