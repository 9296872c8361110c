"""Generic repository interface (Dependency Inversion Principle).

Provides ``IRepository[T]``, the base abstract class every aggregate
repository extends.  Service-layer code depends on these abstractions and
never on the Django ORM directly, which keeps services testable with
``MagicMock`` repositories.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, Iterable, Optional, TypeVar

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """Base generic repository contract.

    Missing rows are reported as ``None`` (or ``False``), never as exceptions;
    the service layer decides which domain error that becomes.
    """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """Retrieve an entity by its primary key."""

    @abstractmethod
    def get_many(self, ids: Iterable[str]) -> list[T]:
        """Retrieve every existing entity whose primary key is in *ids*."""

    @abstractmethod
    def save(self, entity: T) -> T:
        """Persist (create or update) an entity."""

    @abstractmethod
    def delete(self, id: str) -> bool:
        """Remove an entity by ID."""
