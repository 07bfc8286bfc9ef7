"""Base repository class with common CRUD operations."""

from typing import Generic, TypeVar, Type, Optional, List, Any
from sqlalchemy import select, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_indexer.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository providing common operations for all models.

    Writes that must be idempotent go through :meth:`upsert_statement`, which
    builds the dialect's native ``INSERT ... ON CONFLICT`` so concurrent
    writers never lose updates or duplicate rows.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    def upsert_statement(self, **values):
        """
        Build a dialect-specific INSERT for this model.

        The returned statement supports ``on_conflict_do_nothing`` and
        ``on_conflict_do_update`` on both SQLite and PostgreSQL.

        Raises:
            NotImplementedError: If the bound dialect has no native upsert
        """
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(self.model).values(**values)
        if dialect == "sqlite":
            return sqlite.insert(self.model).values(**values)
        raise NotImplementedError(f"No native upsert for dialect '{dialect}'")

    async def create(self, **kwargs) -> ModelType:
        """
        Create a new record.

        Args:
            **kwargs: Field values for the new record

        Returns:
            Created model instance
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def get_by_field(self, field_name: str, value: Any) -> Optional[ModelType]:
        """
        Get a record by a specific field value.

        Args:
            field_name: Name of the field to search
            value: Value to search for

        Returns:
            Model instance or None if not found
        """
        field = getattr(self.model, field_name)
        result = await self.session.execute(select(self.model).where(field == value))
        return result.scalar_one_or_none()

    async def get_all(
        self, limit: Optional[int] = None, offset: Optional[int] = None
    ) -> List[ModelType]:
        """
        Get all records with optional pagination.

        Args:
            limit: Maximum number of records to return
            offset: Number of records to skip

        Returns:
            List of model instances
        """
        query = select(self.model)
        if offset is not None:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def filter(self, **filters) -> List[ModelType]:
        """
        Filter records by field equality.

        Args:
            **filters: Field name and value pairs

        Returns:
            List of matching model instances
        """
        query = select(self.model)
        for field_name, value in filters.items():
            query = query.where(getattr(self.model, field_name) == value)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count(self, **filters) -> int:
        """
        Count records matching the given equality filters.

        Args:
            **filters: Field name and value pairs

        Returns:
            Number of matching records
        """
        query = select(func.count()).select_from(self.model)
        for field_name, value in filters.items():
            query = query.where(getattr(self.model, field_name) == value)

        result = await self.session.execute(query)
        return result.scalar() or 0

    async def exists(self, **filters) -> bool:
        """Check if any records exist matching the given filters."""
        return await self.count(**filters) > 0
