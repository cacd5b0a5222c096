"""
Pagination Utilities.

Page-based pagination for list endpoints: callers send ``page`` and
``limit``; responses carry ``total``, ``total_pages`` and ``has_more``.
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.utils import total_pages

T = TypeVar("T")


@dataclass
class PageParams:
    """Page number (1-based) and page size."""

    page: int = 1
    limit: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class PagedResult(Generic[T]):
    """
    Result container for paginated queries.

    Contains the items and pagination metadata needed to build a Page.
    """

    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return total_pages(self.total, self.limit)

    @property
    def has_more(self) -> bool:
        return self.page * self.limit < self.total

    def to_page(self, item_schema: type[BaseModel]) -> dict[str, Any]:
        """
        Validate items through ``item_schema`` and return a Page-shaped dict.

        Usage:
            result = await repo.list_for_client(client_id, params)
            return result.to_page(ContactResponse)
        """
        return {
            "items": [item_schema.model_validate(item) for item in self.items],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "total_pages": self.total_pages,
            "has_more": self.has_more,
        }


async def count_rows(session: AsyncSession, stmt: Select) -> int:
    """Count rows a select would return, ignoring its ordering."""
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    result = await session.execute(count_stmt)
    return result.scalar_one()


async def paginate_select(
    session: AsyncSession,
    stmt: Select,
    params: PageParams,
) -> PagedResult:
    """
    Execute a select with page/limit applied and count the full result.

    Args:
        session: Database session
        stmt: Filtered and ordered select over one ORM entity
        params: Page parameters

    Returns:
        PagedResult with the page items and total count
    """
    total = await count_rows(session, stmt)
    result = await session.execute(stmt.limit(params.limit).offset(params.offset))
    items = list(result.scalars().all())
    return PagedResult(items=items, total=total, page=params.page, limit=params.limit)
