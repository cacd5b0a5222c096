"""
Tag Repositories.

Data access for tag categories, tags, and client tag assignments.
"""

from datetime import datetime

from sqlalchemy import Select, delete, func, or_, select, update

from crm.backend.core.pagination import PagedResult, PageParams, paginate_select
from crm.backend.models.tag import ClientTag, Tag, TagCategory
from crm.backend.repositories.base import BaseRepository


class TagCategoryRepository(BaseRepository[TagCategory]):
    """Repository for TagCategory model."""

    model = TagCategory

    async def get_in_organization(self, category_id: str, organization_id: str) -> TagCategory | None:
        result = await self.session.execute(
            select(TagCategory).where(
                TagCategory.id == str(category_id),
                TagCategory.organization_id == organization_id,
            )
        )
        return result.scalar_one_or_none()

    async def name_taken(
        self,
        organization_id: str,
        name: str,
        exclude_id: str | None = None,
    ) -> bool:
        """Case-insensitive duplicate name check within an organization."""
        stmt = select(TagCategory.id).where(
            TagCategory.organization_id == organization_id,
            func.lower(TagCategory.name) == name.lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(TagCategory.id != exclude_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    async def list_with_tag_counts(
        self,
        organization_id: str,
        include_inactive: bool = False,
    ) -> list[tuple[TagCategory, int]]:
        """Categories ordered for display, each with its non-archived tag count."""
        tag_count = (
            select(func.count(Tag.id))
            .where(Tag.category_id == TagCategory.id, Tag.is_archived.is_(False))
            .correlate(TagCategory)
            .scalar_subquery()
        )
        stmt = (
            select(TagCategory, tag_count)
            .where(TagCategory.organization_id == organization_id)
            .order_by(TagCategory.display_order, TagCategory.name)
        )
        if not include_inactive:
            stmt = stmt.where(TagCategory.is_active.is_(True))
        result = await self.session.execute(stmt)
        return [(category, count) for category, count in result.all()]


class TagRepository(BaseRepository[Tag]):
    """Repository for Tag model."""

    model = Tag

    async def get_in_organization(self, tag_id: str, organization_id: str) -> Tag | None:
        result = await self.session.execute(
            select(Tag).where(Tag.id == str(tag_id), Tag.organization_id == organization_id)
        )
        return result.scalar_one_or_none()

    async def get_many_in_organization(
        self,
        tag_ids: list[str],
        organization_id: str,
    ) -> dict[str, Tag]:
        if not tag_ids:
            return {}
        result = await self.session.execute(
            select(Tag).where(Tag.id.in_(tag_ids), Tag.organization_id == organization_id)
        )
        return {tag.id: tag for tag in result.scalars().all()}

    async def name_taken(
        self,
        organization_id: str,
        name: str,
        exclude_id: str | None = None,
    ) -> bool:
        """Case-insensitive duplicate name check within an organization."""
        stmt = select(Tag.id).where(
            Tag.organization_id == organization_id,
            func.lower(Tag.name) == name.lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(Tag.id != exclude_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    def _list_statement(
        self,
        organization_id: str,
        category_id: str | None,
        include_inactive: bool,
        include_archived: bool,
        search: str | None,
    ) -> Select:
        stmt = select(Tag).where(Tag.organization_id == organization_id)
        if category_id:
            stmt = stmt.where(Tag.category_id == category_id)
        if not include_inactive:
            stmt = stmt.where(Tag.is_active.is_(True))
        if not include_archived:
            stmt = stmt.where(Tag.is_archived.is_(False))
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(Tag.name.ilike(pattern), Tag.description.ilike(pattern)))
        return stmt.order_by(Tag.name)

    async def list_tags(
        self,
        organization_id: str,
        params: PageParams,
        category_id: str | None = None,
        include_inactive: bool = False,
        include_archived: bool = False,
        search: str | None = None,
    ) -> PagedResult[Tag]:
        stmt = self._list_statement(
            organization_id, category_id, include_inactive, include_archived, search
        )
        return await paginate_select(self.session, stmt, params)

    async def list_for_categories(self, category_ids: list[str]) -> list[Tag]:
        """Non-archived tags of the given categories, ordered for display."""
        if not category_ids:
            return []
        result = await self.session.execute(
            select(Tag)
            .where(Tag.category_id.in_(category_ids), Tag.is_archived.is_(False))
            .order_by(Tag.display_order, Tag.name)
        )
        return list(result.scalars().all())

    async def reassign_category(self, from_category_id: str, to_category_id: str | None) -> int:
        """Move every tag of a category to another one (or to none)."""
        result = await self.session.execute(
            update(Tag)
            .where(Tag.category_id == from_category_id)
            .values(category_id=to_category_id)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.flush()
        return result.rowcount

    async def count_for_organization(self, organization_id: str, *criteria) -> int:
        return await self.count(Tag.organization_id == organization_id, *criteria)


class ClientTagRepository(BaseRepository[ClientTag]):
    """Repository for ClientTag assignments."""

    model = ClientTag

    async def tags_for_client(self, client_id: str) -> list[Tag]:
        """Tags currently assigned to a client, ordered by name."""
        result = await self.session.execute(
            select(Tag)
            .join(ClientTag, ClientTag.tag_id == Tag.id)
            .where(ClientTag.client_id == client_id)
            .order_by(Tag.name)
        )
        return list(result.scalars().all())

    async def assigned_tag_ids(self, client_id: str) -> set[str]:
        result = await self.session.execute(
            select(ClientTag.tag_id).where(ClientTag.client_id == client_id)
        )
        return set(result.scalars().all())

    async def assign(self, client_id: str, tag_id: str, assigned_by: str) -> ClientTag:
        return await self.create(client_id=client_id, tag_id=tag_id, assigned_by=assigned_by)

    async def remove(self, client_id: str, tag_ids: list[str]) -> int:
        """Remove assignments of the given tags from a client. Returns rows removed."""
        if not tag_ids:
            return 0
        result = await self.session.execute(
            delete(ClientTag)
            .where(ClientTag.client_id == client_id, ClientTag.tag_id.in_(tag_ids))
            .execution_options(synchronize_session="fetch")
        )
        await self.session.flush()
        return result.rowcount

    async def client_count(self, tag_id: str) -> int:
        return await self.count(ClientTag.tag_id == tag_id)

    async def count_since(self, tag_id: str, since: datetime) -> int:
        return await self.count(ClientTag.tag_id == tag_id, ClientTag.assigned_at >= since)

    async def count_between(self, tag_id: str, start: datetime, end: datetime) -> int:
        return await self.count(
            ClientTag.tag_id == tag_id,
            ClientTag.assigned_at >= start,
            ClientTag.assigned_at < end,
        )

    async def count_for_organization(self, organization_id: str) -> int:
        result = await self.session.execute(
            select(func.count(ClientTag.id))
            .join(Tag, Tag.id == ClientTag.tag_id)
            .where(Tag.organization_id == organization_id)
        )
        return result.scalar_one()

    async def top_tags(self, organization_id: str, limit: int = 10) -> list[tuple[Tag, int]]:
        """Most assigned tags of an organization with their client counts."""
        assignments = func.count(ClientTag.id).label("assignments")
        result = await self.session.execute(
            select(Tag, assignments)
            .join(ClientTag, ClientTag.tag_id == Tag.id)
            .where(Tag.organization_id == organization_id)
            .group_by(Tag.id)
            .order_by(assignments.desc(), Tag.name)
            .limit(limit)
        )
        return [(tag, count) for tag, count in result.all()]

    async def remove_tag_everywhere(self, tag_id: str) -> int:
        """Remove a tag from every client. Returns rows removed."""
        result = await self.session.execute(
            delete(ClientTag)
            .where(ClientTag.tag_id == tag_id)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.flush()
        return result.rowcount
