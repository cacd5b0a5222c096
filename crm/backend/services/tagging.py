"""
Tagging Service.

Business logic for tag categories, tags, and tag assignments to
clients, including bulk assignment and tag usage statistics.

Rules:
    - tag and category names are unique per organization
    - system tags cannot be edited, archived, deleted or unassigned
    - a SINGLE selection category allows one of its tags per client;
      assigning a new one replaces the old
"""

from collections import defaultdict
from datetime import timedelta
from typing import Any

import redis.asyncio as redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.cache import get_json, set_json, tags_cache_pattern
from crm.backend.core.config import get_app_config
from crm.backend.core.exceptions import (
    ApplicationError,
    BadRequestError,
    ConflictError,
    NotFoundError,
)
from crm.backend.core.pagination import PagedResult, PageParams
from crm.backend.core.security import SessionContext
from crm.backend.core.utils import slugify, utc_now
from crm.backend.models.client import Client
from crm.backend.models.enums import EventType, SelectionMode
from crm.backend.models.tag import Tag, TagCategory
from crm.backend.repositories.client import ClientRepository
from crm.backend.repositories.tag import (
    ClientTagRepository,
    TagCategoryRepository,
    TagRepository,
)
from crm.backend.schemas.tagging import (
    BulkTagClientResult,
    BulkTagOperationRequest,
    BulkTagResult,
    CategoryDeleteResult,
    TagAssignmentResult,
    TagCategoryCreate,
    TagCategoryResponse,
    TagCategoryUpdate,
    TagCreate,
    TagDeleteResult,
    TagError,
    TagListParams,
    TagResponse,
    TagsOverviewStatistics,
    TagUpdate,
    TagUsageStatistics,
    TopTag,
)
from crm.backend.services.audit import AuditEvent, AuditLogger
from crm.backend.services.base import CrmService
from crm.backend.services.timeline import TimelineService

TOP_TAGS_LIMIT = 10
MAX_REPLACE_TAGS = 100


class TaggingService(CrmService):
    """Service for tags and their assignment to clients."""

    def __init__(
        self,
        session: AsyncSession,
        cache: redis.Redis,
        actor: SessionContext,
        audit: AuditLogger | None = None,
        cache_ttl_seconds: int = 600,
        default_color: str = "#3B82F6",
        max_tags_per_request: int = 50,
        max_bulk_clients: int = 1000,
    ) -> None:
        super().__init__(session, cache, actor, audit)
        self.categories = TagCategoryRepository(session)
        self.tags = TagRepository(session)
        self.assignments = ClientTagRepository(session)
        self.clients = ClientRepository(session)
        self.timeline = TimelineService(session, cache, actor, self.audit)
        self.cache_ttl_seconds = cache_ttl_seconds
        self.default_color = default_color
        self.max_tags_per_request = max_tags_per_request
        self.max_bulk_clients = max_bulk_clients

    @classmethod
    def for_request(
        cls,
        session: AsyncSession,
        cache: redis.Redis,
        actor: SessionContext,
    ) -> "TaggingService":
        config = get_app_config()
        return cls(
            session,
            cache,
            actor,
            AuditLogger(session, enabled=config.features.audit_log_enabled),
            cache_ttl_seconds=config.crm.tagging.cache_ttl_seconds,
            default_color=config.crm.tagging.default_color,
            max_tags_per_request=config.crm.tagging.max_tags_per_request,
            max_bulk_clients=config.crm.tagging.max_bulk_clients,
        )

    @property
    def organization_id(self) -> str:
        return self.actor.organization_id

    def _cache_key(self, name: str) -> str:
        return f"tags:{self.organization_id}:{name}"

    async def _changed(self, client_ids: list[str] | None = None) -> None:
        await self._invalidate_pattern(tags_cache_pattern(self.organization_id))
        if client_ids:
            await self._invalidate_clients(client_ids)

    def _unique_tag_ids(self, tag_ids: list[str], limit: int | None = None) -> list[str]:
        limit = self.max_tags_per_request if limit is None else limit
        ids = list(dict.fromkeys(tag_ids))
        if len(ids) > limit:
            raise BadRequestError(f"At most {limit} tags can be sent per request")
        return ids

    async def _require_category(self, category_id: str) -> TagCategory:
        category = await self.categories.get_in_organization(category_id, self.organization_id)
        if category is None:
            raise NotFoundError("Category not found")
        return category

    async def _require_tag(self, tag_id: str) -> Tag:
        tag = await self.tags.get_in_organization(tag_id, self.organization_id)
        if tag is None:
            raise NotFoundError("Tag not found")
        return tag

    async def _require_client(self, client_id: str) -> Client:
        client = await self.clients.get_accessible(client_id, self.actor)
        if client is None:
            raise NotFoundError("Client not found")
        return client

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def create_category(self, data: TagCategoryCreate) -> TagCategoryResponse:
        """
        Raises:
            ConflictError: If the organization already has a category with this name
        """
        if await self.categories.name_taken(self.organization_id, data.name):
            raise ConflictError("A category with this name already exists")

        self._log_operation("Creating tag category", name=data.name)
        category = await self._execute_db_operation(
            "create_category",
            self.categories.create(organization_id=self.organization_id, **data.model_dump()),
        )

        await self._changed()
        await self._audit(
            AuditEvent.TAG_CATEGORY_CREATED,
            metadata={"name": category.name, "selection_mode": category.selection_mode},
            resource_type="tag_category",
            resource_id=category.id,
        )
        return TagCategoryResponse.model_validate(category)

    async def get_categories(self, include_inactive: bool = False) -> list[TagCategoryResponse]:
        """Categories in display order, each with its tags. Cached per organization."""
        key = self._cache_key(f"categories:{str(include_inactive).lower()}")
        cached = await get_json(self.cache, key)
        if cached is not None:
            return [TagCategoryResponse.model_validate(item) for item in cached]

        rows = await self.categories.list_with_tag_counts(self.organization_id, include_inactive)
        tags = await self.tags.list_for_categories([category.id for category, _ in rows])
        by_category: dict[str, list[Tag]] = defaultdict(list)
        for tag in tags:
            by_category[tag.category_id].append(tag)

        result = []
        for category, tag_count in rows:
            response = TagCategoryResponse.model_validate(category)
            response.tag_count = tag_count
            response.tags = [TagResponse.model_validate(t) for t in by_category[category.id]]
            result.append(response)

        await set_json(
            self.cache,
            key,
            [item.model_dump(mode="json") for item in result],
            self.cache_ttl_seconds,
        )
        return result

    async def update_category(self, category_id: str, data: TagCategoryUpdate) -> TagCategoryResponse:
        """
        Raises:
            NotFoundError: If the category does not exist
            ConflictError: If the new name is taken
        """
        category = await self._require_category(category_id)
        changes = data.model_dump(exclude_unset=True)
        if "name" in changes and await self.categories.name_taken(
            self.organization_id, changes["name"], exclude_id=category.id
        ):
            raise ConflictError("A category with this name already exists")

        if changes:
            category = await self._execute_db_operation(
                "update_category",
                self.categories.apply(category, **changes),
            )
            await self._changed()
            await self._audit(
                AuditEvent.TAG_CATEGORY_UPDATED,
                metadata={"fields": sorted(changes)},
                resource_type="tag_category",
                resource_id=category.id,
            )
        return TagCategoryResponse.model_validate(category)

    async def delete_category(
        self,
        category_id: str,
        reassign_to_category_id: str | None = None,
    ) -> CategoryDeleteResult:
        """
        Delete a category. Its tags move to ``reassign_to_category_id``
        or are left without a category.

        Raises:
            NotFoundError: If either category does not exist
            BadRequestError: If reassigning to the category being deleted
        """
        category = await self._require_category(category_id)
        if reassign_to_category_id:
            if reassign_to_category_id == category.id:
                raise BadRequestError("Cannot reassign tags to the category being deleted")
            await self._require_category(reassign_to_category_id)

        self._log_operation(
            "Deleting tag category",
            category_id=category.id,
            reassign_to=reassign_to_category_id,
        )

        async def write() -> int:
            moved = await self.tags.reassign_category(category.id, reassign_to_category_id)
            await self.categories.delete(category.id)
            return moved

        moved = await self._execute_db_operation("delete_category", write())

        await self._changed()
        await self._audit(
            AuditEvent.TAG_CATEGORY_DELETED,
            metadata={"reassigned_tags": moved, "reassign_to": reassign_to_category_id},
            resource_type="tag_category",
            resource_id=category_id,
        )
        message = (
            f"Category deleted, {moved} tag(s) reassigned"
            if reassign_to_category_id
            else "Category deleted"
        )
        return CategoryDeleteResult(reassigned_tags=moved, message=message)

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    async def create_tag(self, data: TagCreate) -> TagResponse:
        """
        Raises:
            ConflictError: If the organization already has a tag with this name
            NotFoundError: If the category does not exist
        """
        if await self.tags.name_taken(self.organization_id, data.name):
            raise ConflictError("A tag with this name already exists")
        if data.category_id:
            await self._require_category(data.category_id)

        self._log_operation("Creating tag", name=data.name)
        fields = data.model_dump()
        fields["color"] = fields["color"] or self.default_color
        tag = await self._execute_db_operation(
            "create_tag",
            self.tags.create(
                organization_id=self.organization_id,
                slug=slugify(data.name),
                **fields,
            ),
        )

        await self._changed()
        await self._audit(
            AuditEvent.TAG_CREATED,
            metadata={"name": tag.name, "category_id": tag.category_id},
            resource_type="tag",
            resource_id=tag.id,
        )
        return TagResponse.model_validate(tag)

    async def get_tags(self, params: TagListParams) -> PagedResult[Tag]:
        return await self.tags.list_tags(
            self.organization_id,
            PageParams(page=params.page, limit=params.limit),
            category_id=params.category_id,
            include_inactive=params.include_inactive,
            include_archived=params.include_archived,
            search=params.search,
        )

    async def get_tag(self, tag_id: str, include_client_count: bool = False) -> TagResponse:
        tag = await self._require_tag(tag_id)
        response = TagResponse.model_validate(tag)
        if include_client_count:
            response.client_count = await self.assignments.client_count(tag.id)
        return response

    async def update_tag(self, tag_id: str, data: TagUpdate) -> TagResponse:
        """
        Raises:
            NotFoundError: If the tag or the new category does not exist
            BadRequestError: If the tag is a system tag
            ConflictError: If the new name is taken
        """
        tag = await self._require_tag(tag_id)
        if tag.is_system:
            raise BadRequestError("System tags cannot be modified")

        changes = data.model_dump(exclude_unset=True)
        if "name" in changes:
            if await self.tags.name_taken(self.organization_id, changes["name"], exclude_id=tag.id):
                raise ConflictError("A tag with this name already exists")
            changes["slug"] = slugify(changes["name"])
        if changes.get("category_id"):
            await self._require_category(changes["category_id"])

        if changes:
            tag = await self._execute_db_operation("update_tag", self.tags.apply(tag, **changes))
            await self._changed()
            await self._audit(
                AuditEvent.TAG_UPDATED,
                metadata={"fields": sorted(changes)},
                resource_type="tag",
                resource_id=tag.id,
            )
        return TagResponse.model_validate(tag)

    async def archive_tag(self, tag_id: str) -> TagResponse:
        """
        Raises:
            NotFoundError: If the tag does not exist
            BadRequestError: If the tag is a system tag or already archived
        """
        tag = await self._require_tag(tag_id)
        if tag.is_system:
            raise BadRequestError("System tags cannot be archived")
        if tag.is_archived:
            raise BadRequestError("Tag is already archived")

        tag = await self._execute_db_operation("archive_tag", self.tags.apply(tag, is_archived=True))
        await self._changed()
        await self._audit(AuditEvent.TAG_ARCHIVED, resource_type="tag", resource_id=tag.id)
        return TagResponse.model_validate(tag)

    async def restore_tag(self, tag_id: str) -> TagResponse:
        """
        Raises:
            BadRequestError: If the tag is missing or not archived
        """
        tag = await self.tags.get_in_organization(tag_id, self.organization_id)
        if tag is None or not tag.is_archived:
            raise BadRequestError("Tag not found or not archived")

        tag = await self._execute_db_operation("restore_tag", self.tags.apply(tag, is_archived=False))
        await self._changed()
        await self._audit(AuditEvent.TAG_RESTORED, resource_type="tag", resource_id=tag.id)
        return TagResponse.model_validate(tag)

    async def delete_tag(self, tag_id: str, hard_delete: bool = False) -> TagDeleteResult:
        """
        Archive a tag, or remove it with all its assignments when ``hard_delete``.

        Raises:
            NotFoundError: If the tag does not exist
            BadRequestError: If the tag is a system tag
        """
        tag = await self._require_tag(tag_id)
        if tag.is_system:
            raise BadRequestError("System tags cannot be deleted")

        self._log_operation("Deleting tag", tag_id=tag.id, hard_delete=hard_delete)

        if hard_delete:
            async def write() -> None:
                await self.assignments.remove_tag_everywhere(tag.id)
                await self.tags.delete(tag.id)

            await self._execute_db_operation("delete_tag", write())
            event, message = AuditEvent.TAG_DELETED, "Tag permanently deleted"
        else:
            await self._execute_db_operation("archive_tag", self.tags.apply(tag, is_archived=True))
            event, message = AuditEvent.TAG_ARCHIVED, "Tag archived"

        await self._changed()
        await self._audit(event, metadata={"hard_delete": hard_delete}, resource_type="tag", resource_id=tag_id)
        return TagDeleteResult(archived=not hard_delete, message=message)

    # -------------------------------------------------------------------------
    # Client tags
    # -------------------------------------------------------------------------

    async def get_client_tags(self, client_id: str) -> list[TagResponse]:
        await self._require_client(client_id)
        tags = await self.assignments.tags_for_client(client_id)
        return [TagResponse.model_validate(tag) for tag in tags]

    async def _assign(
        self,
        client_id: str,
        tag_ids: list[str],
    ) -> tuple[list[str], list[str], list[TagError]]:
        """
        Assign tags to one client.

        Returns:
            Tuple of (assigned tag ids, skipped tag ids, errors)

        Raises:
            BadRequestError: If several tags of one SINGLE category are requested
        """
        found = await self.tags.get_many_in_organization(tag_ids, self.organization_id)
        errors: list[TagError] = []
        usable: list[Tag] = []
        for tag_id in tag_ids:
            tag = found.get(tag_id)
            if tag is None:
                errors.append(TagError(tag_id=tag_id, error="Tag not found"))
            elif tag.is_archived:
                errors.append(TagError(tag_id=tag_id, error="Tag is archived"))
            elif not tag.is_active:
                errors.append(TagError(tag_id=tag_id, error="Tag is inactive"))
            else:
                usable.append(tag)

        category_ids = {tag.category_id for tag in usable if tag.category_id}
        categories = await self.categories.get_many(category_ids)
        single = {
            category_id
            for category_id, category in categories.items()
            if category.selection_mode == SelectionMode.SINGLE
        }

        requested_per_category: dict[str, int] = defaultdict(int)
        for tag in usable:
            if tag.category_id in single:
                requested_per_category[tag.category_id] += 1
        for category_id, count in requested_per_category.items():
            if count > 1:
                raise BadRequestError(
                    f"Category '{categories[category_id].name}' allows only one tag per client"
                )

        current = await self.assignments.tags_for_client(client_id)
        current_ids = {tag.id for tag in current}
        skipped = [tag.id for tag in usable if tag.id in current_ids]
        to_assign = [tag for tag in usable if tag.id not in current_ids]

        # Assigning into a SINGLE category replaces the client's existing tag there
        replaced = [
            existing.id
            for existing in current
            if not existing.is_system
            and existing.category_id in single
            and any(t.category_id == existing.category_id for t in to_assign)
        ]
        if replaced:
            await self.assignments.remove(client_id, replaced)
        for tag in to_assign:
            await self.assignments.assign(client_id, tag.id, self.actor.user_id)

        return [tag.id for tag in to_assign], skipped, errors

    async def _record_on_timeline(self, client_id: str, title: str, **metadata: Any) -> None:
        await self.timeline.create_system_event(
            client_id,
            EventType.CUSTOM,
            title,
            metadata={"source": "tagging", **metadata},
        )

    async def assign_tags(self, client_id: str, tag_ids: list[str]) -> TagAssignmentResult:
        """
        Raises:
            NotFoundError: If the client is not accessible
            BadRequestError: If several tags of one SINGLE category are requested
        """
        await self._require_client(client_id)
        tag_ids = self._unique_tag_ids(tag_ids)
        self._log_operation("Assigning tags", client_id=client_id, count=len(tag_ids))

        assigned, skipped, errors = await self._execute_db_operation(
            "assign_tags", self._assign(client_id, tag_ids)
        )
        if assigned:
            await self._record_on_timeline(client_id, "Tags assigned", tag_ids=assigned)

        await self._changed([client_id])
        await self._audit(
            AuditEvent.TAGS_ASSIGNED,
            metadata={"assigned": assigned, "skipped": skipped, "failed": len(errors)},
            resource_type="client",
            resource_id=client_id,
        )
        return TagAssignmentResult(
            success=True,
            client_id=client_id,
            assigned_tags=assigned,
            skipped_tags=skipped,
            errors=errors,
            message=f"{len(assigned)} tag(s) assigned",
        )

    async def _remove(self, client_id: str, tag_ids: list[str]) -> tuple[list[str], list[TagError]]:
        current = {tag.id: tag for tag in await self.assignments.tags_for_client(client_id)}
        if any(current[tag_id].is_system for tag_id in tag_ids if tag_id in current):
            raise BadRequestError("System tags cannot be removed")

        removable = [tag_id for tag_id in tag_ids if tag_id in current]
        errors = [
            TagError(tag_id=tag_id, error="Tag is not assigned to this client")
            for tag_id in tag_ids
            if tag_id not in current
        ]
        await self.assignments.remove(client_id, removable)
        return removable, errors

    async def remove_tags(self, client_id: str, tag_ids: list[str]) -> TagAssignmentResult:
        """
        Raises:
            NotFoundError: If the client is not accessible
            BadRequestError: If a system tag is among the tags
        """
        await self._require_client(client_id)
        tag_ids = self._unique_tag_ids(tag_ids)
        self._log_operation("Removing tags", client_id=client_id, count=len(tag_ids))

        removed, errors = await self._execute_db_operation(
            "remove_tags", self._remove(client_id, tag_ids)
        )
        if removed:
            await self._record_on_timeline(client_id, "Tags removed", tag_ids=removed)

        await self._changed([client_id])
        await self._audit(
            AuditEvent.TAGS_REMOVED,
            metadata={"removed": removed, "failed": len(errors)},
            resource_type="client",
            resource_id=client_id,
        )
        return TagAssignmentResult(
            success=True,
            client_id=client_id,
            removed_tags=removed,
            errors=errors,
            message=f"{len(removed)} tag(s) removed",
        )

    async def replace_client_tags(self, client_id: str, tag_ids: list[str]) -> TagAssignmentResult:
        """
        Replace every non-system tag of a client. An empty list clears them.

        Raises:
            NotFoundError: If the client is not accessible
        """
        await self._require_client(client_id)
        tag_ids = self._unique_tag_ids(tag_ids, limit=MAX_REPLACE_TAGS)
        self._log_operation("Replacing client tags", client_id=client_id, count=len(tag_ids))

        async def write() -> tuple[list[str], list[str], list[TagError]]:
            current = await self.assignments.tags_for_client(client_id)
            dropped = [t.id for t in current if not t.is_system and t.id not in tag_ids]
            await self.assignments.remove(client_id, dropped)
            assigned, _, errors = await self._assign(client_id, tag_ids) if tag_ids else ([], [], [])
            return assigned, dropped, errors

        assigned, dropped, errors = await self._execute_db_operation("replace_tags", write())
        await self._record_on_timeline(client_id, "Tags replaced", assigned=assigned, removed=dropped)

        await self._changed([client_id])
        await self._audit(
            AuditEvent.TAGS_REPLACED,
            metadata={"assigned": assigned, "removed": dropped},
            resource_type="client",
            resource_id=client_id,
        )
        message = "All tags removed" if not tag_ids else "Tags replaced"
        return TagAssignmentResult(
            success=True,
            client_id=client_id,
            assigned_tags=assigned,
            removed_tags=dropped,
            errors=errors,
            message=message,
        )

    async def bulk_tag_operation(self, request: BulkTagOperationRequest) -> BulkTagResult:
        """
        Add, remove or replace tags on many clients. Per-client failures
        are reported without stopping the others.

        Raises:
            NotFoundError: If a requested tag does not exist
            BadRequestError: If a system tag would be removed
        """
        client_ids = list(dict.fromkeys(request.client_ids))
        if len(client_ids) > self.max_bulk_clients:
            raise BadRequestError(f"At most {self.max_bulk_clients} clients can be tagged per request")
        tag_ids = self._unique_tag_ids(request.tag_ids)
        self._log_operation(
            "Bulk tag operation",
            tag_operation=request.operation,
            clients=len(client_ids),
            tags=len(tag_ids),
        )

        lookup = tag_ids + ([request.replace_tag_id] if request.replace_tag_id else [])
        found = await self.tags.get_many_in_organization(lookup, self.organization_id)
        if len(found) != len(set(lookup)):
            raise NotFoundError("One or more tags not found")
        removing = tag_ids if request.operation == "REMOVE" else [request.replace_tag_id]
        if any(found[tag_id].is_system for tag_id in removing if tag_id):
            raise BadRequestError("System tags cannot be removed")

        accessible = await self.clients.get_many_accessible(client_ids, self.actor)
        results: list[BulkTagClientResult] = []
        succeeded: list[str] = []
        for client_id in client_ids:
            if client_id not in accessible:
                results.append(BulkTagClientResult(client_id=client_id, success=False, error="Client not found"))
                continue
            try:
                async with self.session.begin_nested():
                    if request.operation == "ADD":
                        await self._assign(client_id, tag_ids)
                    elif request.operation == "REMOVE":
                        await self._remove(client_id, tag_ids)
                    else:
                        await self.assignments.remove(client_id, [request.replace_tag_id])
                        await self._assign(client_id, tag_ids)
            except (ApplicationError, SQLAlchemyError) as e:
                error = e.message if isinstance(e, ApplicationError) else "Database error"
                self._logger.warning(
                    "Bulk tag operation failed for client",
                    extra={"client_id": client_id, "error": str(e)},
                )
                results.append(BulkTagClientResult(client_id=client_id, success=False, error=error))
                continue
            succeeded.append(client_id)
            results.append(BulkTagClientResult(client_id=client_id, success=True))

        await self._changed(succeeded)
        if succeeded:
            await self._audit(
                AuditEvent.TAGS_BULK_OPERATION,
                metadata={
                    "operation": request.operation,
                    "tag_ids": tag_ids,
                    "replace_tag_id": request.replace_tag_id,
                    "processed": len(succeeded),
                    "failed": len(client_ids) - len(succeeded),
                },
                resource_type="tag",
            )
        failed = len(client_ids) - len(succeeded)
        return BulkTagResult(
            success=failed == 0,
            operation=request.operation,
            processed=len(succeeded),
            failed=failed,
            results=results,
            message=f"Operation completed for {len(succeeded)} of {len(client_ids)} client(s)",
        )

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    async def get_tag_statistics(
        self,
        tag_id: str | None = None,
    ) -> TagsOverviewStatistics | TagUsageStatistics:
        """
        Organization-wide tag overview, or usage of a single tag.

        Raises:
            NotFoundError: If ``tag_id`` is given and does not exist
        """
        if tag_id:
            return await self._tag_usage(tag_id)

        org = self.organization_id
        top = await self.assignments.top_tags(org, TOP_TAGS_LIMIT)
        return TagsOverviewStatistics(
            total_tags=await self.tags.count_for_organization(org),
            active_tags=await self.tags.count_for_organization(
                org, Tag.is_active.is_(True), Tag.is_archived.is_(False)
            ),
            archived_tags=await self.tags.count_for_organization(org, Tag.is_archived.is_(True)),
            total_categories=await self.categories.count(TagCategory.organization_id == org),
            total_assignments=await self.assignments.count_for_organization(org),
            top_tags=[
                TopTag(tag_id=tag.id, name=tag.name, color=tag.color, client_count=count)
                for tag, count in top
            ],
        )

    async def _tag_usage(self, tag_id: str) -> TagUsageStatistics:
        tag = await self._require_tag(tag_id)
        now = utc_now()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_ago = now - timedelta(days=7)

        this_week = await self.assignments.count_since(tag.id, week_ago)
        previous_week = await self.assignments.count_between(
            tag.id, now - timedelta(days=14), week_ago
        )
        if this_week > previous_week:
            trend = "up"
        elif this_week < previous_week:
            trend = "down"
        else:
            trend = "stable"

        return TagUsageStatistics(
            tag=TagResponse.model_validate(tag),
            client_count=await self.assignments.client_count(tag.id),
            assignments_today=await self.assignments.count_since(tag.id, start_of_day),
            assignments_this_week=this_week,
            assignments_this_month=await self.assignments.count_since(tag.id, now - timedelta(days=30)),
            trend=trend,
        )
