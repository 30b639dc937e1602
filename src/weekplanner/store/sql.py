"""SQLAlchemy-backed store implementations."""

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from weekplanner import models
from weekplanner.errors import ConflictError, NotFoundError, StaleWriteError, TransientIOError
from weekplanner.logging_config import get_logger
from weekplanner.planning.grid import MealPlan, MealSlot, SlotKey, normalize_slots, parse_meal_type
from weekplanner.planning.templates import Template, TemplateMetadata, TemplateSlot
from weekplanner.store.base import MealPlanStore, TemplateDeletion, TemplateStore

logger = get_logger(__name__)


@asynccontextmanager
async def storage_errors(session: AsyncSession, operation: str) -> AsyncIterator[None]:
    """Roll back and translate driver-level failures into TransientIOError."""
    try:
        yield
    except (OperationalError, OSError) as e:
        await session.rollback()
        logger.error(f"Storage failure during {operation}: {e}")
        raise TransientIOError(f"Storage unavailable during {operation}") from e
    except DBAPIError as e:
        await session.rollback()
        if e.connection_invalidated:
            logger.error(f"Connection lost during {operation}: {e}")
            raise TransientIOError(f"Storage connection lost during {operation}") from e
        raise


async def ensure_user(session: AsyncSession, user_id: str) -> models.User:
    """Get existing user or create a placeholder row for foreign keys."""
    user = await session.get(models.User, user_id)
    if user is None:
        user = models.User(id=user_id)
        session.add(user)
        await session.flush()
    return user


# =============================================================================
# Row <-> domain conversion
# =============================================================================


def _plan_from_row(row: models.MealPlan) -> MealPlan:
    return MealPlan(
        id=row.id,
        owner_id=row.owner_id,
        week=row.week,
        slots=normalize_slots(
            [
                MealSlot(
                    key=SlotKey(date=s.slot_date, meal_type=parse_meal_type(s.meal_type)),
                    recipe_id=s.recipe_id,
                    servings=s.servings,
                )
                for s in row.slots
            ]
        ),
        shopping_list_state=row.shopping_list_state if row.shopping_list_state is not None else [],
        template_id=row.template_id,
        template_orphaned=row.template_orphaned,
        version=row.version,
    )


def _slot_rows(plan_id: str, slots: tuple[MealSlot, ...]) -> list[models.MealPlanSlot]:
    return [
        models.MealPlanSlot(
            meal_plan_id=plan_id,
            slot_date=slot.key.date,
            meal_type=slot.key.meal_type.value,
            recipe_id=slot.recipe_id,
            servings=slot.servings,
        )
        for slot in normalize_slots(slots)
    ]


def _template_from_row(row: models.MealTemplate) -> Template:
    return Template(
        id=row.id,
        author_id=row.author_id,
        title=row.title,
        description=row.description,
        slots=tuple(
            TemplateSlot(
                day_of_week=s.day_of_week,
                meal_type=parse_meal_type(s.meal_type),
                recipe_id=s.recipe_id,
            )
            for s in row.slots
        ),
        tags=tuple(row.tags or ()),
        difficulty=row.difficulty,
        image=row.image,
        source_week=row.source_week,
        ratings={r.user_id: r.value for r in row.ratings},
    )


def _deletion_from_row(row: models.TemplateDeletionRun) -> TemplateDeletion:
    return TemplateDeletion(
        id=row.id,
        template_id=row.template_id,
        author_id=row.author_id,
        status=row.status,
        plans_deleted=row.plans_deleted,
        plans_orphaned=row.plans_orphaned,
        favorites_removed=row.favorites_removed,
        attempts=row.attempts,
        error_message=row.error_message,
        started_at=row.started_at,
        completed_at=row.completed_at,
    )


# =============================================================================
# Meal plans
# =============================================================================


class SqlMealPlanStore(MealPlanStore):
    """Meal plan persistence on an AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _plan_query(self):
        return select(models.MealPlan).options(selectinload(models.MealPlan.slots))

    async def _load(self, plan_id: str) -> models.MealPlan:
        result = await self.session.execute(
            self._plan_query()
            .where(models.MealPlan.id == plan_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"Meal plan {plan_id} not found")
        return row

    async def fetch_for_week(self, owner_id: str, week: str) -> MealPlan | None:
        async with storage_errors(self.session, "fetch_for_week"):
            result = await self.session.execute(
                self._plan_query().where(
                    models.MealPlan.owner_id == owner_id,
                    models.MealPlan.week == week,
                )
            )
            row = result.scalar_one_or_none()
        return _plan_from_row(row) if row is not None else None

    async def get(self, plan_id: str) -> MealPlan:
        async with storage_errors(self.session, "get"):
            row = await self._load(plan_id)
        return _plan_from_row(row)

    async def create_for_week(
        self,
        owner_id: str,
        week: str,
        slots: tuple[MealSlot, ...] = (),
        template_id: str | None = None,
    ) -> MealPlan:
        plan_id = str(uuid.uuid4())
        async with storage_errors(self.session, "create_for_week"):
            existing = await self.session.execute(
                select(models.MealPlan.id).where(
                    models.MealPlan.owner_id == owner_id,
                    models.MealPlan.week == week,
                )
            )
            if existing.scalar_one_or_none() is not None:
                raise ConflictError(f"Meal plan already exists for {owner_id} in week {week}")

            await ensure_user(self.session, owner_id)
            self.session.add(
                models.MealPlan(
                    id=plan_id,
                    owner_id=owner_id,
                    week=week,
                    shopping_list_state=[],
                    template_id=template_id,
                    template_orphaned=False,
                    version=0,
                )
            )
            self.session.add_all(_slot_rows(plan_id, slots))
            try:
                await self.session.commit()
            except IntegrityError as e:
                # Lost a race against a concurrent create for the same week
                await self.session.rollback()
                raise ConflictError(
                    f"Meal plan already exists for {owner_id} in week {week}"
                ) from e
            row = await self._load(plan_id)

        logger.info(f"Created meal plan {plan_id} for {owner_id} in {week}")
        return _plan_from_row(row)

    async def replace_slots(
        self,
        plan_id: str,
        slots: tuple[MealSlot, ...],
        shopping_list_state: Any,
        expected_version: int | None = None,
    ) -> MealPlan:
        async with storage_errors(self.session, "replace_slots"):
            stmt = update(models.MealPlan).where(models.MealPlan.id == plan_id)
            if expected_version is not None:
                stmt = stmt.where(models.MealPlan.version == expected_version)
            result = await self.session.execute(
                stmt.values(
                    version=models.MealPlan.version + 1,
                    shopping_list_state=shopping_list_state,
                    updated_at=datetime.utcnow(),
                )
            )

            if result.rowcount == 0:
                await self.session.rollback()
                current = await self.session.execute(
                    select(models.MealPlan.version).where(models.MealPlan.id == plan_id)
                )
                actual = current.scalar_one_or_none()
                if actual is None:
                    raise NotFoundError(f"Meal plan {plan_id} not found")
                logger.warning(
                    f"Rejected stale write to {plan_id}: expected v{expected_version}, stored v{actual}"
                )
                raise StaleWriteError(plan_id, expected_version, actual)

            await self.session.execute(
                delete(models.MealPlanSlot).where(models.MealPlanSlot.meal_plan_id == plan_id)
            )
            self.session.add_all(_slot_rows(plan_id, slots))
            await self.session.commit()
            row = await self._load(plan_id)

        return _plan_from_row(row)

    async def delete(self, plan_id: str) -> None:
        async with storage_errors(self.session, "delete"):
            row = await self._load(plan_id)
            await self.session.delete(row)
            await self.session.commit()
        logger.info(f"Deleted meal plan {plan_id}")

    async def list_by_template(self, template_id: str) -> list[MealPlan]:
        async with storage_errors(self.session, "list_by_template"):
            result = await self.session.execute(
                self._plan_query().where(models.MealPlan.template_id == template_id)
            )
            rows = result.scalars().all()
        return [_plan_from_row(row) for row in rows]

    async def mark_orphaned(self, plan_ids: list[str]) -> int:
        if not plan_ids:
            return 0
        async with storage_errors(self.session, "mark_orphaned"):
            result = await self.session.execute(
                update(models.MealPlan)
                .where(models.MealPlan.id.in_(plan_ids))
                .values(template_orphaned=True)
            )
            await self.session.commit()
        return result.rowcount


# =============================================================================
# Templates
# =============================================================================


class SqlTemplateStore(TemplateStore):
    """Template catalog persistence on an AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _template_query(self):
        return select(models.MealTemplate).options(
            selectinload(models.MealTemplate.slots),
            selectinload(models.MealTemplate.ratings),
        )

    async def _load(self, template_id: str) -> models.MealTemplate | None:
        result = await self.session.execute(
            self._template_query()
            .where(models.MealTemplate.id == template_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get(self, template_id: str) -> Template | None:
        async with storage_errors(self.session, "get_template"):
            row = await self._load(template_id)
        return _template_from_row(row) if row is not None else None

    async def create(
        self,
        author_id: str,
        metadata: TemplateMetadata,
        slots: tuple[TemplateSlot, ...],
        source_week: str | None = None,
    ) -> Template:
        template_id = str(uuid.uuid4())
        async with storage_errors(self.session, "create_template"):
            await ensure_user(self.session, author_id)
            row = models.MealTemplate(
                id=template_id,
                author_id=author_id,
                title=metadata.title,
                description=metadata.description,
                tags=list(metadata.tags),
                difficulty=metadata.difficulty,
                image=metadata.image,
                source_week=source_week,
            )
            row.slots = [
                models.MealTemplateSlot(
                    day_of_week=slot.day_of_week,
                    meal_type=slot.meal_type.value,
                    recipe_id=slot.recipe_id,
                )
                for slot in slots
            ]
            self.session.add(row)
            await self.session.commit()
            loaded = await self._load(template_id)

        logger.info(f"Created template {template_id} '{metadata.title}' with {len(slots)} slots")
        return _template_from_row(loaded)

    async def list_templates(self, search: str | None = None, tags: list[str] | None = None) -> list[Template]:
        query = self._template_query().order_by(models.MealTemplate.created_at.desc())
        if search:
            query = query.where(func.lower(models.MealTemplate.title).contains(search.lower()))

        async with storage_errors(self.session, "list_templates"):
            result = await self.session.execute(query)
            rows = result.scalars().all()

        templates = [_template_from_row(row) for row in rows]
        # Tags live in a JSON column; filter portably in Python
        if tags:
            wanted = set(tags)
            templates = [t for t in templates if wanted & set(t.tags)]
        return templates

    async def delete(self, template_id: str) -> bool:
        async with storage_errors(self.session, "delete_template"):
            row = await self._load(template_id)
            if row is None:
                return False
            await self.session.delete(row)
            await self.session.commit()
        return True

    async def rate(self, template_id: str, user_id: str, value: int) -> Template:
        async with storage_errors(self.session, "rate_template"):
            row = await self._load(template_id)
            if row is None:
                raise NotFoundError(f"Template {template_id} not found")

            await self.session.execute(
                delete(models.TemplateRating).where(
                    models.TemplateRating.template_id == template_id,
                    models.TemplateRating.user_id == user_id,
                )
            )
            self.session.add(
                models.TemplateRating(template_id=template_id, user_id=user_id, value=value)
            )
            await self.session.commit()
            loaded = await self._load(template_id)
        return _template_from_row(loaded)

    async def add_favorite(self, user_id: str, template_id: str) -> None:
        async with storage_errors(self.session, "add_favorite"):
            existing = await self.session.execute(
                select(models.FavoriteTemplate.id).where(
                    models.FavoriteTemplate.user_id == user_id,
                    models.FavoriteTemplate.template_id == template_id,
                )
            )
            if existing.scalar_one_or_none() is not None:
                raise ConflictError(f"Template {template_id} is already in favorites")

            await ensure_user(self.session, user_id)
            self.session.add(models.FavoriteTemplate(user_id=user_id, template_id=template_id))
            await self.session.commit()

    async def remove_favorite(self, user_id: str, template_id: str) -> bool:
        async with storage_errors(self.session, "remove_favorite"):
            result = await self.session.execute(
                delete(models.FavoriteTemplate).where(
                    models.FavoriteTemplate.user_id == user_id,
                    models.FavoriteTemplate.template_id == template_id,
                )
            )
            await self.session.commit()
        return result.rowcount > 0

    async def list_favorites(self, user_id: str) -> list[Template]:
        async with storage_errors(self.session, "list_favorites"):
            result = await self.session.execute(
                self._template_query()
                .join(
                    models.FavoriteTemplate,
                    models.FavoriteTemplate.template_id == models.MealTemplate.id,
                )
                .where(models.FavoriteTemplate.user_id == user_id)
                .order_by(models.FavoriteTemplate.created_at)
            )
            rows = result.scalars().all()
        return [_template_from_row(row) for row in rows]

    async def remove_from_all_favorites(self, template_id: str) -> int:
        async with storage_errors(self.session, "remove_from_all_favorites"):
            result = await self.session.execute(
                delete(models.FavoriteTemplate).where(
                    models.FavoriteTemplate.template_id == template_id
                )
            )
            await self.session.commit()
        return result.rowcount

    async def save_deletion(self, deletion: TemplateDeletion) -> TemplateDeletion:
        async with storage_errors(self.session, "save_deletion"):
            row = await self.session.get(models.TemplateDeletionRun, deletion.id)
            if row is None:
                row = models.TemplateDeletionRun(
                    id=deletion.id,
                    template_id=deletion.template_id,
                    author_id=deletion.author_id,
                )
                self.session.add(row)
            row.status = deletion.status
            row.plans_deleted = deletion.plans_deleted
            row.plans_orphaned = deletion.plans_orphaned
            row.favorites_removed = deletion.favorites_removed
            row.attempts = deletion.attempts
            row.error_message = deletion.error_message
            row.started_at = deletion.started_at or datetime.utcnow()
            row.completed_at = deletion.completed_at
            await self.session.commit()
        return deletion

    async def get_deletion(self, deletion_id: str) -> TemplateDeletion | None:
        async with storage_errors(self.session, "get_deletion"):
            row = await self.session.get(
                models.TemplateDeletionRun, deletion_id, populate_existing=True
            )
        return _deletion_from_row(row) if row is not None else None
