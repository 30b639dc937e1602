"""In-memory store implementations.

Dictionary-backed adapters of the store contracts, used by the test suite and
by `repository_backend=memory`. Not thread-safe; data is lost on restart.
"""

import uuid
from copy import deepcopy
from dataclasses import replace
from datetime import datetime
from typing import Any

from weekplanner.errors import ConflictError, NotFoundError, StaleWriteError
from weekplanner.planning.grid import MealPlan, MealSlot, normalize_slots
from weekplanner.planning.templates import Template, TemplateMetadata, TemplateSlot
from weekplanner.store.base import MealPlanStore, TemplateDeletion, TemplateStore


class InMemoryMealPlanStore(MealPlanStore):
    """Meal plans kept in a dict keyed by plan id."""

    def __init__(self) -> None:
        self._plans: dict[str, MealPlan] = {}

    async def fetch_for_week(self, owner_id: str, week: str) -> MealPlan | None:
        for plan in self._plans.values():
            if plan.owner_id == owner_id and plan.week == week:
                return deepcopy(plan)
        return None

    async def get(self, plan_id: str) -> MealPlan:
        plan = self._plans.get(plan_id)
        if plan is None:
            raise NotFoundError(f"Meal plan {plan_id} not found")
        return deepcopy(plan)

    async def create_for_week(
        self,
        owner_id: str,
        week: str,
        slots: tuple[MealSlot, ...] = (),
        template_id: str | None = None,
    ) -> MealPlan:
        if await self.fetch_for_week(owner_id, week) is not None:
            raise ConflictError(f"Meal plan already exists for {owner_id} in week {week}")

        plan = MealPlan(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            week=week,
            slots=normalize_slots(slots),
            shopping_list_state=[],
            template_id=template_id,
        )
        self._plans[plan.id] = plan
        return deepcopy(plan)

    async def replace_slots(
        self,
        plan_id: str,
        slots: tuple[MealSlot, ...],
        shopping_list_state: Any,
        expected_version: int | None = None,
    ) -> MealPlan:
        current = self._plans.get(plan_id)
        if current is None:
            raise NotFoundError(f"Meal plan {plan_id} not found")
        if expected_version is not None and expected_version != current.version:
            raise StaleWriteError(plan_id, expected_version, current.version)

        updated = replace(
            current,
            slots=normalize_slots(slots),
            shopping_list_state=deepcopy(shopping_list_state),
            version=current.version + 1,
        )
        self._plans[plan_id] = updated
        return deepcopy(updated)

    async def delete(self, plan_id: str) -> None:
        if self._plans.pop(plan_id, None) is None:
            raise NotFoundError(f"Meal plan {plan_id} not found")

    async def list_by_template(self, template_id: str) -> list[MealPlan]:
        return [deepcopy(p) for p in self._plans.values() if p.template_id == template_id]

    async def mark_orphaned(self, plan_ids: list[str]) -> int:
        flagged = 0
        for plan_id in plan_ids:
            plan = self._plans.get(plan_id)
            if plan is not None:
                self._plans[plan_id] = replace(plan, template_orphaned=True)
                flagged += 1
        return flagged


class InMemoryTemplateStore(TemplateStore):
    """Templates, favorites and deletion runs kept in dicts."""

    def __init__(self) -> None:
        self._templates: dict[str, Template] = {}
        self._created_at: dict[str, datetime] = {}
        self._favorites: dict[str, list[str]] = {}
        self._deletions: dict[str, TemplateDeletion] = {}

    async def get(self, template_id: str) -> Template | None:
        template = self._templates.get(template_id)
        return deepcopy(template) if template is not None else None

    async def create(
        self,
        author_id: str,
        metadata: TemplateMetadata,
        slots: tuple[TemplateSlot, ...],
        source_week: str | None = None,
    ) -> Template:
        template = Template(
            id=str(uuid.uuid4()),
            author_id=author_id,
            title=metadata.title or "",
            description=metadata.description or "",
            slots=tuple(slots),
            tags=tuple(metadata.tags),
            difficulty=metadata.difficulty,
            image=metadata.image,
            source_week=source_week,
        )
        self._templates[template.id] = template
        self._created_at[template.id] = datetime.utcnow()
        return deepcopy(template)

    async def list_templates(self, search: str | None = None, tags: list[str] | None = None) -> list[Template]:
        results = []
        for template in self._templates.values():
            if search and search.lower() not in template.title.lower():
                continue
            if tags and not set(tags) & set(template.tags):
                continue
            results.append(deepcopy(template))
        results.sort(key=lambda t: self._created_at[t.id], reverse=True)
        return results

    async def delete(self, template_id: str) -> bool:
        self._created_at.pop(template_id, None)
        return self._templates.pop(template_id, None) is not None

    async def rate(self, template_id: str, user_id: str, value: int) -> Template:
        template = self._templates.get(template_id)
        if template is None:
            raise NotFoundError(f"Template {template_id} not found")
        ratings = dict(template.ratings)
        ratings[user_id] = value
        self._templates[template_id] = replace(template, ratings=ratings)
        return deepcopy(self._templates[template_id])

    async def add_favorite(self, user_id: str, template_id: str) -> None:
        favorites = self._favorites.setdefault(user_id, [])
        if template_id in favorites:
            raise ConflictError(f"Template {template_id} is already in favorites")
        favorites.append(template_id)

    async def remove_favorite(self, user_id: str, template_id: str) -> bool:
        favorites = self._favorites.get(user_id, [])
        if template_id not in favorites:
            return False
        favorites.remove(template_id)
        return True

    async def list_favorites(self, user_id: str) -> list[Template]:
        return [
            deepcopy(self._templates[template_id])
            for template_id in self._favorites.get(user_id, [])
            if template_id in self._templates
        ]

    async def remove_from_all_favorites(self, template_id: str) -> int:
        removed = 0
        for favorites in self._favorites.values():
            if template_id in favorites:
                favorites.remove(template_id)
                removed += 1
        return removed

    async def save_deletion(self, deletion: TemplateDeletion) -> TemplateDeletion:
        self._deletions[deletion.id] = deepcopy(deletion)
        return deletion

    async def get_deletion(self, deletion_id: str) -> TemplateDeletion | None:
        deletion = self._deletions.get(deletion_id)
        return deepcopy(deletion) if deletion is not None else None
