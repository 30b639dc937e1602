"""FastAPI dependencies wiring stores and services together."""

from collections.abc import Callable
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from weekplanner.config import get_settings
from weekplanner.database import get_db
from weekplanner.planning.weeks import current_week
from weekplanner.recipes.client import HttpRecipeCatalog, InMemoryRecipeCatalog, RecipeCatalog
from weekplanner.services.assignment import AssignmentController, PlanWriteQueue
from weekplanner.services.lifecycle import TemplateLifecycleManager
from weekplanner.store.base import MealPlanStore, TemplateStore
from weekplanner.store.memory import InMemoryMealPlanStore, InMemoryTemplateStore
from weekplanner.store.sql import SqlMealPlanStore, SqlTemplateStore


# =============================================================================
# Process-wide singletons
# =============================================================================


@lru_cache
def get_memory_plan_store() -> InMemoryMealPlanStore:
    return InMemoryMealPlanStore()


@lru_cache
def get_memory_template_store() -> InMemoryTemplateStore:
    return InMemoryTemplateStore()


@lru_cache
def get_write_queue() -> PlanWriteQueue:
    """One write queue per process so every request shares the per-plan locks."""
    return PlanWriteQueue()


@lru_cache
def get_recipe_catalog() -> RecipeCatalog:
    if get_settings().uses_memory_backend:
        return InMemoryRecipeCatalog()
    return HttpRecipeCatalog()


def get_clock() -> Callable[[], str]:
    """Source of the current WeekId."""
    return current_week


# =============================================================================
# Per-request stores and services
# =============================================================================


def get_plan_store(db: AsyncSession = Depends(get_db)) -> MealPlanStore:
    if get_settings().uses_memory_backend:
        return get_memory_plan_store()
    return SqlMealPlanStore(db)


def get_template_store(db: AsyncSession = Depends(get_db)) -> TemplateStore:
    if get_settings().uses_memory_backend:
        return get_memory_template_store()
    return SqlTemplateStore(db)


def get_lifecycle(
    plans: MealPlanStore = Depends(get_plan_store),
    templates: TemplateStore = Depends(get_template_store),
    clock: Callable[[], str] = Depends(get_clock),
) -> TemplateLifecycleManager:
    return TemplateLifecycleManager(plans, templates, clock=clock)


def get_assignment_controller(
    plans: MealPlanStore = Depends(get_plan_store),
    queue: PlanWriteQueue = Depends(get_write_queue),
) -> AssignmentController:
    return AssignmentController(plans, queue=queue)
