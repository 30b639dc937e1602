"""Weekly nutrition view: resolves recipe snapshots, then runs the pure aggregator."""

import asyncio
from dataclasses import dataclass
from datetime import date

from weekplanner.logging_config import get_logger
from weekplanner.planning.grid import MealPlan
from weekplanner.planning.nutrition import (
    NutritionTotals,
    RecipeNutritionSnapshot,
    weekly_average,
    weekly_nutrition,
)
from weekplanner.planning.weeks import dates_for_week
from weekplanner.recipes.client import RecipeCatalog

logger = get_logger(__name__)


@dataclass(frozen=True)
class WeeklyNutrition:
    """Per-date totals plus the 7-day average, both unrounded."""

    week: str
    days: dict[date, NutritionTotals]
    average: NutritionTotals
    unresolved: tuple[str, ...] = ()


async def resolve_snapshots(
    plan: MealPlan,
    catalog: RecipeCatalog,
) -> dict[str, RecipeNutritionSnapshot | None]:
    """Fetch the snapshot of every distinct recipe in a plan concurrently."""
    recipe_ids = sorted({s.recipe_id for s in plan.slots if s.recipe_id is not None})
    if not recipe_ids:
        return {}
    results = await asyncio.gather(*(catalog.get_recipe(rid) for rid in recipe_ids))
    return dict(zip(recipe_ids, results))


async def nutrition_for_plan(plan: MealPlan, catalog: RecipeCatalog) -> WeeklyNutrition:
    """Compute the weekly view of a plan; unknown recipes count as zero."""
    snapshots = await resolve_snapshots(plan, catalog)
    unresolved = tuple(rid for rid, snapshot in snapshots.items() if snapshot is None)
    if unresolved:
        logger.info(f"{len(unresolved)} recipes in plan {plan.id} could not be resolved")
    return WeeklyNutrition(
        week=plan.week,
        days=weekly_nutrition(plan, snapshots),
        average=weekly_average(plan, snapshots),
        unresolved=unresolved,
    )


def empty_week_nutrition(week: str) -> WeeklyNutrition:
    """Nutrition view for a week without a plan: zeros on every day."""
    zero = NutritionTotals()
    return WeeklyNutrition(
        week=week,
        days={day: zero for day in dates_for_week(week)},
        average=zero,
    )
