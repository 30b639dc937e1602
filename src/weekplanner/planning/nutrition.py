"""Nutrition roll-ups from per-serving recipe snapshots."""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from weekplanner.planning.grid import MealPlan, MealSlot

DAYS_PER_WEEK = 7


def _number(value: Any) -> float:
    """Coerce a catalog field to a finite float; anything unparseable counts as 0."""
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


@dataclass(frozen=True)
class RecipeNutritionSnapshot:
    """Read-only nutrition facts of a recipe, for its baseline serving count."""

    recipe_id: str
    baseline_servings: int
    calories: float = 0.0
    protein_g: float = 0.0
    carbohydrates_g: float = 0.0
    total_fat_g: float = 0.0

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RecipeNutritionSnapshot":
        """Parse a recipe payload from the catalog (camelCase or snake_case keys)."""
        baseline = _number(data.get("baselineServings") or data.get("servings"))
        return cls(
            recipe_id=str(data.get("id") or data.get("_id") or data.get("recipeId") or ""),
            baseline_servings=max(int(baseline), 1),
            calories=_number(data.get("calories")),
            protein_g=_number(data.get("protein_g")),
            carbohydrates_g=_number(data.get("carbohydrates_g")),
            total_fat_g=_number(data.get("totalFat_g") or data.get("total_fat_g")),
        )


@dataclass(frozen=True)
class NutritionTotals:
    """Calories and macronutrients; unrounded unless produced by rounded()."""

    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0

    def __add__(self, other: "NutritionTotals") -> "NutritionTotals":
        return NutritionTotals(
            calories=self.calories + other.calories,
            protein=self.protein + other.protein,
            carbs=self.carbs + other.carbs,
            fat=self.fat + other.fat,
        )

    def divided(self, divisor: int) -> "NutritionTotals":
        return NutritionTotals(
            calories=self.calories / divisor,
            protein=self.protein / divisor,
            carbs=self.carbs / divisor,
            fat=self.fat / divisor,
        )

    def rounded(self) -> "NutritionTotals":
        """Round each field to the nearest integer for display."""
        return NutritionTotals(
            calories=round(self.calories),
            protein=round(self.protein),
            carbs=round(self.carbs),
            fat=round(self.fat),
        )

    def as_dict(self) -> dict[str, float]:
        return {
            "calories": self.calories,
            "protein": self.protein,
            "carbs": self.carbs,
            "fat": self.fat,
        }


ZERO = NutritionTotals()

SnapshotLookup = Mapping[str, RecipeNutritionSnapshot | None]


def slot_nutrition(slot: MealSlot, snapshot: RecipeNutritionSnapshot | None) -> NutritionTotals:
    """
    Scale a recipe's nutrition by the slot's serving multiplier.

    Unresolved recipes (snapshot is None) contribute zero instead of raising.
    """
    if snapshot is None or slot.recipe_id is None:
        return ZERO

    multiplier = slot.servings / snapshot.baseline_servings
    return NutritionTotals(
        calories=snapshot.calories * multiplier,
        protein=snapshot.protein_g * multiplier,
        carbs=snapshot.carbohydrates_g * multiplier,
        fat=snapshot.total_fat_g * multiplier,
    )


def _lookup(snapshots: SnapshotLookup, slot: MealSlot) -> RecipeNutritionSnapshot | None:
    if slot.recipe_id is None:
        return None
    return snapshots.get(slot.recipe_id)


def daily_nutrition(plan: MealPlan, day: date, snapshots: SnapshotLookup) -> NutritionTotals:
    """Sum slot nutrition over every slot scheduled on one date."""
    total = ZERO
    for slot in plan.slots:
        if slot.key.date == day:
            total = total + slot_nutrition(slot, _lookup(snapshots, slot))
    return total


def weekly_nutrition(plan: MealPlan, snapshots: SnapshotLookup) -> dict[date, NutritionTotals]:
    """Per-date totals for all 7 days of the plan's week, empty days included."""
    return {day: daily_nutrition(plan, day, snapshots) for day in plan.dates}


def weekly_average(plan: MealPlan, snapshots: SnapshotLookup) -> NutritionTotals:
    """
    Average daily intake over the week.

    Always divides by 7, not by the number of populated days, so a sparse week
    reports a low average rather than a per-meal figure. The result is unrounded;
    call rounded() for display.
    """
    total = ZERO
    for day_total in weekly_nutrition(plan, snapshots).values():
        total = total + day_total
    return total.divided(DAYS_PER_WEEK)
