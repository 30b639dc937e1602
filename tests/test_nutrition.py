"""Tests for nutrition aggregation."""

from datetime import date

import pytest

from weekplanner.planning.grid import MealPlan, MealSlot, MealType, SlotKey
from weekplanner.planning.nutrition import (
    NutritionTotals,
    RecipeNutritionSnapshot,
    daily_nutrition,
    slot_nutrition,
    weekly_average,
    weekly_nutrition,
)
from weekplanner.recipes.client import InMemoryRecipeCatalog
from weekplanner.services.nutrition import empty_week_nutrition, nutrition_for_plan

MONDAY = date(2025, 7, 7)


@pytest.fixture
def snapshot_map(sample_snapshots):
    return {s.recipe_id: s for s in sample_snapshots}


class TestRecipeNutritionSnapshot:
    """Tests for parsing catalog payloads."""

    def test_parse_camel_case_payload(self, mock_recipe_response):
        snapshot = RecipeNutritionSnapshot.from_api_response(mock_recipe_response)

        assert snapshot.recipe_id == "lasagne"
        assert snapshot.baseline_servings == 4
        assert snapshot.calories == 800
        assert snapshot.total_fat_g == 32

    def test_missing_fields_default_to_zero(self):
        snapshot = RecipeNutritionSnapshot.from_api_response({"id": "x"})

        assert snapshot.baseline_servings == 1
        assert snapshot.calories == 0
        assert snapshot.protein_g == 0

    def test_non_numeric_fields_default_to_zero(self):
        snapshot = RecipeNutritionSnapshot.from_api_response(
            {"id": "x", "calories": "lots", "protein_g": [12], "totalFat_g": "nan", "servings": "four"}
        )

        assert snapshot.baseline_servings == 1
        assert snapshot.calories == 0
        assert snapshot.protein_g == 0
        assert snapshot.total_fat_g == 0

    def test_numeric_strings_are_accepted(self):
        snapshot = RecipeNutritionSnapshot.from_api_response({"id": "x", "calories": "350.5", "servings": "2"})

        assert snapshot.calories == 350.5
        assert snapshot.baseline_servings == 2


class TestSlotNutrition:
    """Tests for per-slot scaling."""

    def test_scales_by_serving_multiplier(self, snapshot_map):
        slot = MealSlot(SlotKey(MONDAY, MealType.DINNER), "lasagne", servings=2)
        totals = slot_nutrition(slot, snapshot_map["lasagne"])

        assert totals.calories == 400
        assert totals.protein == 24
        assert totals.carbs == 40
        assert totals.fat == 16

    def test_unresolved_recipe_contributes_zero(self):
        slot = MealSlot(SlotKey(MONDAY, MealType.DINNER), "unknown", servings=3)
        assert slot_nutrition(slot, None) == NutritionTotals()


class TestDailyAndWeekly:
    """Tests for per-day and weekly roll-ups."""

    def test_daily_sum(self, filled_plan, snapshot_map):
        monday = daily_nutrition(filled_plan, MONDAY, snapshot_map)

        assert monday.calories == 1800
        assert monday.protein == 59

    def test_weekly_map_has_all_seven_days(self, filled_plan, snapshot_map):
        days = weekly_nutrition(filled_plan, snapshot_map)

        assert list(days) == filled_plan.dates
        assert days[date(2025, 7, 9)].calories == 150
        assert days[date(2025, 7, 13)] == NutritionTotals()

    def test_average_divides_by_seven(self, empty_plan, snapshot_map):
        plan = MealPlan(
            id=empty_plan.id,
            owner_id=empty_plan.owner_id,
            week=empty_plan.week,
            slots=(MealSlot(SlotKey(MONDAY, MealType.BREAKFAST), "porridge", 1),),
        )
        average = weekly_average(plan, snapshot_map)

        assert average.calories == 200
        assert average.protein == 5
        assert average.carbs == 30
        assert average.fat == 6

    def test_average_is_unrounded_until_display(self, filled_plan, snapshot_map):
        average = weekly_average(filled_plan, snapshot_map)

        assert average.calories == pytest.approx(1950 / 7)
        assert average.rounded().calories == 279

    def test_empty_plan_average_is_zero(self, empty_plan):
        assert weekly_average(empty_plan, {}) == NutritionTotals()

    def test_unresolved_slots_are_skipped(self, filled_plan, snapshot_map):
        partial = {k: v for k, v in snapshot_map.items() if k != "porridge"}
        monday = daily_nutrition(filled_plan, MONDAY, partial)
        assert monday.calories == 400


class TestNutritionService:
    """Tests for the weekly nutrition view used by the API."""

    @pytest.mark.asyncio
    async def test_view_matches_pure_aggregator(self, filled_plan, recipe_catalog, snapshot_map):
        view = await nutrition_for_plan(filled_plan, recipe_catalog)

        assert view.days == weekly_nutrition(filled_plan, snapshot_map)
        assert view.average == weekly_average(filled_plan, snapshot_map)
        assert view.unresolved == ()

    @pytest.mark.asyncio
    async def test_view_reports_unresolved_recipes(self, filled_plan, sample_snapshots):
        catalog = InMemoryRecipeCatalog([s for s in sample_snapshots if s.recipe_id != "salad"])
        view = await nutrition_for_plan(filled_plan, catalog)

        assert view.unresolved == ("salad",)
        assert view.days[date(2025, 7, 9)] == NutritionTotals()

    def test_empty_week_view(self):
        view = empty_week_nutrition("2025-W28")

        assert len(view.days) == 7
        assert view.average == NutritionTotals()
