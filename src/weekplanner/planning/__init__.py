"""Pure meal planning core: week arithmetic, slot grid, nutrition and templates."""

from weekplanner.planning.grid import (
    MealPlan,
    MealSlot,
    MealType,
    SlotKey,
    get_slot,
    parse_drop_target,
    parse_slot_key,
    remove_slot,
    set_slot,
    update_servings,
)
from weekplanner.planning.nutrition import (
    NutritionTotals,
    RecipeNutritionSnapshot,
    daily_nutrition,
    slot_nutrition,
    weekly_average,
    weekly_nutrition,
)
from weekplanner.planning.templates import (
    AutoCleared,
    AwaitingUserChoice,
    PlanLookup,
    Template,
    TemplateMetadata,
    TemplateSlot,
    Valid,
)
from weekplanner.planning.weeks import (
    current_week,
    dates_for_week,
    navigation_window,
    offset_week,
    week_distance,
)

__all__ = [
    "AutoCleared",
    "AwaitingUserChoice",
    "MealPlan",
    "MealSlot",
    "MealType",
    "NutritionTotals",
    "PlanLookup",
    "RecipeNutritionSnapshot",
    "SlotKey",
    "Template",
    "TemplateMetadata",
    "TemplateSlot",
    "Valid",
    "current_week",
    "daily_nutrition",
    "dates_for_week",
    "get_slot",
    "navigation_window",
    "offset_week",
    "parse_drop_target",
    "parse_slot_key",
    "remove_slot",
    "set_slot",
    "slot_nutrition",
    "update_servings",
    "week_distance",
    "weekly_average",
    "weekly_nutrition",
]
