"""Stateful services wrapping the pure planning core."""

from weekplanner.services.assignment import AssignmentController, PlanWriteQueue
from weekplanner.services.lifecycle import TemplateLifecycleManager
from weekplanner.services.nutrition import (
    WeeklyNutrition,
    empty_week_nutrition,
    nutrition_for_plan,
    resolve_snapshots,
)

__all__ = [
    "AssignmentController",
    "PlanWriteQueue",
    "TemplateLifecycleManager",
    "WeeklyNutrition",
    "empty_week_nutrition",
    "nutrition_for_plan",
    "resolve_snapshots",
]
