"""Meal plan and template persistence backends."""

from weekplanner.store.base import MealPlanStore, TemplateDeletion, TemplateStore
from weekplanner.store.memory import InMemoryMealPlanStore, InMemoryTemplateStore
from weekplanner.store.sql import SqlMealPlanStore, SqlTemplateStore

__all__ = [
    "InMemoryMealPlanStore",
    "InMemoryTemplateStore",
    "MealPlanStore",
    "SqlMealPlanStore",
    "SqlTemplateStore",
    "TemplateDeletion",
    "TemplateStore",
]
