"""Response schemas shared by the API routers."""

from datetime import date
from typing import Any

from pydantic import BaseModel, Field

from weekplanner.planning.grid import MealPlan, MealSlot, drop_target_id
from weekplanner.planning.nutrition import NutritionTotals
from weekplanner.planning.templates import Template
from weekplanner.store.base import TemplateDeletion


class SlotSchema(BaseModel):
    """One filled cell of the weekly grid."""

    date: date
    meal_type: str = Field(description="breakfast, lunch, dinner or snacks")
    recipe_id: str | None = None
    servings: int = Field(default=1, ge=1)
    target_id: str | None = Field(None, description="Drop target id of the cell")

    @classmethod
    def from_slot(cls, slot: MealSlot) -> "SlotSchema":
        return cls(
            date=slot.key.date,
            meal_type=slot.key.meal_type.value,
            recipe_id=slot.recipe_id,
            servings=slot.servings,
            target_id=drop_target_id(slot.key),
        )


class MealPlanResponse(BaseModel):
    """A user's plan for one week."""

    id: str
    owner_id: str
    week: str
    dates: list[date]
    slots: list[SlotSchema]
    shopping_list_state: Any = None
    template_id: str | None = None
    template_orphaned: bool = False
    version: int

    @classmethod
    def from_plan(cls, plan: MealPlan) -> "MealPlanResponse":
        return cls(
            id=plan.id,
            owner_id=plan.owner_id,
            week=plan.week,
            dates=plan.dates,
            slots=[SlotSchema.from_slot(s) for s in plan.slots],
            shopping_list_state=plan.shopping_list_state,
            template_id=plan.template_id,
            template_orphaned=plan.template_orphaned,
            version=plan.version,
        )


class TemplateSlotSchema(BaseModel):
    day_of_week: str
    meal_type: str
    recipe_id: str


class TemplateResponse(BaseModel):
    """Published template with its rating summary."""

    id: str
    author_id: str
    title: str
    description: str
    tags: list[str]
    difficulty: str | None = None
    image: str | None = None
    source_week: str | None = None
    slots: list[TemplateSlotSchema]
    average_rating: float
    total_ratings: int

    @classmethod
    def from_template(cls, template: Template) -> "TemplateResponse":
        return cls(
            id=template.id,
            author_id=template.author_id,
            title=template.title,
            description=template.description,
            tags=list(template.tags),
            difficulty=template.difficulty,
            image=template.image,
            source_week=template.source_week,
            slots=[
                TemplateSlotSchema(
                    day_of_week=s.day_of_week,
                    meal_type=s.meal_type.value,
                    recipe_id=s.recipe_id,
                )
                for s in template.slots
            ],
            average_rating=round(template.average_rating, 2),
            total_ratings=template.total_ratings,
        )


class TemplateDeletionResponse(BaseModel):
    """Outcome of a template deletion cascade."""

    id: str
    template_id: str
    status: str
    plans_deleted: int
    plans_orphaned: int
    favorites_removed: int
    attempts: int
    error_message: str | None = None

    @classmethod
    def from_deletion(cls, deletion: TemplateDeletion) -> "TemplateDeletionResponse":
        return cls(
            id=deletion.id,
            template_id=deletion.template_id,
            status=deletion.status,
            plans_deleted=deletion.plans_deleted,
            plans_orphaned=deletion.plans_orphaned,
            favorites_removed=deletion.favorites_removed,
            attempts=deletion.attempts,
            error_message=deletion.error_message,
        )


class NutritionSchema(BaseModel):
    """Calories and macros in grams, rounded for display."""

    calories: int = 0
    protein: int = 0
    carbs: int = 0
    fat: int = 0

    @classmethod
    def from_totals(cls, totals: NutritionTotals) -> "NutritionSchema":
        rounded = totals.rounded()
        return cls(
            calories=rounded.calories,
            protein=rounded.protein,
            carbs=rounded.carbs,
            fat=rounded.fat,
        )
