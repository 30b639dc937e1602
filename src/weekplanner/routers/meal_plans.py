"""API routes for weekly meal plans and slot editing."""

from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from weekplanner.dependencies import (
    get_assignment_controller,
    get_lifecycle,
    get_recipe_catalog,
)
from weekplanner.errors import ValidationError
from weekplanner.logging_config import LoggingContext, get_logger
from weekplanner.planning.grid import MealSlot, parse_slot_key
from weekplanner.planning.templates import AutoCleared, AwaitingUserChoice
from weekplanner.recipes.client import RecipeCatalog
from weekplanner.schemas import MealPlanResponse, NutritionSchema, SlotSchema
from weekplanner.services.assignment import AssignmentController
from weekplanner.services.lifecycle import TemplateLifecycleManager
from weekplanner.services.nutrition import empty_week_nutrition, nutrition_for_plan

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/meal-plans", tags=["meal-plans"])

UserId = Annotated[str, Query(description="Calling user's ID")]


# =============================================================================
# Request/Response Schemas
# =============================================================================


class WeekCreateRequest(BaseModel):
    """Request to start an empty plan for a week."""

    week: str = Field(description="ISO week, e.g. 2025-W28")


class MealPlanReplaceRequest(BaseModel):
    """Full replacement of a plan's slots and shopping-list state."""

    slots: list[SlotSchema] = Field(default_factory=list)
    shopping_list_state: Any = Field(default_factory=list)
    expected_version: int | None = Field(None, description="Version the client last saw")


class SlotKeyRequest(BaseModel):
    """Address of one grid cell."""

    date: date
    meal_type: str


class AssignRequest(SlotKeyRequest):
    """Put a recipe into a cell."""

    recipe_id: str
    expected_version: int | None = None


class ServingsRequest(SlotKeyRequest):
    """Change a cell's servings, either by a step or to an explicit value."""

    delta: int | None = Field(None, description="Step to add, e.g. +1 or -1")
    servings: int | None = Field(None, description="Explicit new value, must be >= 1")


class DropRequest(BaseModel):
    """Drag-and-drop of a recipe onto a grid cell."""

    recipe_id: str
    target_id: str = Field(description="slot-YYYY-MM-DD-<mealType>")


class WeekLookupResponse(BaseModel):
    """Result of loading a week: the plan plus its template binding status."""

    week: str
    status: str = Field(description="empty, valid, awaiting_user_choice or auto_cleared")
    plan: MealPlanResponse | None = None
    template_id: str | None = None
    message: str | None = None


class WeeklyNutritionResponse(BaseModel):
    """Per-date nutrition and the 7-day average."""

    week: str
    days: dict[str, NutritionSchema]
    average: NutritionSchema
    unresolved_recipes: list[str] = Field(default_factory=list)


# =============================================================================
# Week-level endpoints
# =============================================================================


@router.get("/week", response_model=WeekLookupResponse)
async def get_week_plan(
    user_id: UserId = "default-user",
    week: Annotated[str | None, Query(description="ISO week; defaults to the current week")] = None,
    lifecycle: TemplateLifecycleManager = Depends(get_lifecycle),
) -> WeekLookupResponse:
    """
    Load the user's plan for a week.

    If the plan was copied from a template that has since been deleted, a
    current-week plan is returned with status awaiting_user_choice, and a plan
    in any other week is removed and reported as auto_cleared.
    """
    week = week or lifecycle.current_week()
    with LoggingContext(user_id=user_id, week=week):
        result = await lifecycle.fetch_for_week(user_id, week)

    if result is None:
        return WeekLookupResponse(week=week, status="empty")
    if isinstance(result, AutoCleared):
        return WeekLookupResponse(
            week=week,
            status=result.status,
            template_id=result.template_id,
            message="The template this plan was copied from was deleted; the plan was removed.",
        )
    if isinstance(result, AwaitingUserChoice):
        return WeekLookupResponse(
            week=week,
            status=result.status,
            plan=MealPlanResponse.from_plan(result.plan),
            template_id=result.template_id,
            message="The template this plan was copied from was deleted. "
            "Delete this plan to choose a new one.",
        )
    return WeekLookupResponse(
        week=week,
        status=result.status,
        plan=MealPlanResponse.from_plan(result.plan),
        template_id=result.plan.template_id,
    )


@router.post("/week", response_model=MealPlanResponse, status_code=status.HTTP_201_CREATED)
async def create_week_plan(
    request: WeekCreateRequest,
    user_id: UserId = "default-user",
    lifecycle: TemplateLifecycleManager = Depends(get_lifecycle),
) -> MealPlanResponse:
    """Create an empty plan for a week. Fails with 409 if one already exists."""
    plan = await lifecycle.create_for_week(user_id, request.week)
    return MealPlanResponse.from_plan(plan)


@router.get("/nutrition", response_model=WeeklyNutritionResponse)
async def get_weekly_nutrition(
    user_id: UserId = "default-user",
    week: Annotated[str | None, Query(description="ISO week; defaults to the current week")] = None,
    lifecycle: TemplateLifecycleManager = Depends(get_lifecycle),
    catalog: RecipeCatalog = Depends(get_recipe_catalog),
) -> WeeklyNutritionResponse:
    """Per-date nutrition for a week, computed by the same aggregator as the plan view."""
    week = week or lifecycle.current_week()
    result = await lifecycle.fetch_for_week(user_id, week)

    if result is None or isinstance(result, AutoCleared):
        summary = empty_week_nutrition(week)
    else:
        summary = await nutrition_for_plan(result.plan, catalog)
    return WeeklyNutritionResponse(
        week=summary.week,
        days={day.isoformat(): NutritionSchema.from_totals(t) for day, t in summary.days.items()},
        average=NutritionSchema.from_totals(summary.average),
        unresolved_recipes=list(summary.unresolved),
    )


# =============================================================================
# Plan-level endpoints
# =============================================================================


@router.put("/{plan_id}", response_model=MealPlanResponse)
async def replace_meal_plan(
    plan_id: str,
    request: MealPlanReplaceRequest,
    user_id: UserId = "default-user",
    controller: AssignmentController = Depends(get_assignment_controller),
) -> MealPlanResponse:
    """Replace every slot and the shopping-list state of a plan."""
    slots = [
        MealSlot(
            key=parse_slot_key(s.date, s.meal_type),
            recipe_id=s.recipe_id,
            servings=s.servings,
        )
        for s in request.slots
    ]
    plan = await controller.replace_plan(
        plan_id,
        slots,
        request.shopping_list_state,
        owner_id=user_id,
        expected_version=request.expected_version,
    )
    return MealPlanResponse.from_plan(plan)


@router.delete("/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_meal_plan(
    plan_id: str,
    user_id: UserId = "default-user",
    lifecycle: TemplateLifecycleManager = Depends(get_lifecycle),
) -> None:
    """Delete a plan. This is how an orphaned current-week plan is resolved."""
    await lifecycle.delete_plan(plan_id, user_id)


@router.post("/{plan_id}/slots", response_model=MealPlanResponse)
async def assign_slot(
    plan_id: str,
    request: AssignRequest,
    user_id: UserId = "default-user",
    controller: AssignmentController = Depends(get_assignment_controller),
) -> MealPlanResponse:
    """Assign a recipe to a slot at one serving."""
    key = parse_slot_key(request.date, request.meal_type)
    plan = await controller.assign(
        plan_id,
        request.recipe_id,
        key,
        owner_id=user_id,
        expected_version=request.expected_version,
    )
    return MealPlanResponse.from_plan(plan)


@router.delete("/{plan_id}/slots", response_model=MealPlanResponse)
async def clear_slot(
    plan_id: str,
    slot_date: Annotated[date, Query(alias="date")],
    meal_type: Annotated[str, Query()],
    user_id: UserId = "default-user",
    controller: AssignmentController = Depends(get_assignment_controller),
) -> MealPlanResponse:
    """Remove whatever recipe sits in a slot."""
    key = parse_slot_key(slot_date, meal_type)
    plan = await controller.unassign(plan_id, key, owner_id=user_id)
    return MealPlanResponse.from_plan(plan)


@router.post("/{plan_id}/slots/servings", response_model=MealPlanResponse)
async def update_slot_servings(
    plan_id: str,
    request: ServingsRequest,
    user_id: UserId = "default-user",
    controller: AssignmentController = Depends(get_assignment_controller),
) -> MealPlanResponse:
    """Step servings by delta (steps below 1 are ignored) or set them outright."""
    key = parse_slot_key(request.date, request.meal_type)
    if request.servings is not None:
        plan = await controller.set_servings(plan_id, key, request.servings, owner_id=user_id)
    elif request.delta is not None:
        plan = await controller.change_servings(plan_id, key, request.delta, owner_id=user_id)
    else:
        raise ValidationError("Either delta or servings is required")
    return MealPlanResponse.from_plan(plan)


@router.post("/{plan_id}/drop", response_model=MealPlanResponse)
async def drop_recipe(
    plan_id: str,
    request: DropRequest,
    user_id: UserId = "default-user",
    controller: AssignmentController = Depends(get_assignment_controller),
) -> MealPlanResponse:
    """Handle a recipe dropped onto a grid cell."""
    plan = await controller.on_drop(plan_id, request.recipe_id, request.target_id, owner_id=user_id)
    return MealPlanResponse.from_plan(plan)
