"""Template snapshots and the template-binding states of a meal plan."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from weekplanner.errors import ValidationError
from weekplanner.planning.grid import MealPlan, MealSlot, MealType, SlotKey, normalize_slots
from weekplanner.planning.weeks import date_for_weekday, weekday_name

DIFFICULTIES = ("easy", "medium", "hard")
MIN_RATING = 1
MAX_RATING = 5


@dataclass(frozen=True)
class TemplateSlot:
    """Week-independent slot: weekday name instead of a calendar date, no servings."""

    day_of_week: str
    meal_type: MealType
    recipe_id: str


@dataclass(frozen=True)
class TemplateMetadata:
    """Descriptive fields supplied when publishing a template."""

    title: str | None
    description: str | None
    tags: tuple[str, ...] = ()
    difficulty: str | None = None
    image: str | None = None

    def validate(self) -> None:
        """
        Check required fields before a publish.

        Raises:
            ValidationError: If title or description is missing, or difficulty is unknown.
        """
        if not (self.title or "").strip() or not (self.description or "").strip():
            raise ValidationError("title and description are required")
        if self.difficulty is not None and self.difficulty not in DIFFICULTIES:
            raise ValidationError(
                f"Invalid difficulty '{self.difficulty}', expected one of: {', '.join(DIFFICULTIES)}"
            )


@dataclass(frozen=True)
class Template:
    """A published, shareable snapshot of a week's slot assignments."""

    id: str
    author_id: str
    title: str
    description: str
    slots: tuple[TemplateSlot, ...] = ()
    tags: tuple[str, ...] = ()
    difficulty: str | None = None
    image: str | None = None
    source_week: str | None = None
    ratings: dict[str, int] = field(default_factory=dict)

    @property
    def total_ratings(self) -> int:
        return len(self.ratings)

    @property
    def average_rating(self) -> float:
        if not self.ratings:
            return 0.0
        return sum(self.ratings.values()) / len(self.ratings)


def parse_tags(tags: Any) -> tuple[str, ...]:
    """Accept tags as a list, a JSON array string, or a comma-separated string."""
    if tags is None:
        return ()
    if isinstance(tags, str):
        try:
            decoded = json.loads(tags)
        except ValueError:
            decoded = tags.split(",")
        tags = decoded if isinstance(decoded, list) else [str(decoded)]
    return tuple(t.strip() for t in (str(tag) for tag in tags) if t.strip())


def validate_rating(value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or not MIN_RATING <= value <= MAX_RATING:
        raise ValidationError(f"Rating must be an integer between {MIN_RATING} and {MAX_RATING}")


def snapshot_slots(plan: MealPlan) -> tuple[TemplateSlot, ...]:
    """Convert a plan's dated slots into weekday slots, dropping servings and empty cells."""
    return tuple(
        TemplateSlot(
            day_of_week=weekday_name(slot.key.date),
            meal_type=slot.key.meal_type,
            recipe_id=slot.recipe_id,
        )
        for slot in plan.slots
        if slot.recipe_id is not None
    )


def materialize_slots(slots: tuple[TemplateSlot, ...], week: str) -> tuple[MealSlot, ...]:
    """Project template slots onto the dates of a week, each at one serving."""
    return normalize_slots(
        [
            MealSlot(
                key=SlotKey(date=date_for_weekday(week, slot.day_of_week), meal_type=slot.meal_type),
                recipe_id=slot.recipe_id,
                servings=1,
            )
            for slot in slots
        ]
    )


# =============================================================================
# Template binding states
# =============================================================================


class TemplateBinding(str, Enum):
    """How a meal plan relates to the template it was copied from."""

    UNBOUND = "unbound"
    BOUND = "bound"
    ORPHANED = "orphaned"


def binding_of(plan: MealPlan) -> TemplateBinding:
    """Binding state as recorded on the plan, before the template store is consulted."""
    if not plan.is_bound:
        return TemplateBinding.UNBOUND
    if plan.template_orphaned:
        return TemplateBinding.ORPHANED
    return TemplateBinding.BOUND


@dataclass(frozen=True)
class Valid:
    """Plan loaded and its template reference (if any) resolves."""

    plan: MealPlan
    status: str = "valid"


@dataclass(frozen=True)
class AwaitingUserChoice:
    """Current-week plan whose template is gone; kept until the owner replaces it."""

    plan: MealPlan
    template_id: str
    status: str = "awaiting_user_choice"


@dataclass(frozen=True)
class AutoCleared:
    """Non-current-week plan whose template is gone; deleted without prompting."""

    week: str
    plan_id: str
    template_id: str
    status: str = "auto_cleared"


PlanLookup = Valid | AwaitingUserChoice | AutoCleared
