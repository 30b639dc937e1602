"""Weekly slot grid: the 7 x 4 key space of a meal plan and its pure mutations.

Every operation returns a new MealPlan and leaves the input untouched. Callers
persist the result; nothing here performs I/O.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Any

from weekplanner.errors import ValidationError
from weekplanner.planning.weeks import dates_for_week


class MealType(str, Enum):
    """Meal of the day a slot belongs to."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACKS = "snacks"

    @property
    def position(self) -> int:
        return list(MealType).index(self)


@dataclass(frozen=True)
class SlotKey:
    """One (date, meal type) cell of the weekly grid."""

    date: date
    meal_type: MealType

    def __str__(self) -> str:
        return f"{self.date.isoformat()}/{self.meal_type.value}"


@dataclass(frozen=True)
class MealSlot:
    """A grid cell bound to a recipe and a serving count."""

    key: SlotKey
    recipe_id: str | None = None
    servings: int = 1


@dataclass(frozen=True)
class MealPlan:
    """A user's plan for one ISO week."""

    id: str
    owner_id: str
    week: str
    slots: tuple[MealSlot, ...] = ()
    shopping_list_state: Any = field(default_factory=list)
    template_id: str | None = None
    template_orphaned: bool = False
    version: int = 0

    @property
    def dates(self) -> list[date]:
        return dates_for_week(self.week)

    @property
    def is_bound(self) -> bool:
        """Check if the plan was materialised from a template."""
        return self.template_id is not None


def _sort_key(slot: MealSlot) -> tuple[date, int]:
    return slot.key.date, slot.key.meal_type.position


def _validate_servings(servings: int) -> None:
    if not isinstance(servings, int) or isinstance(servings, bool) or servings < 1:
        raise ValidationError(f"Servings must be an integer >= 1, got {servings!r}")


def validate_key_in_week(plan: MealPlan, key: SlotKey) -> None:
    """Ensure a slot key's date is one of the plan week's 7 dates."""
    if key.date not in plan.dates:
        raise ValidationError(f"Date {key.date.isoformat()} is not part of week {plan.week}")


def normalize_slots(slots: list[MealSlot] | tuple[MealSlot, ...]) -> tuple[MealSlot, ...]:
    """
    Collapse a slot collection to one entry per key, in grid order.

    Later entries win over earlier ones with the same key, matching upsert semantics.
    """
    by_key: dict[SlotKey, MealSlot] = {}
    for slot in slots:
        _validate_servings(slot.servings)
        by_key[slot.key] = slot
    return tuple(sorted(by_key.values(), key=_sort_key))


def get_slot(plan: MealPlan, key: SlotKey) -> MealSlot | None:
    """Return the slot at key, or None if the cell is empty."""
    for slot in plan.slots:
        if slot.key == key:
            return slot
    return None


def set_slot(
    plan: MealPlan,
    key: SlotKey,
    recipe_id: str | None,
    servings: int = 1,
) -> MealPlan:
    """
    Upsert a slot: drop whatever sits at key, then insert the new slot.

    Raises:
        ValidationError: If servings < 1 or the key's date is outside the plan week.
    """
    _validate_servings(servings)
    validate_key_in_week(plan, key)

    remaining = [slot for slot in plan.slots if slot.key != key]
    remaining.append(MealSlot(key=key, recipe_id=recipe_id, servings=servings))
    return replace(plan, slots=tuple(sorted(remaining, key=_sort_key)))


def remove_slot(plan: MealPlan, key: SlotKey) -> MealPlan:
    """Delete the slot at key; no-op if the cell is empty."""
    if get_slot(plan, key) is None:
        return plan
    return replace(plan, slots=tuple(slot for slot in plan.slots if slot.key != key))


def update_servings(plan: MealPlan, key: SlotKey, delta: int) -> MealPlan:
    """
    Shift a slot's servings by delta.

    Returns the plan unchanged when the cell is empty or the result would drop below 1.
    """
    existing = get_slot(plan, key)
    if existing is None:
        return plan

    new_servings = existing.servings + delta
    if new_servings < 1:
        return plan

    updated = replace(existing, servings=new_servings)
    return replace(
        plan,
        slots=tuple(updated if slot.key == key else slot for slot in plan.slots),
    )


def slots_for_date(plan: MealPlan, day: date) -> list[MealSlot]:
    """Return the slots of one day in meal order."""
    return sorted((s for s in plan.slots if s.key.date == day), key=_sort_key)


# =============================================================================
# Key parsing
# =============================================================================

DROP_TARGET_PATTERN = re.compile(r"^slot-(\d{4}-\d{2}-\d{2})-([a-z]+)$")


def parse_meal_type(value: str) -> MealType:
    """Parse a meal type name, case-insensitively."""
    try:
        return MealType((value or "").strip().lower())
    except ValueError as e:
        valid = ", ".join(m.value for m in MealType)
        raise ValidationError(f"Invalid meal type '{value}', expected one of: {valid}") from e


def parse_slot_key(day: str | date, meal_type: str | MealType) -> SlotKey:
    """
    Build a SlotKey from loosely-typed input.

    Raises:
        ValidationError: If the date is not an ISO date or the meal type is unknown.
    """
    if isinstance(day, date):
        parsed_date = day
    else:
        try:
            parsed_date = date.fromisoformat(day)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid slot date '{day}', expected YYYY-MM-DD") from e

    if isinstance(meal_type, MealType):
        return SlotKey(date=parsed_date, meal_type=meal_type)
    return SlotKey(date=parsed_date, meal_type=parse_meal_type(meal_type))


def parse_drop_target(target_id: str) -> SlotKey:
    """Parse a drop target id of the form 'slot-YYYY-MM-DD-<mealType>'."""
    match = DROP_TARGET_PATTERN.match((target_id or "").strip().lower())
    if not match:
        raise ValidationError(f"Malformed drop target '{target_id}'")
    return parse_slot_key(match.group(1), match.group(2))


def drop_target_id(key: SlotKey) -> str:
    """Render the drop target id of a slot key."""
    return f"slot-{key.date.isoformat()}-{key.meal_type.value}"
