"""Assignment controller: turns selection and drop events into persisted slot edits."""

import asyncio
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from weekplanner.errors import NotFoundError, StaleWriteError, TransientIOError, ValidationError
from weekplanner.logging_config import LoggingContext, get_logger
from weekplanner.planning.grid import (
    MealPlan,
    MealSlot,
    SlotKey,
    get_slot,
    normalize_slots,
    parse_drop_target,
    remove_slot,
    set_slot,
    update_servings,
    validate_key_in_week,
)
from weekplanner.store.base import MealPlanStore

logger = get_logger(__name__)

PlanEdit = Callable[[MealPlan], MealPlan]


class PlanWriteQueue:
    """
    Per-plan write serialisation shared by every controller in the process.

    Holds one asyncio.Lock per plan id while writes to that plan are queued or
    in flight, so they run strictly one after another in arrival order. The
    lock is dropped once the last writer leaves; the store holds the plan state.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._pending: dict[str, int] = {}

    def __len__(self) -> int:
        """Number of plans with writes queued or in flight."""
        return len(self._locks)

    def lock_for(self, plan_id: str) -> asyncio.Lock:
        lock = self._locks.get(plan_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[plan_id] = lock
        return lock

    def pending(self, plan_id: str) -> int:
        """Number of writes queued or in flight for a plan."""
        return self._pending.get(plan_id, 0)

    def enter(self, plan_id: str) -> None:
        self._pending[plan_id] = self._pending.get(plan_id, 0) + 1

    def leave(self, plan_id: str) -> None:
        remaining = self._pending.get(plan_id, 1) - 1
        if remaining > 0:
            self._pending[plan_id] = remaining
            return
        # Every waiter enters before awaiting the lock, so nobody holds or waits on it now
        self._pending.pop(plan_id, None)
        self._locks.pop(plan_id, None)


class AssignmentController:
    """
    Single entry point for slot edits, whether from a click or a drag-and-drop.

    Every edit is validated before anything is touched, applied to the latest
    stored plan with the pure grid functions, and persisted as a full slot
    replace guarded by the plan version. Nothing is applied locally ahead of
    the store, so when a write fails with TransientIOError the stored plan is
    still the last confirmed state and the error propagates to the caller.
    """

    def __init__(self, plans: MealPlanStore, queue: PlanWriteQueue | None = None):
        self.plans = plans
        self.queue = queue or PlanWriteQueue()

    async def _apply(
        self,
        plan_id: str,
        edit: PlanEdit,
        owner_id: str | None = None,
        expected_version: int | None = None,
    ) -> MealPlan:
        self.queue.enter(plan_id)
        try:
            async with self.queue.lock_for(plan_id):
                base = await self.plans.get(plan_id)
                if owner_id is not None and base.owner_id != owner_id:
                    raise NotFoundError(f"Meal plan {plan_id} not found")
                if expected_version is not None and expected_version != base.version:
                    raise StaleWriteError(plan_id, expected_version, base.version)

                # Raises ValidationError before any write
                updated = edit(base)

                with LoggingContext(user_id=base.owner_id, plan_id=plan_id, week=base.week):
                    try:
                        saved = await self.plans.replace_slots(
                            plan_id,
                            updated.slots,
                            updated.shopping_list_state,
                            expected_version=base.version,
                        )
                    except TransientIOError:
                        logger.warning(
                            f"Write to plan {plan_id} failed; stored version {base.version} stays current"
                        )
                        raise

                    logger.debug(f"Persisted plan {plan_id} at version {saved.version}")
                return saved
        finally:
            self.queue.leave(plan_id)

    async def assign(
        self,
        plan_id: str,
        recipe_id: str,
        key: SlotKey,
        owner_id: str | None = None,
        expected_version: int | None = None,
    ) -> MealPlan:
        """
        Put a recipe in a slot at one serving.

        Dropping the recipe that already sits in the slot keeps its servings.
        The result is persisted either way.
        """
        if not recipe_id or not str(recipe_id).strip():
            raise ValidationError("recipe_id is required")

        def edit(plan: MealPlan) -> MealPlan:
            validate_key_in_week(plan, key)
            existing = get_slot(plan, key)
            if existing is not None and existing.recipe_id == recipe_id:
                return plan
            return set_slot(plan, key, recipe_id, servings=1)

        return await self._apply(plan_id, edit, owner_id, expected_version)

    async def unassign(
        self,
        plan_id: str,
        key: SlotKey,
        owner_id: str | None = None,
        expected_version: int | None = None,
    ) -> MealPlan:
        """Clear a slot and persist; clearing an empty slot is a no-op write."""

        def edit(plan: MealPlan) -> MealPlan:
            validate_key_in_week(plan, key)
            return remove_slot(plan, key)

        return await self._apply(plan_id, edit, owner_id, expected_version)

    async def change_servings(
        self,
        plan_id: str,
        key: SlotKey,
        delta: int,
        owner_id: str | None = None,
    ) -> MealPlan:
        """Step a slot's servings up or down; steps below 1 leave the plan as is."""

        def edit(plan: MealPlan) -> MealPlan:
            validate_key_in_week(plan, key)
            return update_servings(plan, key, delta)

        return await self._apply(plan_id, edit, owner_id)

    async def set_servings(
        self,
        plan_id: str,
        key: SlotKey,
        servings: int,
        owner_id: str | None = None,
    ) -> MealPlan:
        """
        Set a slot's servings to an explicit value.

        Raises:
            ValidationError: If servings < 1.
            NotFoundError: If the slot is empty.
        """

        def edit(plan: MealPlan) -> MealPlan:
            existing = get_slot(plan, key)
            if existing is None:
                raise NotFoundError(f"No slot at {key} in plan {plan.id}")
            return set_slot(plan, key, existing.recipe_id, servings=servings)

        return await self._apply(plan_id, edit, owner_id)

    async def on_drop(
        self,
        plan_id: str,
        source_recipe_id: str,
        target_id: str,
        owner_id: str | None = None,
    ) -> MealPlan:
        """
        Handle a drag-and-drop of a recipe onto a slot target.

        Raises:
            ValidationError: If target_id is not 'slot-YYYY-MM-DD-<mealType>'.
                Nothing is loaded or written in that case.
        """
        key = parse_drop_target(target_id)
        logger.debug(f"Drop of {source_recipe_id} onto {key}")
        return await self.assign(plan_id, source_recipe_id, key, owner_id=owner_id)

    async def replace_plan(
        self,
        plan_id: str,
        slots: list[MealSlot],
        shopping_list_state: Any,
        owner_id: str | None = None,
        expected_version: int | None = None,
    ) -> MealPlan:
        """Overwrite the full slot set and shopping-list payload."""

        def edit(plan: MealPlan) -> MealPlan:
            normalized = normalize_slots(slots)
            for slot in normalized:
                validate_key_in_week(plan, slot.key)
            return replace(plan, slots=normalized, shopping_list_state=shopping_list_state)

        return await self._apply(plan_id, edit, owner_id, expected_version)
