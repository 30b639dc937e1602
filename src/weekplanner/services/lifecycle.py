"""Template lifecycle: publish, copy into a week, cascading delete and orphan detection."""

import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from weekplanner.errors import (
    NotFoundError,
    OrphanedReferenceError,
    TransientIOError,
    ValidationError,
)
from weekplanner.logging_config import LoggingContext, get_logger
from weekplanner.planning.grid import MealPlan
from weekplanner.planning.templates import (
    AutoCleared,
    AwaitingUserChoice,
    PlanLookup,
    Template,
    TemplateBinding,
    TemplateMetadata,
    Valid,
    binding_of,
    materialize_slots,
    snapshot_slots,
    validate_rating,
)
from weekplanner.planning.weeks import NavigationWindow, current_week, navigation_window, parse_week
from weekplanner.store.base import MealPlanStore, TemplateDeletion, TemplateStore

logger = get_logger(__name__)


class TemplateLifecycleManager:
    """
    Coordinates meal plans with the templates they were copied from.

    Reads go through fetch_for_week, which looks up the template in its store and returns
    a tagged result instead of deleting inline:

    - Valid: the plan is unbound, or its template still exists.
    - AwaitingUserChoice: the template is gone and the plan is in the current week.
      The plan is kept (and flagged) until the owner deletes it.
    - AutoCleared: the template is gone and the plan is in any other week.
      The plan has been deleted.
    """

    def __init__(
        self,
        plans: MealPlanStore,
        templates: TemplateStore,
        clock: Callable[[], str] | None = None,
    ):
        self.plans = plans
        self.templates = templates
        self._clock = clock or current_week

    def current_week(self) -> str:
        return self._clock()

    def window(self) -> NavigationWindow:
        return navigation_window(current=self.current_week())

    def ensure_navigable(self, week: str) -> None:
        """
        Reject weeks outside the navigation window around the current week.

        Raises:
            ValidationError: If the week is malformed or out of range.
        """
        parse_week(week)
        window = self.window()
        if not window.contains(week):
            raise ValidationError(
                f"Week {week} is outside the planning window {window.earliest}..{window.latest}"
            )

    # =========================================================================
    # Meal plans
    # =========================================================================

    async def _check_template(self, plan: MealPlan) -> None:
        """
        Check that a bound plan's template still resolves.

        Raises:
            OrphanedReferenceError: If the template was deleted.
        """
        binding = binding_of(plan)
        if binding is TemplateBinding.UNBOUND:
            return
        if binding is TemplateBinding.BOUND and await self.templates.get(plan.template_id) is not None:
            return
        raise OrphanedReferenceError(
            f"Template {plan.template_id} referenced by plan {plan.id} no longer exists",
            template_id=plan.template_id,
            plan_id=plan.id,
        )

    async def fetch_for_week(self, owner_id: str, week: str) -> PlanLookup | None:
        """
        Load an owner's plan for a week and resolve its template binding.

        Returns:
            None if the owner has no plan that week, otherwise Valid,
            AwaitingUserChoice or AutoCleared.
        """
        self.ensure_navigable(week)
        plan = await self.plans.fetch_for_week(owner_id, week)
        if plan is None:
            return None

        try:
            await self._check_template(plan)
        except OrphanedReferenceError as e:
            return await self._handle_orphan(plan, e.template_id)
        return Valid(plan=plan)

    async def _handle_orphan(self, plan: MealPlan, template_id: str) -> PlanLookup:
        with LoggingContext(user_id=plan.owner_id, plan_id=plan.id, week=plan.week):
            if plan.week == self.current_week():
                if not plan.template_orphaned:
                    await self.plans.mark_orphaned([plan.id])
                    plan = replace(plan, template_orphaned=True)
                logger.info(f"Plan {plan.id} lost template {template_id}; awaiting owner decision")
                return AwaitingUserChoice(plan=plan, template_id=template_id)

            await self.plans.delete(plan.id)
            logger.info(f"Auto-cleared plan {plan.id} after template {template_id} was deleted")
            return AutoCleared(week=plan.week, plan_id=plan.id, template_id=template_id)

    async def create_for_week(self, owner_id: str, week: str) -> MealPlan:
        """
        Create an empty plan for (owner, week).

        Raises:
            ValidationError: If the week is outside the navigation window.
            ConflictError: If the owner already has a plan for that week.
        """
        self.ensure_navigable(week)
        plan = await self.plans.create_for_week(owner_id, week)
        with LoggingContext(user_id=owner_id, plan_id=plan.id, week=week):
            logger.info("Created empty meal plan")
        return plan

    async def get_owned_plan(self, plan_id: str, owner_id: str) -> MealPlan:
        """Load a plan, hiding plans of other users behind NotFoundError."""
        plan = await self.plans.get(plan_id)
        if plan.owner_id != owner_id:
            raise NotFoundError(f"Meal plan {plan_id} not found")
        return plan

    async def delete_plan(self, plan_id: str, owner_id: str) -> None:
        """Delete a plan; this is also how an owner resolves AwaitingUserChoice."""
        plan = await self.get_owned_plan(plan_id, owner_id)
        await self.plans.delete(plan.id)
        with LoggingContext(user_id=owner_id, plan_id=plan_id, week=plan.week):
            logger.info("Deleted meal plan")

    # =========================================================================
    # Publish / copy
    # =========================================================================

    async def publish(self, owner_id: str, week: str, metadata: TemplateMetadata) -> Template:
        """
        Snapshot the owner's plan for a week as a new template.

        Servings are not kept; copies start every slot at one serving.

        Raises:
            ValidationError: If title or description is missing.
            NotFoundError: If the owner has no plan for the week.
        """
        metadata.validate()
        parse_week(week)

        plan = await self.plans.fetch_for_week(owner_id, week)
        if plan is None:
            raise NotFoundError(f"No meal plan for {owner_id} in week {week}")

        template = await self.templates.create(
            author_id=owner_id,
            metadata=metadata,
            slots=snapshot_slots(plan),
            source_week=week,
        )
        with LoggingContext(user_id=owner_id, week=week):
            logger.info(f"Published template {template.id} from plan {plan.id}")
        return template

    async def copy_to_week(self, template_id: str, week: str, owner_id: str) -> MealPlan:
        """
        Materialise a template as the owner's plan for a week.

        Raises:
            NotFoundError: If the template does not exist.
            ConflictError: If the owner already has a plan for the week.
        """
        self.ensure_navigable(week)
        template = await self.templates.get(template_id)
        if template is None:
            raise NotFoundError(f"Template {template_id} not found")

        plan = await self.plans.create_for_week(
            owner_id,
            week,
            slots=materialize_slots(template.slots, week),
            template_id=template_id,
        )
        with LoggingContext(user_id=owner_id, plan_id=plan.id, week=week):
            logger.info(f"Copied template {template_id} with {len(plan.slots)} slots")
        return plan

    # =========================================================================
    # Deletion cascade
    # =========================================================================

    async def delete_template(self, template_id: str, author_id: str) -> TemplateDeletion:
        """
        Delete a template and cascade to favorites and dependent plans.

        Plans in a non-current week are deleted; plans in the current week are
        kept and flagged orphaned so their next read yields AwaitingUserChoice.
        The cascade is recorded as a TemplateDeletion run. If a step fails, the
        run is saved as failed and can be replayed with retry_deletion.

        Raises:
            NotFoundError: If the template does not exist or was authored by someone else.
        """
        template = await self.templates.get(template_id)
        if template is None or template.author_id != author_id:
            raise NotFoundError(f"Template {template_id} not found or not authorized")

        deletion = TemplateDeletion(
            id=str(uuid.uuid4()),
            template_id=template_id,
            author_id=author_id,
            started_at=datetime.utcnow(),
        )
        await self.templates.save_deletion(deletion)
        with LoggingContext(user_id=author_id):
            logger.info(f"Deleting template {template_id} (run {deletion.id})")
            return await self._run_cascade(deletion)

    async def retry_deletion(self, run_id: str, author_id: str) -> TemplateDeletion:
        """
        Re-apply the cascade of a deletion run that did not complete.

        Every step is idempotent, so a run can be retried any number of times.
        """
        deletion = await self.templates.get_deletion(run_id)
        if deletion is None or deletion.author_id != author_id:
            raise NotFoundError(f"Template deletion {run_id} not found")
        if deletion.is_complete:
            return deletion

        with LoggingContext(user_id=author_id):
            logger.info(f"Retrying template deletion {run_id} (attempt {deletion.attempts + 1})")
            return await self._run_cascade(deletion)

    async def _run_cascade(self, deletion: TemplateDeletion) -> TemplateDeletion:
        deletion.attempts += 1
        deletion.status = "running"
        deletion.error_message = None
        this_week = self.current_week()

        try:
            await self.templates.delete(deletion.template_id)
            deletion.favorites_removed += await self.templates.remove_from_all_favorites(
                deletion.template_id
            )

            to_orphan = []
            for plan in await self.plans.list_by_template(deletion.template_id):
                if plan.week == this_week:
                    if not plan.template_orphaned:
                        to_orphan.append(plan.id)
                    continue
                try:
                    await self.plans.delete(plan.id)
                except NotFoundError:
                    logger.info(f"Plan {plan.id} ({plan.week}) already gone during cascade")
                    continue
                deletion.plans_deleted += 1
                logger.info(f"Cascade deleted plan {plan.id} ({plan.week})")

            deletion.plans_orphaned += await self.plans.mark_orphaned(to_orphan)
        except Exception as e:
            deletion.status = "failed"
            deletion.error_message = str(e)
            logger.error(
                f"Template deletion {deletion.id} failed after deleting "
                f"{deletion.plans_deleted} plans: {e}"
            )
            await self.templates.save_deletion(deletion)
            raise TransientIOError(
                f"Template deletion {deletion.id} did not complete; retry the run",
                details={"deletion_id": deletion.id, "template_id": deletion.template_id},
            ) from e

        deletion.status = "completed"
        deletion.completed_at = datetime.utcnow()
        await self.templates.save_deletion(deletion)
        logger.info(
            f"Template {deletion.template_id} deleted: {deletion.plans_deleted} plans removed, "
            f"{deletion.plans_orphaned} flagged orphaned, {deletion.favorites_removed} favorites cleared"
        )
        return deletion

    # =========================================================================
    # Catalog, ratings, favorites
    # =========================================================================

    async def get_template(self, template_id: str) -> Template:
        template = await self.templates.get(template_id)
        if template is None:
            raise NotFoundError(f"Template {template_id} not found")
        return template

    async def list_templates(self, search: str | None = None, tags: list[str] | None = None) -> list[Template]:
        return await self.templates.list_templates(search=search, tags=tags)

    async def rate(self, template_id: str, user_id: str, value: int) -> Template:
        """Record a 1-5 rating; a user's second rating replaces the first."""
        validate_rating(value)
        template = await self.templates.rate(template_id, user_id, value)
        logger.info(f"User {user_id} rated template {template_id}: {value}")
        return template

    async def add_favorite(self, user_id: str, template_id: str) -> None:
        await self.get_template(template_id)
        await self.templates.add_favorite(user_id, template_id)

    async def remove_favorite(self, user_id: str, template_id: str) -> None:
        if not await self.templates.remove_favorite(user_id, template_id):
            raise NotFoundError(f"Template {template_id} is not in favorites")

    async def list_favorites(self, user_id: str) -> list[Template]:
        return await self.templates.list_favorites(user_id)
