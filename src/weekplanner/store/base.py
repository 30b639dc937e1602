"""Persistence contracts for meal plans and templates."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from weekplanner.planning.grid import MealPlan, MealSlot
from weekplanner.planning.templates import Template, TemplateMetadata, TemplateSlot


@dataclass
class TemplateDeletion:
    """Progress record of one template deletion cascade."""

    id: str
    template_id: str
    author_id: str
    status: str = "running"  # running, completed, failed
    plans_deleted: int = 0
    plans_orphaned: int = 0
    favorites_removed: int = 0
    attempts: int = 0
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_complete(self) -> bool:
        return self.status == "completed"


class MealPlanStore(ABC):
    """Per-(owner, week) meal plan persistence."""

    @abstractmethod
    async def fetch_for_week(self, owner_id: str, week: str) -> MealPlan | None:
        """
        Load an owner's plan for a week.

        Returns:
            The stored plan (template reference untouched), or None if absent.
        """
        pass

    @abstractmethod
    async def get(self, plan_id: str) -> MealPlan:
        """
        Load a plan by id.

        Raises:
            NotFoundError: If no plan has that id.
        """
        pass

    @abstractmethod
    async def create_for_week(
        self,
        owner_id: str,
        week: str,
        slots: tuple[MealSlot, ...] = (),
        template_id: str | None = None,
    ) -> MealPlan:
        """
        Create the single plan for (owner, week).

        Raises:
            ConflictError: If the owner already has a plan for that week.
        """
        pass

    @abstractmethod
    async def replace_slots(
        self,
        plan_id: str,
        slots: tuple[MealSlot, ...],
        shopping_list_state: Any,
        expected_version: int | None = None,
    ) -> MealPlan:
        """
        Overwrite the full slot set and shopping-list payload of a plan.

        Args:
            plan_id: Plan to update.
            slots: Complete desired slot set; anything not listed is dropped.
            shopping_list_state: Opaque payload, stored as given.
            expected_version: Version the caller last saw. None skips the check.

        Raises:
            NotFoundError: If the plan does not exist.
            StaleWriteError: If expected_version does not match the stored version.
        """
        pass

    @abstractmethod
    async def delete(self, plan_id: str) -> None:
        """
        Delete a plan.

        Raises:
            NotFoundError: If the plan does not exist.
        """
        pass

    @abstractmethod
    async def list_by_template(self, template_id: str) -> list[MealPlan]:
        """Return every plan whose template reference equals template_id."""
        pass

    @abstractmethod
    async def mark_orphaned(self, plan_ids: list[str]) -> int:
        """Flag plans whose template was deleted. Returns the number flagged."""
        pass


class TemplateStore(ABC):
    """Template catalog, ratings, favorites and deletion runs."""

    @abstractmethod
    async def get(self, template_id: str) -> Template | None:
        pass

    @abstractmethod
    async def create(
        self,
        author_id: str,
        metadata: TemplateMetadata,
        slots: tuple[TemplateSlot, ...],
        source_week: str | None = None,
    ) -> Template:
        pass

    @abstractmethod
    async def list_templates(self, search: str | None = None, tags: list[str] | None = None) -> list[Template]:
        """
        List templates, newest first.

        Args:
            search: Case-insensitive substring of the title.
            tags: Keep templates carrying at least one of these tags.
        """
        pass

    @abstractmethod
    async def delete(self, template_id: str) -> bool:
        """Remove a template from the catalog. Returns False if it was already gone."""
        pass

    @abstractmethod
    async def rate(self, template_id: str, user_id: str, value: int) -> Template:
        """
        Record a user's rating, replacing any previous one.

        Raises:
            NotFoundError: If the template does not exist.
        """
        pass

    @abstractmethod
    async def add_favorite(self, user_id: str, template_id: str) -> None:
        """
        Bookmark a template.

        Raises:
            ConflictError: If it is already in the user's favorites.
        """
        pass

    @abstractmethod
    async def remove_favorite(self, user_id: str, template_id: str) -> bool:
        pass

    @abstractmethod
    async def list_favorites(self, user_id: str) -> list[Template]:
        pass

    @abstractmethod
    async def remove_from_all_favorites(self, template_id: str) -> int:
        """Drop a template from every user's favorites. Returns the number removed."""
        pass

    @abstractmethod
    async def save_deletion(self, deletion: TemplateDeletion) -> TemplateDeletion:
        """Insert or update a deletion run record."""
        pass

    @abstractmethod
    async def get_deletion(self, deletion_id: str) -> TemplateDeletion | None:
        pass
