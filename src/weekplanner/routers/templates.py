"""API routes for publishing, browsing and reusing meal plan templates."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from weekplanner.dependencies import get_lifecycle
from weekplanner.logging_config import LoggingContext, get_logger
from weekplanner.planning.templates import TemplateMetadata, parse_tags
from weekplanner.schemas import MealPlanResponse, TemplateDeletionResponse, TemplateResponse
from weekplanner.services.lifecycle import TemplateLifecycleManager

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/templates", tags=["templates"])

UserId = Annotated[str, Query(description="Calling user's ID")]


# =============================================================================
# Request/Response Schemas
# =============================================================================


class PublishRequest(BaseModel):
    """Publish the user's plan for a week as a template."""

    week: str = Field(description="ISO week of the plan to snapshot")
    title: str | None = None
    description: str | None = None
    tags: list[str] | str | None = Field(
        None, description="List, JSON array string or comma-separated string"
    )
    difficulty: str | None = Field(None, description="easy, medium or hard")
    image: str | None = Field(None, description="Image URL")


class CopyRequest(BaseModel):
    """Target week for a template copy."""

    week: str


class RateRequest(BaseModel):
    value: int = Field(description="Rating from 1 to 5")


class TemplateListResponse(BaseModel):
    """List of templates."""

    templates: list[TemplateResponse]
    total: int


class FavoriteResponse(BaseModel):
    template_id: str
    favorited: bool


# =============================================================================
# Catalog
# =============================================================================


@router.post("/", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def publish_template(
    request: PublishRequest,
    user_id: UserId = "default-user",
    lifecycle: TemplateLifecycleManager = Depends(get_lifecycle),
) -> TemplateResponse:
    """Snapshot a week's plan (recipes only, servings reset to 1) as a template."""
    metadata = TemplateMetadata(
        title=request.title,
        description=request.description,
        tags=parse_tags(request.tags),
        difficulty=request.difficulty,
        image=request.image,
    )
    template = await lifecycle.publish(user_id, request.week, metadata)
    return TemplateResponse.from_template(template)


@router.get("/", response_model=TemplateListResponse)
async def list_templates(
    search: Annotated[str | None, Query(description="Case-insensitive title search")] = None,
    tags: Annotated[str | None, Query(description="Comma-separated tags; any may match")] = None,
    lifecycle: TemplateLifecycleManager = Depends(get_lifecycle),
) -> TemplateListResponse:
    """List templates, newest first, with their rating summary."""
    tag_list = list(parse_tags(tags)) or None
    logger.info(f"Listing templates: search={search!r}, tags={tag_list}")
    templates = await lifecycle.list_templates(search=search, tags=tag_list)
    return TemplateListResponse(
        templates=[TemplateResponse.from_template(t) for t in templates],
        total=len(templates),
    )


# =============================================================================
# Favorites (declared before /{template_id} so the path is not captured)
# =============================================================================


@router.get("/favorites", response_model=TemplateListResponse)
async def list_favorites(
    user_id: UserId = "default-user",
    lifecycle: TemplateLifecycleManager = Depends(get_lifecycle),
) -> TemplateListResponse:
    templates = await lifecycle.list_favorites(user_id)
    return TemplateListResponse(
        templates=[TemplateResponse.from_template(t) for t in templates],
        total=len(templates),
    )


@router.post(
    "/favorites/{template_id}",
    response_model=FavoriteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_favorite(
    template_id: str,
    user_id: UserId = "default-user",
    lifecycle: TemplateLifecycleManager = Depends(get_lifecycle),
) -> FavoriteResponse:
    """Bookmark a template. 404 if it does not exist, 409 if already bookmarked."""
    await lifecycle.add_favorite(user_id, template_id)
    return FavoriteResponse(template_id=template_id, favorited=True)


@router.delete("/favorites/{template_id}", response_model=FavoriteResponse)
async def remove_favorite(
    template_id: str,
    user_id: UserId = "default-user",
    lifecycle: TemplateLifecycleManager = Depends(get_lifecycle),
) -> FavoriteResponse:
    await lifecycle.remove_favorite(user_id, template_id)
    return FavoriteResponse(template_id=template_id, favorited=False)


@router.post("/deletions/{run_id}/retry", response_model=TemplateDeletionResponse)
async def retry_template_deletion(
    run_id: str,
    user_id: UserId = "default-user",
    lifecycle: TemplateLifecycleManager = Depends(get_lifecycle),
) -> TemplateDeletionResponse:
    """Re-run a template deletion cascade that failed part-way."""
    deletion = await lifecycle.retry_deletion(run_id, user_id)
    return TemplateDeletionResponse.from_deletion(deletion)


# =============================================================================
# Single template
# =============================================================================


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: str,
    lifecycle: TemplateLifecycleManager = Depends(get_lifecycle),
) -> TemplateResponse:
    template = await lifecycle.get_template(template_id)
    return TemplateResponse.from_template(template)


@router.delete("/{template_id}", response_model=TemplateDeletionResponse)
async def delete_template(
    template_id: str,
    user_id: UserId = "default-user",
    lifecycle: TemplateLifecycleManager = Depends(get_lifecycle),
) -> TemplateDeletionResponse:
    """
    Delete a template the user authored.

    Removes it from every user's favorites, deletes plans copied from it in
    past or future weeks, and flags current-week copies as orphaned.
    """
    with LoggingContext(user_id=user_id):
        deletion = await lifecycle.delete_template(template_id, user_id)
    return TemplateDeletionResponse.from_deletion(deletion)


@router.post(
    "/{template_id}/copy",
    response_model=MealPlanResponse,
    status_code=status.HTTP_201_CREATED,
)
async def copy_template(
    template_id: str,
    request: CopyRequest,
    user_id: UserId = "default-user",
    lifecycle: TemplateLifecycleManager = Depends(get_lifecycle),
) -> MealPlanResponse:
    """Create the user's plan for a week from a template. 409 if the week is taken."""
    plan = await lifecycle.copy_to_week(template_id, request.week, user_id)
    return MealPlanResponse.from_plan(plan)


@router.post("/{template_id}/rate", response_model=TemplateResponse)
async def rate_template(
    template_id: str,
    request: RateRequest,
    user_id: UserId = "default-user",
    lifecycle: TemplateLifecycleManager = Depends(get_lifecycle),
) -> TemplateResponse:
    template = await lifecycle.rate(template_id, user_id, request.value)
    return TemplateResponse.from_template(template)
