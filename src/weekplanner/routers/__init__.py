"""API routers for the weekplanner application."""

from weekplanner.routers.meal_plans import router as meal_plans_router
from weekplanner.routers.templates import router as templates_router
from weekplanner.routers.weeks import router as weeks_router

__all__ = [
    "meal_plans_router",
    "templates_router",
    "weeks_router",
]
