"""API routes for week navigation."""

from collections.abc import Callable
from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from weekplanner.dependencies import get_clock
from weekplanner.planning.weeks import dates_for_week, navigation_window

router = APIRouter(prefix="/api/v1/weeks", tags=["weeks"])


class NavigationResponse(BaseModel):
    """Current week and the range of weeks the planner may browse."""

    current_week: str
    earliest_week: str
    latest_week: str
    dates: list[date]


@router.get("/navigation", response_model=NavigationResponse)
async def get_navigation(clock: Callable[[], str] = Depends(get_clock)) -> NavigationResponse:
    window = navigation_window(current=clock())
    return NavigationResponse(
        current_week=window.current,
        earliest_week=window.earliest,
        latest_week=window.latest,
        dates=dates_for_week(window.current),
    )
