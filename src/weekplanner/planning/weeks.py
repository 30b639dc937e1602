"""ISO-8601 week arithmetic and week/date conversion."""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta

import pytz

from weekplanner.config import get_settings
from weekplanner.errors import ValidationError

WEEK_PATTERN = re.compile(r"^(\d{4})-W(\d{2})$")

WEEKDAY_NAMES: tuple[str, ...] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


def weeks_in_year(year: int) -> int:
    """Return the number of ISO weeks (52 or 53) in the given ISO year."""
    # Dec 28 always falls in the last ISO week of its year
    return date(year, 12, 28).isocalendar()[1]


def parse_week(week: str) -> tuple[int, int]:
    """
    Split a WeekId like '2025-W28' into (year, week number).

    Raises:
        ValidationError: If the string is not a valid ISO week of its year.
    """
    match = WEEK_PATTERN.match(week or "")
    if not match:
        raise ValidationError(f"Invalid week '{week}', expected YYYY-Www")

    year, number = int(match.group(1)), int(match.group(2))
    if year < 1 or not 1 <= number <= weeks_in_year(year):
        raise ValidationError(f"Week {number} does not exist in ISO year {year}")
    return year, number


def format_week(year: int, number: int) -> str:
    """Format (year, week number) as a WeekId."""
    return f"{year:04d}-W{number:02d}"


def week_for_date(day: date) -> str:
    """Return the WeekId containing a calendar date."""
    iso = day.isocalendar()
    return format_week(iso[0], iso[1])


def monday_of(week: str) -> date:
    """Return the Monday of a WeekId."""
    year, number = parse_week(week)
    return date.fromisocalendar(year, number, 1)


def dates_for_week(week: str) -> list[date]:
    """Return the 7 dates of a week, Monday first and Sunday last."""
    monday = monday_of(week)
    return [monday + timedelta(days=offset) for offset in range(7)]


def weekday_name(day: date) -> str:
    """Return the English weekday name of a date ('Monday' .. 'Sunday')."""
    return WEEKDAY_NAMES[day.weekday()]


def date_for_weekday(week: str, day_name: str) -> date:
    """Map a weekday name onto its date within a week."""
    try:
        offset = WEEKDAY_NAMES.index(day_name.capitalize())
    except ValueError as e:
        raise ValidationError(f"Unknown day of week '{day_name}'") from e
    return monday_of(week) + timedelta(days=offset)


def offset_week(week: str, n: int) -> str:
    """Add (or subtract) n weeks, rolling over 52- and 53-week years."""
    return week_for_date(monday_of(week) + timedelta(weeks=n))


def week_distance(a: str, b: str) -> int:
    """
    Signed number of weeks from b to a (a - b).

    Uses real calendar dates, so a year boundary after a 53-week year counts
    correctly: week_distance('2021-W01', '2020-W53') == 1.
    """
    return (monday_of(a) - monday_of(b)).days // 7


def current_week(now: datetime | None = None, tz_name: str | None = None) -> str:
    """
    Derive the ISO week of "now" in the reference timezone.

    Args:
        now: Moment to evaluate. Naive datetimes are taken as UTC. Defaults to the real clock.
        tz_name: Olson timezone name. Defaults to the configured reference timezone.
    """
    tz = pytz.timezone(tz_name or get_settings().reference_timezone)
    if now is None:
        now = datetime.now(pytz.utc)
    elif now.tzinfo is None:
        now = pytz.utc.localize(now)
    return week_for_date(now.astimezone(tz).date())


@dataclass(frozen=True)
class NavigationWindow:
    """Range of weeks a user may browse around the current week."""

    current: str
    earliest: str
    latest: str

    def contains(self, week: str) -> bool:
        """Check whether a week lies inside the window (inclusive)."""
        return (
            week_distance(week, self.earliest) >= 0 and week_distance(self.latest, week) >= 0
        )

    def can_go_back(self, week: str) -> bool:
        return week_distance(week, self.earliest) > 0

    def can_go_forward(self, week: str) -> bool:
        return week_distance(self.latest, week) > 0


def navigation_window(
    current: str | None = None,
    weeks_back: int | None = None,
    weeks_ahead: int | None = None,
) -> NavigationWindow:
    """Build the navigation window around the current week."""
    settings = get_settings()
    current = current or current_week()
    back = settings.navigation_weeks_back if weeks_back is None else weeks_back
    ahead = settings.navigation_weeks_ahead if weeks_ahead is None else weeks_ahead
    return NavigationWindow(
        current=current,
        earliest=offset_week(current, -back),
        latest=offset_week(current, ahead),
    )
