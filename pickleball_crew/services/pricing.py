"""
Court pricing for play sessions.

Total cost and the peak flag depend only on the start time, the duration,
the venue and (for per-head venues) the number of confirmed attendees.
"""
from datetime import datetime
from typing import NamedTuple, Optional
from zoneinfo import ZoneInfo
import enum

from pickleball_crew.core.config import settings

ALLOWED_DURATIONS = (0.5, 1.0, 1.5, 2.0, 2.5, 3.0)

MEGABOX_PEAK_RATE = 390
MEGABOX_OFF_PEAK_RATE = 290
STACKD_HOURLY_RATE = 400
STACKD_PER_PLAYER_FEE = 100

WEEKEND_PEAK_START_HOUR = 10
WEEKDAY_PEAK_START_HOUR = 17
LAST_HOUR = 23


class Venue(str, enum.Enum):
    megabox = "megabox"
    stackd_hopewell = "stackd_hopewell"
    other = "other"


class CostBreakdown(NamedTuple):
    total_cost: float
    is_peak_time: bool


def classify_venue(location: Optional[str]) -> Venue:
    """Match a free-text location against the venues we know the rates of."""
    name = (location or "").lower()
    if "megabox" in name:
        return Venue.megabox
    if "stackd" in name and "hopewell" in name:
        return Venue.stackd_hopewell
    return Venue.other


def validate_duration(duration_hours: float) -> float:
    duration = float(duration_hours)
    if duration not in ALLOWED_DURATIONS:
        allowed = ", ".join(f"{d:g}" for d in ALLOWED_DURATIONS)
        raise ValueError(f"Duration must be one of {allowed} hours")
    return duration


def to_venue_local(date_time: datetime) -> datetime:
    """Naive datetimes are already venue-local; aware ones are converted."""
    if date_time.tzinfo is None:
        return date_time
    return date_time.astimezone(ZoneInfo(settings.VENUE_TIMEZONE))


def venue_wall_time(date_time: datetime) -> datetime:
    """The naive venue-local form session times are stored and priced in."""
    return to_venue_local(date_time).replace(tzinfo=None)


def venue_now() -> datetime:
    return datetime.now(ZoneInfo(settings.VENUE_TIMEZONE)).replace(tzinfo=None)


def is_peak_time(date_time: datetime) -> bool:
    local = to_venue_local(date_time)
    hour = local.hour
    # Monday=0 .. Sunday=6
    if local.weekday() >= 5:
        return WEEKEND_PEAK_START_HOUR <= hour <= LAST_HOUR
    # NOTE: this holds for every hour, so all weekday bookings are billed at
    # the peak rate. Kept until the venue confirms the weekday off-peak window.
    return hour >= WEEKDAY_PEAK_START_HOUR or hour <= LAST_HOUR


def compute_cost(
    date_time: datetime,
    duration_hours: float,
    location: Optional[str],
    attendee_count: int = 0,
) -> CostBreakdown:
    """
    Compute the total court cost of a session.

    Args:
        date_time: Session start, venue-local or timezone-aware
        duration_hours: One of ALLOWED_DURATIONS
        location: Venue name or free text
        attendee_count: Confirmed ("yes") attendees, used by per-head venues

    Returns:
        CostBreakdown with the total cost and the peak flag. Unknown venues
        cost 0.

    Raises:
        ValueError: If the duration is not an allowed value
    """
    duration = validate_duration(duration_hours)
    peak = is_peak_time(date_time)
    venue = classify_venue(location)

    if venue is Venue.megabox:
        rate = MEGABOX_PEAK_RATE if peak else MEGABOX_OFF_PEAK_RATE
        total = rate * duration
    elif venue is Venue.stackd_hopewell:
        total = STACKD_HOURLY_RATE * duration + STACKD_PER_PLAYER_FEE * max(0, attendee_count)
    else:
        total = 0.0

    return CostBreakdown(total_cost=float(total), is_peak_time=peak)


def depends_on_attendees(location: Optional[str]) -> bool:
    return classify_venue(location) is Venue.stackd_hopewell


def cost_per_person(total_cost: Optional[float], yes_count: int) -> float:
    """Split the total among confirmed attendees, never dividing by zero."""
    return (total_cost or 0.0) / max(1, yes_count)


def display_cost_per_person(total_cost: Optional[float], yes_count: int) -> float:
    return round(cost_per_person(total_cost, yes_count), 2)
