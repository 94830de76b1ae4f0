"""
Configuration constants shared across the project.

Everything here is plain data. CLI flags override the defaults at call sites,
the core modules never read the environment.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


PACKAGE_DIR = Path(__file__).resolve().parent

# NIE timetables are published for the upcoming academic year.
# Legacy "DD/MM" dates carry no year, this one is implied.
TIMETABLE_YEAR = 2026

MINUTES_PER_DAY = 24 * 60

# Willing to arrive early or stay late by this amount around a meal window
MEAL_BUFFER_MINUTES = 30
DEFAULT_MIN_MEAL_MINUTES = 60

DEFAULT_TRAVEL_WAIT_MINUTES = 15

SHARE_HASH_PREFIX = "#share="
DEFAULT_SHARE_BASE_URL = "https://nie-timetable.app/"

HTML_TABLE_ID = "infotab"

# Custom events use these labels instead of a course code under a course filter
CUSTOM_EVENT_LABELS = {
    "custom": "Custom",
    "upgrading": "Upgrading",
    "cohort": "Custom",
}

DEFAULT_TIMETABLE_NAMES = (
    "Someone's Timetable",
    "Sometwo's Timetable",
    "Somethree's Timetable",
    "Somefour's Timetable",
    "Somefive's Timetable",
    "Somesix's Timetable",
    "Someseven's Timetable",
    "Someeight's Timetable",
    "Somenine's Timetable",
    "Someten's Timetable",
)


class TravelDirection(str, Enum):
    TO = "to"
    FROM = "from"
    BOTH = "both"
    EITHER = "either"


class MealType(str, Enum):
    LUNCH = "lunch"
    DINNER = "dinner"


@dataclass(frozen=True)
class TravelConfig:
    direction: TravelDirection = TravelDirection.BOTH
    wait_minutes: int = DEFAULT_TRAVEL_WAIT_MINUTES


@dataclass(frozen=True)
class MealConfig:
    """
    Meal windows are whole hours of the day (24-hour clock).
    """

    type: MealType = MealType.LUNCH
    lunch_start: int = 11
    lunch_end: int = 14
    dinner_start: int = 17
    dinner_end: int = 20


def default_store_path() -> Path:
    """
    Return the default location of the timetable store.

    A function instead of a constant so tests can point elsewhere.
    """
    return PACKAGE_DIR / "data" / "timetables.json"
