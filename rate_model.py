"""Business rate model: turns salary and growth targets into required rates."""
from __future__ import annotations

import math
from typing import Any, Union

ROUNDING_NONE = "none"
HOURS_PER_DAY = 8
WORKDAYS_PER_WEEK = 5

DEFAULT_WORKING_WEEKS = 48
DEFAULT_TEAM_MEMBERS = 1
DEFAULT_HOURS_PER_WEEK = 35

RoundingMode = Union[str, int]


def normalise_rounding(mode: Any) -> RoundingMode:
    """Return ``"none"`` or a positive integer increment for the supplied mode."""

    if mode is None or mode == ROUNDING_NONE:
        return ROUNDING_NONE

    if isinstance(mode, bool):
        return ROUNDING_NONE

    if isinstance(mode, float) and not (math.isfinite(mode) and mode.is_integer()):
        return ROUNDING_NONE

    try:
        increment = int(mode)
    except (TypeError, ValueError, OverflowError):
        return ROUNDING_NONE

    return increment if increment > 0 else ROUNDING_NONE


def round_up_to_increment(value: float, rounding: RoundingMode) -> float:
    """Round ``value`` up to the nearest multiple of ``rounding``.

    Ceiling only: a quoted rate must never undershoot the raw required rate.
    """

    if rounding == ROUNDING_NONE:
        return value

    return math.ceil(value / rounding) * rounding


class RateModel:
    """Required hourly and day rates for a salary budget, growth budget and capacity."""

    def __init__(
        self,
        *,
        salary_budget: float = 0,
        growth_budget: float = 0,
        working_weeks: float = DEFAULT_WORKING_WEEKS,
        team_members: float = DEFAULT_TEAM_MEMBERS,
        hours_per_week: float = DEFAULT_HOURS_PER_WEEK,
        rounding: Any = ROUNDING_NONE,
    ) -> None:
        self.salary_budget = salary_budget
        self.growth_budget = growth_budget
        self.working_weeks = working_weeks
        self.team_members = team_members
        self.hours_per_week = hours_per_week
        self.rounding: RoundingMode = normalise_rounding(rounding)

        self.total_hours: float = 0
        self.total_workdays: float = 0
        self.raw_hourly_rate: float = 0
        self.raw_day_rate: float = 0
        self.required_hourly_rate: float = 0
        self.required_day_rate: float = 0
        # Written by the pricing engine through apply_uplift().
        self.uplifted_day_rate: float = 0

        self.calculate()

    @property
    def annual_target(self) -> float:
        """Return salary plus growth budget."""

        return self.salary_budget + self.growth_budget

    def update(
        self,
        *,
        salary_budget: float | None = None,
        growth_budget: float | None = None,
        working_weeks: float | None = None,
        team_members: float | None = None,
        hours_per_week: float | None = None,
    ) -> None:
        """Merge the supplied values over the current inputs and recalculate.

        Arguments left as ``None`` keep their current value. Inputs are not
        range-checked; zero denominators produce zero rates.
        """

        if salary_budget is not None:
            self.salary_budget = salary_budget
        if growth_budget is not None:
            self.growth_budget = growth_budget
        if working_weeks is not None:
            self.working_weeks = working_weeks
        if team_members is not None:
            self.team_members = team_members
        if hours_per_week is not None:
            self.hours_per_week = hours_per_week

        self.calculate()

    def calculate(self) -> None:
        """Recompute capacity totals, raw rates and rounded rates."""

        self.total_hours = self.team_members * self.hours_per_week * self.working_weeks
        self.total_workdays = WORKDAYS_PER_WEEK * self.working_weeks * self.team_members

        target = self.annual_target
        self.raw_hourly_rate = target / self.total_hours if self.total_hours else 0
        # Independent of the hourly rate: divided by workdays, not hourly x 8.
        self.raw_day_rate = target / self.total_workdays if self.total_workdays else 0

        self._apply_rounding()

    def set_rounding(self, mode: Any) -> None:
        """Change the rounding increment and re-round the cached raw rates."""

        self.rounding = normalise_rounding(mode)
        self._apply_rounding()

    def apply_uplift(self, percent: float) -> None:
        """Set the uplifted day rate from the current required day rate."""

        self.uplifted_day_rate = self.required_day_rate * (1 + percent / 100)

    def _apply_rounding(self) -> None:
        """Round the cached raw rates up to the current increment."""

        self.required_hourly_rate = round_up_to_increment(self.raw_hourly_rate, self.rounding)
        self.required_day_rate = round_up_to_increment(self.raw_day_rate, self.rounding)

    def get_summary(self) -> dict[str, Any]:
        """Return the model inputs alongside every derived value."""

        return {
            "salary_budget": self.salary_budget,
            "growth_budget": self.growth_budget,
            "working_weeks": self.working_weeks,
            "team_members": self.team_members,
            "hours_per_week": self.hours_per_week,
            "rounding": self.rounding,
            "total_hours": self.total_hours,
            "total_workdays": self.total_workdays,
            "raw_hourly_rate": self.raw_hourly_rate,
            "raw_day_rate": self.raw_day_rate,
            "required_hourly_rate": self.required_hourly_rate,
            "required_day_rate": self.required_day_rate,
            "uplifted_day_rate": self.uplifted_day_rate,
        }


__all__ = [
    "HOURS_PER_DAY",
    "ROUNDING_NONE",
    "RateModel",
    "normalise_rounding",
    "round_up_to_increment",
]
