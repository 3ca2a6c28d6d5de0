"""
Weekly Schedule Models

Plain dataclasses for the scheduler's input and output. Day keys are the
lowercase three-letter weekday names, Monday first.

Version: schedule_v1
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.reconcile.bands import Band

DAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

_AM_TOKEN = re.compile(r"\bAM\b", re.IGNORECASE)
_PM_TOKEN = re.compile(r"\bPM\b", re.IGNORECASE)


def explicit_timing(text: Optional[str]) -> Optional[str]:
    """'am' / 'pm' when the product text carries an explicit AM or PM token."""
    if not text:
        return None
    if _PM_TOKEN.search(text):
        return "pm"
    if _AM_TOKEN.search(text):
        return "am"
    return None


@dataclass(frozen=True)
class RoutineStep:
    step: int
    label: str
    product: str

    def to_dict(self) -> Dict[str, Any]:
        return {"step": self.step, "label": self.label, "product": self.product}


@dataclass
class ScheduleSerum:
    """A leave-on serum offered to the scheduler, core first."""
    name: str
    timing: Optional[str] = None  # explicit "am" / "pm" only

    @classmethod
    def from_name(cls, name: str) -> "ScheduleSerum":
        return cls(name=name.strip(), timing=explicit_timing(name))


@dataclass
class ScheduleInput:
    cleanser: str
    moisturizer: str
    serums: List[ScheduleSerum] = field(default_factory=list)
    sunscreen: Optional[str] = None
    sensitivity_band: Band = Band.GREEN
    serum_comfort: int = 2
    pregnancy: bool = False


@dataclass(frozen=True)
class IrritationBudget:
    nightly_cap: int
    min_rest_nights: int

    @property
    def max_active_nights(self) -> int:
        return len(DAYS) - self.min_rest_nights

    def to_dict(self) -> Dict[str, int]:
        return {"nightly_cap": self.nightly_cap, "min_rest_nights": self.min_rest_nights}


@dataclass
class CustomerView:
    """What the customer does tonight: shared AM plus the day's PM."""
    day: str
    am: List[RoutineStep]
    pm: List[RoutineStep]
    notes: List[str] = field(default_factory=list)
    nightly_cost: int = 0
    nightly_actives: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day": self.day,
            "am": [s.to_dict() for s in self.am],
            "pm": [s.to_dict() for s in self.pm],
            "notes": list(self.notes),
            "nightly_cost": self.nightly_cost,
            "nightly_actives": list(self.nightly_actives),
        }


@dataclass
class WeeklyPlan:
    am: List[RoutineStep]
    pm_by_day: Dict[str, List[RoutineStep]]
    warnings: List[str] = field(default_factory=list)
    nightly_cost: Dict[str, int] = field(default_factory=dict)
    nightly_actives: Dict[str, List[str]] = field(default_factory=dict)
    nightly_notes: Dict[str, List[str]] = field(default_factory=dict)
    rest_nights: List[str] = field(default_factory=list)
    budget_notes: List[str] = field(default_factory=list)
    budget: Optional[IrritationBudget] = None
    today: Optional[CustomerView] = None

    @property
    def active_nights(self) -> List[str]:
        return [d for d in DAYS if d not in self.rest_nights]

    @property
    def total_weekly_cost(self) -> int:
        return sum(self.nightly_cost.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "am": [s.to_dict() for s in self.am],
            "pm_by_day": {d: [s.to_dict() for s in self.pm_by_day[d]] for d in DAYS},
            "warnings": list(self.warnings),
            "nightly_cost": dict(self.nightly_cost),
            "nightly_actives": {d: list(v) for d, v in self.nightly_actives.items()},
            "nightly_notes": {d: list(v) for d, v in self.nightly_notes.items()},
            "rest_nights": list(self.rest_nights),
            "budget_notes": list(self.budget_notes),
            "budget": self.budget.to_dict() if self.budget else None,
            "total_weekly_cost": self.total_weekly_cost,
            "today": self.today.to_dict() if self.today else None,
        }
