"""
Weekly Scheduler Module

Purpose: turn one resolved product set into an AM routine and a 7-night PM
grid that respects the customer's irritation budget.

Version: schedule_v1
"""

from .models import (
    DAYS,
    CustomerView,
    IrritationBudget,
    RoutineStep,
    ScheduleInput,
    ScheduleSerum,
    WeeklyPlan,
    explicit_timing,
)
from .scheduler import (
    ACTIVE_COST_SPECS,
    BUDGETS,
    GENERIC_SUNSCREEN,
    SCHEDULER_VERSION,
    budget_for_band,
    build_weekly_plan,
    classify_active,
    day_key_for,
)

__all__ = [
    "DAYS",
    "CustomerView",
    "IrritationBudget",
    "RoutineStep",
    "ScheduleInput",
    "ScheduleSerum",
    "WeeklyPlan",
    "explicit_timing",
    "ACTIVE_COST_SPECS",
    "BUDGETS",
    "GENERIC_SUNSCREEN",
    "SCHEDULER_VERSION",
    "budget_for_band",
    "build_weekly_plan",
    "classify_active",
    "day_key_for",
]
