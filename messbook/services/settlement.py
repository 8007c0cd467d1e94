"""
Month settlement computation.

Core algorithm:
1. Sum expenses, bucketed by category
2. Tally meal slots and consumption units per user
3. Derive one global cost per unit
4. Charge every participant their units at that rate
5. Subtract approved deposits to get the balance

Pure functions over already-loaded records. Nothing here touches the
database; SettlementService does the loading and persisting.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Tuple

from messbook.core.exceptions import ZeroExpensesError, ZeroMealsError
from messbook.models.deposit import Deposit, DepositStatus
from messbook.models.expense import Expense, ExpenseCategory
from messbook.models.meal import Meal, MealType
from messbook.models.report import MonthlyReport, UserLine
from messbook.models.user import User
from messbook.schemas.report import MonthValidation, ValidationStats
from messbook.utils.months import MonthKey

WEIGHTING_UNIT = "unit"
WEIGHTING_WEIGHTED = "weighted"
WEIGHTINGS = (WEIGHTING_UNIT, WEIGHTING_WEIGHTED)

CENT = Decimal("0.01")
FALLBACK_CATEGORY = ExpenseCategory.OTHER.value


def round_money(value: float) -> float:
    """Round to cents, halves away from zero."""
    return float(Decimal(repr(value)).quantize(CENT, rounding=ROUND_HALF_UP))


def meal_units(meal: Meal, weighting: str = WEIGHTING_UNIT) -> float:
    """Consumption units one meal record contributes."""
    base = 1 + meal.guest_count
    if weighting == WEIGHTING_WEIGHTED:
        return meal.meal_weight * base
    return float(base)


def guest_units(meal: Meal, weighting: str = WEIGHTING_UNIT) -> float:
    if weighting == WEIGHTING_WEIGHTED:
        return meal.meal_weight * meal.guest_count
    return float(meal.guest_count)


@dataclass
class MealTally:
    """Per-user meal counters for one month."""
    user_name: str = ""
    breakfast: int = 0
    lunch: int = 0
    dinner: int = 0
    guest_units: float = 0.0
    total_units: float = 0.0


def tally_meals(meals: Iterable[Meal], weighting: str = WEIGHTING_UNIT) -> Tuple[Dict[str, MealTally], float]:
    """
    Count meals per user.

    Returns: ({user_id: MealTally}, total consumption units)
    """
    tallies: Dict[str, MealTally] = {}
    total_units = 0.0

    for meal in meals:
        tally = tallies.setdefault(meal.user_id, MealTally(user_name=meal.user_name))
        if meal.meal_type == MealType.BREAKFAST:
            tally.breakfast += 1
        elif meal.meal_type == MealType.LUNCH:
            tally.lunch += 1
        elif meal.meal_type == MealType.DINNER:
            tally.dinner += 1

        units = meal_units(meal, weighting)
        tally.guest_units += guest_units(meal, weighting)
        tally.total_units += units
        total_units += units

    return tallies, total_units


def summarize_expenses(expenses: Iterable[Expense]) -> Tuple[float, Dict[str, float]]:
    """
    Total expenses and per-category breakdown.

    Every known category is present in the breakdown. Amounts under an
    unknown or empty category go to ``other``.
    """
    breakdown = {category.value: 0.0 for category in ExpenseCategory}
    total = 0.0
    for expense in expenses:
        category = expense.category if expense.category in breakdown else FALLBACK_CATEGORY
        breakdown[category] += expense.amount
        total += expense.amount
    return total, breakdown


def approved_deposits_by_user(deposits: Iterable[Deposit]) -> Dict[str, float]:
    totals: Dict[str, float] = {}
    for deposit in deposits:
        if not deposit.is_approved:
            continue
        totals[deposit.user_id] = totals.get(deposit.user_id, 0.0) + deposit.amount
    return totals


def participant_ids(active_users: Iterable[User], meals: Iterable[Meal], deposits: Iterable[Deposit]) -> List[str]:
    """
    Users who get a line: every active user, then anyone else with meal or
    deposit records in the month, in first-seen order.
    """
    ordered: List[str] = []
    seen = set()
    for user_id in [u.id for u in active_users] + [m.user_id for m in meals] + [d.user_id for d in deposits]:
        if user_id not in seen:
            seen.add(user_id)
            ordered.append(user_id)
    return ordered


def compute_report(
    month: str,
    active_users: List[User],
    meals: List[Meal],
    deposits: List[Deposit],
    expenses: List[Expense],
    closed_by: str,
    weighting: str = WEIGHTING_UNIT,
    known_users: Optional[Dict[str, User]] = None,
    closed_at: Optional[datetime] = None,
) -> MonthlyReport:
    """
    Build the settlement report for a month.

    ``known_users`` maps ids to directory entries for participants who are
    not active; their name falls back to the snapshot on their records.

    Raises ZeroExpensesError or ZeroMealsError when the month cannot be
    settled. Rounding is applied only to the final figures.
    """
    if weighting not in WEIGHTINGS:
        raise ValueError(f"Unknown meal weighting '{weighting}'")

    key = MonthKey.parse(month)

    total_expenses, breakdown = summarize_expenses(expenses)
    if total_expenses <= 0:
        raise ZeroExpensesError(month)

    tallies, total_units = tally_meals(meals, weighting)
    if total_units <= 0:
        raise ZeroMealsError(month)

    cost_per_unit = total_expenses / total_units
    deposit_totals = approved_deposits_by_user(deposits)

    names: Dict[str, str] = {}
    for deposit in deposits:
        names.setdefault(deposit.user_id, deposit.user_name)
    for user_id, tally in tallies.items():
        names[user_id] = tally.user_name
    for user in list((known_users or {}).values()) + list(active_users):
        names[user.id] = user.name

    lines: List[UserLine] = []
    for user_id in participant_ids(active_users, meals, deposits):
        tally = tallies.get(user_id, MealTally())
        amount_due = tally.total_units * cost_per_unit
        paid = deposit_totals.get(user_id, 0.0)
        lines.append(UserLine(
            user_id=user_id,
            user_name=names.get(user_id, ""),
            breakfast_count=tally.breakfast,
            lunch_count=tally.lunch,
            dinner_count=tally.dinner,
            guest_units=tally.guest_units,
            total_units=tally.total_units,
            amount_due=round_money(amount_due),
            total_deposits=round_money(paid),
            balance=round_money(amount_due - paid),
        ))

    return MonthlyReport(
        month=str(key),
        year=key.year,
        month_name=key.name,
        meal_weighting=weighting,
        total_consumption_units=total_units,
        total_expenses=round_money(total_expenses),
        cost_per_unit=round_money(cost_per_unit),
        expense_breakdown={k: round_money(v) for k, v in breakdown.items()},
        user_lines=lines,
        closed_at=closed_at or datetime.now(timezone.utc),
        closed_by=closed_by,
        locked=True,
    )


def assess_month(
    month: str,
    meals: List[Meal],
    deposits: List[Deposit],
    expenses: List[Expense],
    weighting: str = WEIGHTING_UNIT,
    inactive_participants: Iterable[str] = (),
) -> MonthValidation:
    """Classify blocking errors and non-blocking warnings for closing a month."""
    total_expenses, _ = summarize_expenses(expenses)
    _, total_units = tally_meals(meals, weighting)
    pending = [d for d in deposits if d.status == DepositStatus.PENDING]
    approved_total = sum(approved_deposits_by_user(deposits).values())

    stats = ValidationStats(
        meal_count=len(meals),
        total_units=total_units,
        expense_count=len(expenses),
        total_expenses=round_money(total_expenses),
        deposit_count=len(deposits),
        pending_deposit_count=len(pending),
        total_deposits=round_money(approved_total),
    )

    errors: List[str] = []
    warnings: List[str] = []

    if not meals:
        errors.append("No meals recorded for this month")
    elif total_units <= 0:
        errors.append("Total consumption units is zero")
    if not expenses:
        errors.append("No expenses recorded for this month")
    if total_expenses <= 0:
        errors.append("Total expenses is zero")

    if MonthKey.parse(month).is_current_or_future():
        warnings.append(f"Month {month} has not ended yet; later records will be refused once it is closed")
    if not deposits:
        warnings.append("No deposits recorded for this month")
    if pending:
        warnings.append(
            f"{len(pending)} deposit(s) still pending approval will not be counted"
        )
    inactive = sorted(set(inactive_participants))
    if inactive:
        warnings.append(
            f"{len(inactive)} inactive user(s) have activity this month and will be included"
        )

    return MonthValidation(
        month=month,
        valid=not errors,
        stats=stats,
        warnings=warnings,
        errors=errors,
    )
