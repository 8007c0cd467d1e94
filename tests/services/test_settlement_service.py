import asyncio
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from pymongo.errors import PyMongoError

from messbook.core.exceptions import (
    AlreadyClosedError,
    MonthLockedError,
    NotFoundError,
    StorageError,
    ValidationError,
    ZeroExpensesError,
    ZeroMealsError,
)
from messbook.services.settlement_service import SettlementService
from messbook.services.expense_service import ExpenseService

MONTH = "2024-01"


async def add_meal(db, user, day, meal_type="lunch", guests=0, month=MONTH):
    year, mon = (int(part) for part in month.split("-"))
    await db["meals"].insert_one({
        "user_id": user.id,
        "user_name": user.name,
        "date": datetime(year, mon, day),
        "meal_type": meal_type,
        "guest_count": guests,
        "meal_weight": 0.5 if meal_type == "breakfast" else 1.0,
        "month": month,
        "locked": False,
    })


async def add_expense(db, amount, category="grocery", month=MONTH):
    year, mon = (int(part) for part in month.split("-"))
    result = await db["expenses"].insert_one({
        "category": category,
        "amount": amount,
        "date": datetime(year, mon, 10),
        "month": month,
        "description": "shopping",
        "locked": False,
    })
    return str(result.inserted_id)


async def add_deposit(db, user, amount, status="approved", month=MONTH):
    year, mon = (int(part) for part in month.split("-"))
    await db["deposits"].insert_one({
        "user_id": user.id,
        "user_name": user.name,
        "amount": amount,
        "date": datetime(year, mon, 3),
        "month": month,
        "status": status,
        "locked": False,
    })


async def locked_flags(db, collection, month=MONTH):
    docs = await db[collection].find({"month": month}).to_list(None)
    return [doc["locked"] for doc in docs]


@pytest_asyncio.fixture
async def settled_month(test_db, alice, bob):
    """Two members, 30 lunches each, 3200 spent, 3000 deposited."""
    for day in range(1, 31):
        await add_meal(test_db, alice, day)
        await add_meal(test_db, bob, day)
    await add_expense(test_db, 3000, "grocery")
    await add_expense(test_db, 200, "water")
    await add_deposit(test_db, alice, 1000)
    await add_deposit(test_db, bob, 2000)
    return test_db


@pytest.mark.asyncio
class TestCloseMonth:

    async def test_close_month_writes_report(self, settled_month, admin, alice, bob):
        service = SettlementService(settled_month, weighting="unit")

        report = await service.close_month(MONTH, closed_by=admin.id)

        assert report.id is not None
        assert report.total_consumption_units == 60
        assert report.total_expenses == 3200
        assert report.cost_per_unit == 53.33
        assert report.closed_by == admin.id
        assert report.line_for(alice.id).balance == 600
        assert report.line_for(bob.id).balance == -400
        # Admin is active but had no activity
        assert report.line_for(admin.id).amount_due == 0

        stored = await service.reports.find_by_month(MONTH)
        assert stored.cost_per_unit == 53.33
        assert len(stored.user_lines) == 3

    async def test_close_month_locks_every_record(self, settled_month, admin):
        await SettlementService(settled_month).close_month(MONTH, closed_by=admin.id)

        for collection in ("meals", "deposits", "expenses"):
            flags = await locked_flags(settled_month, collection)
            assert flags and all(flags)

    async def test_close_month_leaves_other_months_alone(self, settled_month, admin, alice):
        await add_meal(settled_month, alice, 1, month="2024-02")
        await add_expense(settled_month, 50, month="2024-02")

        await SettlementService(settled_month).close_month(MONTH, closed_by=admin.id)

        assert await locked_flags(settled_month, "meals", "2024-02") == [False]
        assert await locked_flags(settled_month, "expenses", "2024-02") == [False]

    async def test_second_close_is_rejected(self, settled_month, admin):
        service = SettlementService(settled_month)
        await service.close_month(MONTH, closed_by=admin.id)

        with pytest.raises(AlreadyClosedError):
            await service.close_month(MONTH, closed_by=admin.id)

        assert await settled_month["reports"].count_documents({"month": MONTH}) == 1

    async def test_concurrent_closes_produce_one_report(self, settled_month, admin):
        results = await asyncio.gather(
            SettlementService(settled_month).close_month(MONTH, closed_by=admin.id),
            SettlementService(settled_month).close_month(MONTH, closed_by=admin.id),
            return_exceptions=True
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], AlreadyClosedError)
        assert await settled_month["reports"].count_documents({"month": MONTH}) == 1

    async def test_zero_expenses_writes_nothing(self, test_db, admin, alice):
        await add_meal(test_db, alice, 1)
        await add_expense(test_db, 0)

        with pytest.raises(ZeroExpensesError):
            await SettlementService(test_db).close_month(MONTH, closed_by=admin.id)

        assert await test_db["reports"].count_documents({}) == 0
        assert await locked_flags(test_db, "meals") == [False]
        assert await locked_flags(test_db, "expenses") == [False]

    async def test_zero_meals_writes_nothing(self, test_db, admin, alice):
        await add_expense(test_db, 500)
        await add_deposit(test_db, alice, 100)

        with pytest.raises(ZeroMealsError):
            await SettlementService(test_db).close_month(MONTH, closed_by=admin.id)

        assert await test_db["reports"].count_documents({}) == 0
        assert await locked_flags(test_db, "expenses") == [False]
        assert await locked_flags(test_db, "deposits") == [False]

    async def test_malformed_month_is_rejected(self, test_db, admin):
        with pytest.raises(ValidationError):
            await SettlementService(test_db).close_month("2024-1", closed_by=admin.id)

    async def test_inactive_member_with_meals_is_included(self, settled_month, admin, make_user):
        former = await make_user("Former", is_active=False)
        await add_meal(settled_month, former, 1)

        report = await SettlementService(settled_month).close_month(MONTH, closed_by=admin.id)

        line = report.line_for(former.id)
        assert line is not None
        assert line.user_name == "Former"
        assert line.total_units == 1

    async def test_weighted_scheme_is_recorded(self, test_db, admin, alice):
        await add_meal(test_db, alice, 1, meal_type="breakfast")
        await add_meal(test_db, alice, 1, meal_type="dinner")
        await add_expense(test_db, 150)

        report = await SettlementService(test_db, weighting="weighted").close_month(MONTH, closed_by=admin.id)

        assert report.meal_weighting == "weighted"
        assert report.total_consumption_units == 1.5
        assert report.cost_per_unit == 100


@pytest.mark.asyncio
class TestLockSweepFailure:

    async def test_failed_sweep_raises_storage_error_and_keeps_month_closed(self, settled_month, admin):
        service = SettlementService(settled_month)
        service.expenses.lock_all = AsyncMock(side_effect=PyMongoError("connection reset"))

        with pytest.raises(StorageError):
            await service.close_month(MONTH, closed_by=admin.id)

        # Report is in place, so the guard already treats the month as closed
        assert await service.reports.exists(MONTH)
        assert await locked_flags(settled_month, "expenses") == [False, False]

        expense_id = (await settled_month["expenses"].find_one({"month": MONTH}))["_id"]
        with pytest.raises(MonthLockedError):
            await ExpenseService(settled_month).delete(str(expense_id))

    async def test_relock_finishes_the_sweep(self, settled_month, admin):
        service = SettlementService(settled_month)
        service.expenses.lock_all = AsyncMock(side_effect=PyMongoError("connection reset"))
        with pytest.raises(StorageError):
            await service.close_month(MONTH, closed_by=admin.id)

        counts = await SettlementService(settled_month).relock_month(MONTH)

        assert counts == {"meals_locked": 0, "deposits_locked": 0, "expenses_locked": 2}
        assert all(await locked_flags(settled_month, "expenses"))

    async def test_relock_is_idempotent(self, settled_month, admin):
        service = SettlementService(settled_month)
        await service.close_month(MONTH, closed_by=admin.id)

        counts = await service.relock_month(MONTH)

        assert counts == {"meals_locked": 0, "deposits_locked": 0, "expenses_locked": 0}

    async def test_relock_requires_closed_month(self, test_db):
        with pytest.raises(NotFoundError):
            await SettlementService(test_db).relock_month(MONTH)


class FakeTransaction:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


class FakeSession:
    """Stands in for a motor client session; mongomock has none."""

    def __init__(self):
        self.transactions = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def start_transaction(self):
        self.transactions += 1
        return FakeTransaction()


def transactional_service(db):
    service = SettlementService(db, use_transactions=True)
    session = FakeSession()

    async def start_session():
        return session

    service.db = SimpleNamespace(client=SimpleNamespace(start_session=start_session))
    service.reports.create_unique = AsyncMock(side_effect=lambda report, session=None: report)
    for repo in (service.meals, service.deposits, service.expenses):
        repo.lock_all = AsyncMock(return_value=3)
    return service, session


@pytest.mark.asyncio
class TestCloseInTransaction:

    async def test_report_and_sweep_share_one_session(self, settled_month, admin):
        service, session = transactional_service(settled_month)

        report = await service.close_month(MONTH, closed_by=admin.id)

        assert report.month == MONTH
        assert session.transactions == 1
        service.reports.create_unique.assert_awaited_once()
        assert service.reports.create_unique.await_args.kwargs["session"] is session
        for repo in (service.meals, service.deposits, service.expenses):
            repo.lock_all.assert_awaited_once_with(MONTH, session=session)

    async def test_failed_report_write_skips_the_sweep(self, settled_month, admin):
        service, _ = transactional_service(settled_month)
        service.reports.create_unique = AsyncMock(side_effect=PyMongoError("write conflict"))

        with pytest.raises(StorageError):
            await service.close_month(MONTH, closed_by=admin.id)

        for repo in (service.meals, service.deposits, service.expenses):
            repo.lock_all.assert_not_awaited()


@pytest.mark.asyncio
class TestValidateMonth:

    async def test_validate_ready_month(self, settled_month):
        result = await SettlementService(settled_month).validate_month(MONTH)

        assert result.valid is True
        assert result.stats.meal_count == 60
        assert result.stats.total_units == 60
        assert result.stats.expense_count == 2
        assert result.stats.total_expenses == 3200
        assert result.stats.deposit_count == 2
        assert result.stats.total_deposits == 3000

    async def test_validate_never_mutates(self, settled_month):
        before = {
            name: await settled_month[name].find({}).to_list(None)
            for name in ("meals", "deposits", "expenses")
        }

        await SettlementService(settled_month).validate_month(MONTH)
        await SettlementService(settled_month).validate_month("2024-05")

        for name, docs in before.items():
            assert await settled_month[name].find({}).to_list(None) == docs
        assert await settled_month["reports"].count_documents({}) == 0

    async def test_validate_empty_month(self, test_db):
        result = await SettlementService(test_db).validate_month("2024-05")

        assert result.valid is False
        assert "No meals recorded for this month" in result.errors
        assert "No deposits recorded for this month" in result.warnings

    async def test_validate_closed_month(self, settled_month, admin):
        service = SettlementService(settled_month)
        await service.close_month(MONTH, closed_by=admin.id)

        with pytest.raises(AlreadyClosedError):
            await service.validate_month(MONTH)

    async def test_validate_warns_about_inactive_activity(self, settled_month, make_user):
        former = await make_user("Former", is_active=False)
        await add_deposit(settled_month, former, 40)

        result = await SettlementService(settled_month).validate_month(MONTH)

        assert result.valid is True
        assert any("inactive" in warning for warning in result.warnings)


@pytest.mark.asyncio
class TestReportQueries:

    async def test_month_status(self, settled_month, admin):
        service = SettlementService(settled_month)

        open_status = await service.month_status(MONTH)
        assert open_status.is_closed is False
        assert open_status.closed_at is None

        await service.close_month(MONTH, closed_by=admin.id)
        closed_status = await service.month_status(MONTH)
        assert closed_status.is_closed is True
        assert closed_status.closed_at is not None

    async def test_get_missing_report(self, test_db):
        with pytest.raises(NotFoundError):
            await SettlementService(test_db).get_report(MONTH)

    async def test_list_reports_newest_first(self, settled_month, admin, alice):
        await add_meal(settled_month, alice, 1, month="2023-12")
        await add_expense(settled_month, 90, month="2023-12")
        service = SettlementService(settled_month)

        await service.close_month("2023-12", closed_by=admin.id)
        await service.close_month(MONTH, closed_by=admin.id)

        months = [report.month for report in await service.list_reports()]
        assert months == ["2024-01", "2023-12"]
