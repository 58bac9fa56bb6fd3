"""
Shared fixtures.

Everything runs against fresh in-memory storage and a fixed clock, so
month bounds, deadlines and expiry are deterministic.
"""

import datetime as dt

import pytest

from farmledger.audit import ActivityLogger
from farmledger.config import LedgerSettings, ParentalSettings
from farmledger.models.parental import UserAccount, UserMode
from farmledger.services import FinancialDataManager, ParentalControlService
from farmledger.storage import create_memory_storage
from farmledger.validation import RecordValidator


# Friday
NOW = dt.datetime(2026, 10, 16, 12, 0, tzinfo=dt.timezone.utc)
TODAY = NOW.date()


class FakeClock:
    """A clock tests can move forward."""

    def __init__(self, now: dt.datetime = NOW):
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + dt.timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger_settings():
    return LedgerSettings()


@pytest.fixture
def parental_settings():
    return ParentalSettings()


@pytest.fixture
def storage(clock):
    return create_memory_storage(clock)


@pytest.fixture
def activity_logger(storage, clock):
    return ActivityLogger(storage.activities, clock=clock)


@pytest.fixture
def validator(ledger_settings, clock):
    return RecordValidator(ledger_settings, clock)


@pytest.fixture
def ledger(storage, activity_logger, validator, ledger_settings, clock):
    return FinancialDataManager(
        goals=storage.goals,
        expenses=storage.expenses,
        income=storage.income,
        budget_thresholds=storage.budget_thresholds,
        users=storage.users,
        activity_logger=activity_logger,
        validator=validator,
        settings=ledger_settings,
        clock=clock,
    )


@pytest.fixture
def parental(storage, ledger, activity_logger, validator, parental_settings, clock):
    return ParentalControlService(
        users=storage.users,
        links=storage.links,
        restrictions=storage.restrictions,
        approvals=storage.approvals,
        allowances=storage.allowances,
        chores=storage.chores,
        activities=storage.activities,
        ledger=ledger,
        activity_logger=activity_logger,
        validator=validator,
        settings=parental_settings,
        clock=clock,
    )


@pytest.fixture
async def adult(storage):
    return await storage.users.create(UserAccount(display_name="Pat", mode=UserMode.ADULT))


@pytest.fixture
async def child(storage):
    return await storage.users.create(UserAccount(display_name="Sam", mode=UserMode.CHILD))


@pytest.fixture
async def linked(parental, adult, child):
    """An adult and a child with an active link between them."""
    await parental.link_child_account(adult.id, child.id)
    return adult, child
