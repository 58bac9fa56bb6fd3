"""
Main Orchestrator for Finance Farm

Ties the storage backend, activity logger, ledger core and parental
policy engine together so callers get one consistent set of components.

DESIGN DECISION: Every component shares the same clock and the same
storage bundle. The policy engine only reaches the ledger through the
FinancialDataManager it is handed here, so child money always goes
through the same streak, budget and goal rules as everyone else's.
"""

import datetime as dt
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from farmledger.audit import ActivityLogger, configure_log_level
from farmledger.config import Settings, get_settings
from farmledger.models.financial import utc_now
from farmledger.services import FinancialDataManager, ParentalControlService
from farmledger.storage import StorageBundle, create_storage
from farmledger.validation import RecordValidator


logger = structlog.get_logger(__name__)


@dataclass
class AppComponents:
    """Everything an entry point needs."""

    storage: StorageBundle
    activity_logger: ActivityLogger
    ledger: FinancialDataManager
    parental: ParentalControlService

    def close(self) -> None:
        self.storage.close()


def create_app_components(
    settings: Optional[Settings] = None,
    clock: Optional[Callable[[], dt.datetime]] = None,
    storage: Optional[StorageBundle] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to build from. Defaults to the environment.
        clock: Source of "now" (aware UTC). Defaults to the system clock.
        storage: Pre-built storage bundle. Defaults to the configured backend.

    Returns:
        AppComponents wired to one storage bundle
    """
    settings = settings or get_settings()
    clock = clock or utc_now
    configure_log_level(settings.app.log_level)

    storage = storage or create_storage(settings.storage, clock)
    activity_logger = ActivityLogger(storage.activities, clock=clock)
    validator = RecordValidator(settings.ledger, clock)

    ledger = FinancialDataManager(
        goals=storage.goals,
        expenses=storage.expenses,
        income=storage.income,
        budget_thresholds=storage.budget_thresholds,
        users=storage.users,
        activity_logger=activity_logger,
        validator=validator,
        settings=settings.ledger,
        clock=clock,
    )

    parental = ParentalControlService(
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
        settings=settings.parental,
        clock=clock,
    )

    logger.info(
        "app_components_created",
        environment=settings.app.app_environment,
        backend=settings.storage.backend,
    )
    return AppComponents(
        storage=storage,
        activity_logger=activity_logger,
        ledger=ledger,
        parental=parental,
    )
