"""Services package."""

from farmledger.services.ledger import FinancialDataManager, LedgerOperationError
from farmledger.services.parental import (
    LinkRejectedError,
    ParentalControlError,
    ParentalControlService,
    RelationshipError,
)

__all__ = [
    # Ledger core
    "FinancialDataManager",
    "LedgerOperationError",
    # Parental controls
    "LinkRejectedError",
    "ParentalControlError",
    "ParentalControlService",
    "RelationshipError",
]
