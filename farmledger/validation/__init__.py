"""
Validation Package

Two-stage validation for ledger records. Failures surface as a single
ValidationError listing every violated field.
"""

from farmledger.validation.validator import (
    GoalStateError,
    RecordValidator,
    ValidationError,
    ValidationIssue,
)

__all__ = [
    "GoalStateError",
    "RecordValidator",
    "ValidationError",
    "ValidationIssue",
]
