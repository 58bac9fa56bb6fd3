"""
Finance Farm Ledger - Source Package

The gamified financial ledger and policy engine behind the Finance Farm
app: savings goals ("crops"), expenses ("weeds"), income ("fertilizer"),
income streaks, budget alerts, and parental controls for child accounts.

DESIGN PRINCIPLES:
1. Validate before anything is written
2. Derived values (streaks, multipliers, alerts) are computed, never supplied
3. Child actions that break a restriction wait for a parent
4. Storage layer is swappable
5. Every child-facing action is recorded
"""

__version__ = "1.0.0"
__author__ = "Finance Farm Team"
