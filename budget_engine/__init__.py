"""
Budget Engine - Source Package

A month-grain budgeting engine for personal finance profiles:
accounts, recurring income/expense rules and a ledger of actuals.

DESIGN PRINCIPLES:
1. History is never rewritten: edits split rules at month boundaries
2. Planned numbers are calendar-accurate for the month being asked about
3. Reads recompute from the store, nothing is cached in-process
4. Multi-row writes are atomic
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Budget Engine Team"
