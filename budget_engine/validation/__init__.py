"""Validation package."""

from budget_engine.validation.validator import RuleValidator

__all__ = ["RuleValidator"]
