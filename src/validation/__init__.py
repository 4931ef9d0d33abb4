"""Entry validation for user-submitted records."""

from src.validation.validator import EntryValidator

__all__ = ["EntryValidator"]
