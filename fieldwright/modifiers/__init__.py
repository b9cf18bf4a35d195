"""Built-in validators, processors and activators, and their registration table."""

from .table import ModifierTable, DEFAULT_MODIFIERS

__all__ = ["ModifierTable", "DEFAULT_MODIFIERS"]
