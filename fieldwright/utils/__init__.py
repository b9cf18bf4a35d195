"""Pure utility functions for fieldwright.

These modules have no dependencies on fieldwright models, so they can be
imported from anywhere without circular import risk.

Modules:
- graphs: DependencyGraph, topological sort and cycle detection
- expressions: expression safety validation and field reference extraction
- eval_safe: restricted expression evaluation
"""

from .graphs import DependencyGraph, CircularDependencyError, topological_sort
from .expressions import (
    VALUE_NAME,
    extract_field_references,
    validate_expression_syntax,
)
from .eval_safe import eval_safe, eval_condition, FormulaError, SAFE_BUILTINS

__all__ = [
    # Graphs
    "DependencyGraph",
    "CircularDependencyError",
    "topological_sort",
    # Expressions
    "VALUE_NAME",
    "extract_field_references",
    "validate_expression_syntax",
    # Eval
    "eval_safe",
    "eval_condition",
    "FormulaError",
    "SAFE_BUILTINS",
]
