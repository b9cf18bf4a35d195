"""Rule registries: named, ordered hook-chain composition."""

from .registry import (
    Action,
    Next,
    FlatRuleRegistry,
    TreeRuleRegistry,
    compose_actions,
    validate_action,
)

__all__ = [
    "Action",
    "Next",
    "FlatRuleRegistry",
    "TreeRuleRegistry",
    "compose_actions",
    "validate_action",
]
