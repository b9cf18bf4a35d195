"""Entity features: link-phase field contributions and lifecycle rules."""

from .base import Feature, LinkPhase, RuleName, route
from .builtin import state_timestamp_field
from .registry import FEATURES, FEATURE_RULES, get_feature, register_feature

__all__ = [
    "Feature",
    "LinkPhase",
    "RuleName",
    "route",
    "state_timestamp_field",
    "FEATURES",
    "FEATURE_RULES",
    "get_feature",
    "register_feature",
]
