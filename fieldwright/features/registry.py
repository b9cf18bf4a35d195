"""Feature registration table and the shared feature rule registry.

FEATURES maps feature names to implementations. It is built once at import
from BUILTIN_FEATURES; ``register_feature`` adds more. FEATURE_RULES holds
every feature's rule actions under ``"{feature}.{rule}"`` routes.
"""

import logging

from ..rules import FlatRuleRegistry
from .base import Feature, route
from .builtin import BUILTIN_FEATURES

logger = logging.getLogger(__name__)

FEATURES: dict[str, Feature] = {}

FEATURE_RULES = FlatRuleRegistry()


def register_feature(
    feature: Feature, registry: FlatRuleRegistry | None = None
) -> None:
    """Add a feature to the table and its rules to the registry.

    Raises:
        ValueError: If a feature with the same name is already registered
    """
    if feature.name in FEATURES:
        raise ValueError(f'Feature "{feature.name}" is already registered')
    FEATURES[feature.name] = feature
    target = registry if registry is not None else FEATURE_RULES
    for rule_name, actions in feature.rules.items():
        target.add_rule(route(feature.name, rule_name), actions)
    logger.debug("Registered feature %s", feature.name)


def get_feature(name: str) -> Feature:
    """Look up a feature by name.

    Raises:
        KeyError: If the feature is not registered
    """
    try:
        return FEATURES[name]
    except KeyError:
        raise KeyError(f'Unknown feature "{name}"') from None


for _feature in BUILTIN_FEATURES:
    register_feature(_feature)
