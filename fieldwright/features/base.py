"""Feature definitions: link phases, rule names and the Feature record.

A feature is a named entity-level capability. It may contribute fields while
an entity is being linked (through explicit LinkPhase callbacks run by
EntityBuilder) and rule actions run by the materializer at fixed lifecycle
points (RuleName).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping


class LinkPhase(str, Enum):
    """Ordered phases of one entity link, run in declaration order."""

    BEFORE_FIELDS = "before_fields"
    AFTER_FIELDS = "after_fields"
    FINALIZE = "finalize"


class RuleName:
    """Lifecycle points at which feature rules run.

    Routes in the feature registry are ``"{feature}.{rule}"``.
    """

    BEFORE_CREATE = "before_create"
    BEFORE_UPDATE = "before_update"
    POST_DATA_VALIDATION = "post_data_validation"
    POST_CREATE_CHECK = "post_create_check"
    POST_UPDATE_CHECK = "post_update_check"


def route(feature: str, rule: str) -> str:
    return f"{feature}.{rule}"


PhaseCallback = Callable[[Any, Any], None]


@dataclass(frozen=True)
class Feature:
    """A registered feature implementation.

    Attributes:
        name: Feature name used in declarations
        normalize: Turns declared options into the stored form; raises
            ValueError on invalid options
        phases: Link callbacks ``callback(builder, options)`` per phase
        rules: Rule actions per RuleName
        allow_multiple: Whether an entity may declare the feature more than once
        needs_existing: ``needs_existing(options, raw)`` tells the
            materializer an update must load the existing record
    """

    name: str
    normalize: Callable[[Any], Any] = lambda options: options
    phases: Mapping[LinkPhase, PhaseCallback] = field(default_factory=dict)
    rules: Mapping[str, list[Callable]] = field(default_factory=dict)
    allow_multiple: bool = False
    needs_existing: Callable[[Any, Mapping[str, Any]], bool] | None = None
