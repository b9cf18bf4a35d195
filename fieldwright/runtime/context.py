"""Per-operation state for create/update.

An OperationContext is created for one create or update call and discarded
afterwards. ``latest`` is the value set under construction; ``existing`` is
the prior record (update only) and is exposed read-only.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from ..core.models import Entity, FeatureUse


class Mode(str, Enum):
    CREATE = "create"
    UPDATE = "update"


class MaterializerState(str, Enum):
    """States of one materialize() run, in order."""

    START = "start"
    RESOLVE_EXISTING = "resolve_existing"
    PER_FIELD_FILL = "per_field_fill"
    APPLY_ROUTINE = "apply_routine"
    POST_VALIDATION_HOOKS = "post_validation_hooks"
    DONE = "done"
    FAILED = "failed"


@dataclass
class OperationContext:
    """Input, working values and handles for one operation.

    Attributes:
        raw: Caller input
        latest: Values that will be written
        existing: Prior record (update only), read-only
        i18n: Opaque locale/i18n object passed to generators
        tx: Opaque transaction handle, owned by this operation
        where: Unique-key condition identifying the record (update only)
        mode: Create or update, set by the materializer
        state: Last MaterializerState reached
    """

    raw: dict[str, Any] = field(default_factory=dict)
    latest: dict[str, Any] = field(default_factory=dict)
    existing: Mapping[str, Any] | None = None
    i18n: Any = None
    tx: Any = None
    where: dict[str, Any] | None = None
    mode: Mode | None = None
    state: MaterializerState = MaterializerState.START

    def __post_init__(self) -> None:
        if self.existing is not None and not isinstance(self.existing, MappingProxyType):
            self.existing = MappingProxyType(dict(self.existing))

    def set_existing(self, record: Mapping[str, Any] | None) -> None:
        self.existing = None if record is None else MappingProxyType(dict(record))

    def lookup(self, name: str) -> tuple[bool, Any]:
        """Find a field's current value in latest, then existing."""
        if name in self.latest:
            return True, self.latest[name]
        if self.existing is not None and name in self.existing:
            return True, self.existing[name]
        return False, None


@dataclass
class RuleFacts:
    """What a feature rule action receives as ``facts``."""

    feature: FeatureUse
    entity: Entity
    context: OperationContext
