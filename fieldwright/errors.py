"""Exception hierarchy for fieldwright.

Every error carries structured diagnostic context in ``info`` so callers
(CLI, HTTP layers, tests) can report the entity, field and rule involved
without parsing messages.

- CompileError: an entity declaration cannot be compiled
- ValidationError: a create/update operation was rejected
- RuleChainError: a rule chain was misused (double next(), unknown route)
- UsageError: the API was called in an unsupported way
"""

from typing import Any


class FieldwrightError(Exception):
    """Base class for all fieldwright errors."""

    def __init__(self, message: str, **info: Any):
        super().__init__(message)
        self.message = message
        self.info = {k: v for k, v in info.items() if v is not None}

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "message": self.message, **self.info}


class CompileError(FieldwrightError):
    """Raised when an entity's modifiers cannot be compiled into a routine.

    Attributes:
        entity: Name of the entity being compiled
        nodes: Offending token ids (e.g. the nodes left in a cycle)
        fields: Offending field names
    """

    def __init__(
        self,
        message: str,
        *,
        entity: str | None = None,
        nodes: list[str] | None = None,
        fields: list[str] | None = None,
        **info: Any,
    ):
        super().__init__(message, entity=entity, nodes=nodes, fields=fields, **info)
        self.entity = entity
        self.nodes = list(nodes or [])
        self.fields = list(fields or [])


class ValidationError(FieldwrightError):
    """Raised when input data fails validation during create/update."""

    def __init__(
        self,
        message: str,
        *,
        entity: str | None = None,
        field: str | None = None,
        rule: str | None = None,
        **info: Any,
    ):
        super().__init__(message, entity=entity, field=field, rule=rule, **info)
        self.entity = entity
        self.field = field
        self.rule = rule


class RuleChainError(FieldwrightError):
    """Raised when a rule chain is misused."""


class RuleRouteError(RuleChainError):
    """Raised when running a route or path that has no registered node."""


class UsageError(FieldwrightError):
    """Raised on unsupported usage patterns, e.g. update without a unique key."""
