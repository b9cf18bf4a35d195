"""Compiled routine models.

A CompiledRoutine is the immutable output of ModifierCompiler for one
entity: an ordered tuple of Groups, each guarded once by its requirements and
holding one or more merged Operations.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable


class TokenKind(str, Enum):
    """The closed set of modifier kinds."""

    VALIDATOR = "Validator"
    PROCESSOR = "Processor"
    ACTIVATOR = "Activator"

    @classmethod
    def parse(cls, value: str) -> "TokenKind | None":
        for kind in cls:
            if kind.value.lower() == str(value).lower():
                return kind
        return None


@dataclass(frozen=True)
class ModifierDef:
    """A registered modifier implementation.

    Call conventions by kind:
    - Validator: ``func(value, *args) -> bool``
    - Processor: ``func(value, *args) -> new value``
    - Activator: ``func(*args) -> derived value``

    expression_args lists positional arg indexes that hold expressions; such
    modifiers also receive ``scope=`` (the current record values plus
    ``value``).
    """

    kind: TokenKind
    name: str
    func: Callable[..., Any]
    expression_args: tuple[int, ...] = ()
    description: str = ""

    @property
    def needs_scope(self) -> bool:
        return bool(self.expression_args)


@dataclass(frozen=True)
class ModifierCall:
    """One bound modifier invocation: definition plus declared arguments."""

    definition: ModifierDef
    args: tuple[Any, ...] = ()
    when: str | None = None

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def kind(self) -> TokenKind:
        return self.definition.kind


@dataclass(frozen=True)
class Token:
    """One compiled field-modifier invocation."""

    id: str
    kind: TokenKind
    target: str
    references: frozenset[str]
    chainable: bool
    payload: ModifierCall
    position: int = 0


@dataclass(frozen=True)
class Operation:
    """A run of adjacent chainable tokens merged into one step.

    Validators combine as a logical AND, processors as a pipeline, and
    activators keep the last applicable derivation.
    """

    kind: TokenKind
    target: str
    references: frozenset[str]
    calls: tuple[ModifierCall, ...]
    token_ids: tuple[str, ...] = ()

    @property
    def names(self) -> list[str]:
        return [call.name for call in self.calls]


@dataclass(frozen=True)
class Group:
    """Operations sharing one requirement guard."""

    target: str
    required_fields: frozenset[str]
    require_target_present: bool
    operations: tuple[Operation, ...] = field(default_factory=tuple)

    @property
    def signature(self) -> tuple[str, frozenset[str], bool]:
        return (self.target, self.required_fields, self.require_target_present)


@dataclass(frozen=True)
class CompiledRoutine:
    """The ordered, deduplicated, guarded plan for one entity."""

    entity: str
    groups: tuple[Group, ...] = ()
    order: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.groups

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity,
            "order": list(self.order),
            "groups": [
                {
                    "target": g.target,
                    "required_fields": sorted(g.required_fields),
                    "require_target_present": g.require_target_present,
                    "operations": [
                        {"kind": op.kind.value, "modifiers": op.names}
                        for op in g.operations
                    ],
                }
                for g in self.groups
            ],
        }

    def describe(self) -> str:
        """Human readable listing, one line per operation."""
        if self.is_empty:
            return f"{self.entity}: (no modifiers)"
        lines = [f"{self.entity}:"]
        for i, group in enumerate(self.groups):
            needs = sorted(group.required_fields)
            guard = ("target, " if group.require_target_present else "") + (
                ", ".join(needs) or "-"
            )
            lines.append(f"  [{i}] {group.target} (requires {guard})")
            for op in group.operations:
                chained = " & " if op.kind == TokenKind.VALIDATOR else " | "
                lines.append(f"      {op.kind.value}: {chained.join(op.names)}")
        return "\n".join(lines)
