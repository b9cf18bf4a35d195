"""Modifier registration table.

Modifiers are resolved by ``(TokenKind, name)`` once, at compile time. The
compiler never looks a modifier up at runtime, so a routine only ever holds
bound ModifierDef objects.
"""

from typing import Any, Callable, Iterable

from ..core.models.routine import ModifierDef, TokenKind
from . import activators, processors, validators


class ModifierTable:
    """Explicit name -> implementation map, one namespace per kind."""

    def __init__(self, definitions: Iterable[ModifierDef] = ()):
        self._defs: dict[tuple[TokenKind, str], ModifierDef] = {}
        for definition in definitions:
            self._defs[(definition.kind, definition.name)] = definition

    def register(
        self,
        kind: TokenKind | str,
        name: str,
        func: Callable[..., Any],
        *,
        expression_args: tuple[int, ...] = (),
        description: str = "",
    ) -> ModifierDef:
        """Register (or replace) a modifier implementation.

        Raises:
            ValueError: If kind is not a known modifier kind
            TypeError: If func is not callable
        """
        parsed = kind if isinstance(kind, TokenKind) else TokenKind.parse(kind)
        if parsed is None:
            raise ValueError(f"Unknown modifier kind: {kind!r}")
        if not callable(func):
            raise TypeError(f"Modifier {name!r} is not callable")
        definition = ModifierDef(
            kind=parsed,
            name=name,
            func=func,
            expression_args=tuple(expression_args),
            description=description,
        )
        self._defs[(parsed, name)] = definition
        return definition

    def get(self, kind: TokenKind, name: str) -> ModifierDef | None:
        return self._defs.get((kind, name))

    def names(self, kind: TokenKind) -> list[str]:
        return [name for k, name in self._defs if k == kind]

    def copy(self) -> "ModifierTable":
        return ModifierTable(self._defs.values())

    def __contains__(self, key: tuple[TokenKind, str]) -> bool:
        return key in self._defs

    def __len__(self) -> int:
        return len(self._defs)


def _build_default_table() -> ModifierTable:
    table = ModifierTable()
    V, P, A = TokenKind.VALIDATOR, TokenKind.PROCESSOR, TokenKind.ACTIVATOR

    table.register(V, "not_empty", validators.not_empty)
    table.register(V, "min_length", validators.min_length)
    table.register(V, "max_length", validators.max_length)
    table.register(V, "matches", validators.matches)
    table.register(V, "is_email", validators.is_email)
    table.register(V, "one_of", validators.one_of)
    table.register(V, "min", validators.min_)
    table.register(V, "max", validators.max_)
    table.register(V, "equals", validators.equals)
    table.register(
        V,
        "expression",
        validators.expression,
        expression_args=(0,),
        description="Boolean expression over value and other fields",
    )

    table.register(P, "trim", processors.trim)
    table.register(P, "lower", processors.lower)
    table.register(P, "upper", processors.upper)
    table.register(P, "hash", processors.hash_)
    table.register(P, "truncate", processors.truncate)
    table.register(P, "round", processors.round_)
    table.register(
        P,
        "transform",
        processors.transform,
        expression_args=(0,),
        description="Replace value with an expression result",
    )

    table.register(A, "copy", activators.copy)
    table.register(
        A,
        "formula",
        activators.formula,
        expression_args=(0,),
        description="Derive value from an expression over other fields",
    )
    table.register(A, "concat", activators.concat)
    table.register(A, "now", activators.now)
    table.register(A, "uuid", activators.uuid)
    table.register(A, "constant", activators.constant)
    return table


DEFAULT_MODIFIERS = _build_default_table()
