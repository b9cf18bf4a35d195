"""Compile an entity's modifier pipelines into one CompiledRoutine.

Steps:
1. Tokenize: one Token per modifier, fields and modifiers in declaration
   order. References come from ``{ref: field}`` arguments, the declared
   ``field_references``, and free names in expression arguments and
   ``when`` conditions.
2. Graph: each field's tokens are chained in order, and the last token of
   field X precedes every other-field token that references X.
3. Sort: DependencyGraph.sort(); a cycle is a CompileError naming the
   token ids and fields involved.
4. Merge: adjacent chainable tokens with the same kind and target become
   one Operation.
5. Group: consecutive operations with the same
   ``(target, references, require_target_present)`` share one guard.
"""

import logging
from collections.abc import Iterable

from ..config import get_config
from ..core.models import (
    CompiledRoutine,
    Entity,
    FieldRef,
    Group,
    ModifierCall,
    ModifierSpec,
    Operation,
    Token,
    TokenKind,
)
from ..errors import CompileError
from ..modifiers import DEFAULT_MODIFIERS, ModifierTable
from ..utils import (
    CircularDependencyError,
    DependencyGraph,
    extract_field_references,
    validate_expression_syntax,
)

logger = logging.getLogger(__name__)


def token_id(field: str, position: int, name: str) -> str:
    return f"{field}~{position}:{name}"


class ModifierCompiler:
    """Turns a linked Entity into a CompiledRoutine.

    Compilation is pure: compiling the same entity twice yields equal
    routines, so callers may cache the result per entity.
    """

    def __init__(
        self, table: ModifierTable | None = None, merge_chains: bool | None = None
    ):
        self.table = table if table is not None else DEFAULT_MODIFIERS
        self.merge_chains = (
            merge_chains
            if merge_chains is not None
            else get_config().compiler.merge_chains
        )

    def compile(self, entity: Entity) -> CompiledRoutine:
        """Compile every field's modifiers.

        Raises:
            CompileError: On unsupported modifiers, unknown or self references,
                invalid expressions, or cyclic dependencies
        """
        tokens = self._tokenize(entity)
        if not tokens:
            logger.debug("Entity %s has no modifiers", entity.name)
            return CompiledRoutine(entity=entity.name)

        by_id = {t.id: t for t in tokens}
        graph = self._build_graph(tokens)
        try:
            order = graph.sort()
        except CircularDependencyError as e:
            fields = list(dict.fromkeys(by_id[node].target for node in e.nodes))
            raise CompileError(
                f'Circular modifier dependency in entity "{entity.name}" '
                f"between fields: {', '.join(fields)}",
                entity=entity.name,
                nodes=[str(n) for n in e.nodes],
                fields=fields,
            ) from e

        logger.debug("Compiled order for %s: %s", entity.name, order)
        sorted_tokens = [by_id[node] for node in order]
        operations = self._merge(sorted_tokens)
        return CompiledRoutine(
            entity=entity.name,
            groups=self._group(operations),
            order=tuple(order),
        )

    # -------------------------------------------------------------------------
    # Tokenize
    # -------------------------------------------------------------------------

    def _tokenize(self, entity: Entity) -> list[Token]:
        tokens: list[Token] = []
        for field in entity.fields.values():
            for position, spec in enumerate(field.modifiers):
                tokens.append(self._make_token(entity, field.name, position, spec))
        return tokens

    def _make_token(
        self, entity: Entity, target: str, position: int, spec: ModifierSpec
    ) -> Token:
        def fail(message: str, **info) -> CompileError:
            return CompileError(
                message,
                entity=entity.name,
                fields=[target],
                modifier=spec.name,
                **info,
            )

        kind = TokenKind.parse(spec.kind)
        if kind is None:
            raise fail(f'unsupported modifier kind "{spec.kind}" on field "{target}"')
        definition = self.table.get(kind, spec.name)
        if definition is None:
            raise fail(
                f'unsupported modifier {kind.value} "{spec.name}" on field "{target}"'
            )

        references: list[str] = []
        for arg in spec.args:
            if isinstance(arg, FieldRef):
                if arg.ref == target:
                    raise fail(f'modifier "{spec.name}" on "{target}" references itself')
                references.append(arg.ref)
        for name in spec.field_references:
            if name == target:
                raise fail(f'modifier "{spec.name}" on "{target}" references itself')
            references.append(name)

        expressions: list[str] = []
        for index in definition.expression_args:
            if index >= len(spec.args) or not isinstance(spec.args[index], str):
                raise fail(f'modifier "{spec.name}" expects an expression argument')
            expressions.append(spec.args[index])

        if spec.when is not None:
            if kind != TokenKind.ACTIVATOR:
                raise fail(f'"when" is only supported on activators, not "{spec.name}"')
            expressions.append(spec.when)

        for expr in expressions:
            error = validate_expression_syntax(expr)
            if error:
                raise fail(f'invalid expression "{expr}" on "{target}": {error}')
            # the target's own name in an expression reads its current value
            references.extend(n for n in extract_field_references(expr) if n != target)

        unknown = [name for name in references if not entity.has_field(name)]
        if unknown:
            raise CompileError(
                f'modifier "{spec.name}" on "{target}" references unknown field(s): '
                f"{', '.join(dict.fromkeys(unknown))}",
                entity=entity.name,
                fields=list(dict.fromkeys(unknown)),
                modifier=spec.name,
            )

        return Token(
            id=token_id(target, position, spec.name),
            kind=kind,
            target=target,
            references=frozenset(references),
            chainable=spec.chainable,
            payload=ModifierCall(
                definition=definition, args=tuple(spec.args), when=spec.when
            ),
            position=position,
        )

    # -------------------------------------------------------------------------
    # Graph
    # -------------------------------------------------------------------------

    @staticmethod
    def _build_graph(tokens: list[Token]) -> DependencyGraph:
        graph = DependencyGraph()
        last_of: dict[str, str] = {}
        for token in tokens:
            graph.add_node(token.id)
            previous = last_of.get(token.target)
            if previous is not None:
                graph.add_edge(previous, token.id)
            last_of[token.target] = token.id

        for token in tokens:
            for ref in sorted(token.references):
                finalizer = last_of.get(ref)
                if finalizer is not None:
                    graph.add_edge(finalizer, token.id)
        return graph

    # -------------------------------------------------------------------------
    # Merge and group
    # -------------------------------------------------------------------------

    def _merge(self, tokens: list[Token]) -> list[Operation]:
        operations: list[Operation] = []
        previous: Token | None = None
        for token in tokens:
            mergeable = (
                self.merge_chains
                and previous is not None
                and previous.chainable
                and token.chainable
                and previous.kind == token.kind
                and previous.target == token.target
            )
            if mergeable:
                last = operations[-1]
                operations[-1] = Operation(
                    kind=last.kind,
                    target=last.target,
                    references=last.references | token.references,
                    calls=last.calls + (token.payload,),
                    token_ids=last.token_ids + (token.id,),
                )
            else:
                operations.append(
                    Operation(
                        kind=token.kind,
                        target=token.target,
                        references=token.references,
                        calls=(token.payload,),
                        token_ids=(token.id,),
                    )
                )
            previous = token
        return operations

    @staticmethod
    def _group(operations: list[Operation]) -> tuple[Group, ...]:
        groups: list[Group] = []
        for op in operations:
            signature = (op.target, op.references, op.kind != TokenKind.ACTIVATOR)
            if groups and groups[-1].signature == signature:
                last = groups[-1]
                groups[-1] = Group(
                    target=last.target,
                    required_fields=last.required_fields,
                    require_target_present=last.require_target_present,
                    operations=last.operations + (op,),
                )
            else:
                groups.append(
                    Group(
                        target=op.target,
                        required_fields=op.references,
                        require_target_present=signature[2],
                        operations=(op,),
                    )
                )
        return tuple(groups)


def compile_entity(entity: Entity) -> CompiledRoutine:
    """Compile with the default modifier table and configured merge setting."""
    return ModifierCompiler().compile(entity)


def compile_many(
    entities: Iterable[Entity], compiler: ModifierCompiler | None = None
) -> tuple[dict[str, CompiledRoutine], dict[str, CompileError]]:
    """Compile entities independently.

    A CompileError in one entity is collected and does not stop the others.

    Returns:
        Tuple of (routines by entity name, errors by entity name)
    """
    compiler = compiler or ModifierCompiler()
    routines: dict[str, CompiledRoutine] = {}
    errors: dict[str, CompileError] = {}
    for entity in entities:
        try:
            routines[entity.name] = compiler.compile(entity)
        except CompileError as e:
            logger.warning("Failed to compile %s: %s", entity.name, e)
            errors[entity.name] = e
    return routines, errors
