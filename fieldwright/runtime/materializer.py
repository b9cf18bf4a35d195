"""Execute a CompiledRoutine for one create or update.

FieldMaterializer walks a fixed sequence of states:

    START -> RESOLVE_EXISTING (update only) -> PER_FIELD_FILL
          -> APPLY_ROUTINE -> POST_VALIDATION_HOOKS -> DONE

and moves to FAILED on any error. Nothing is written here: the result is
the ``latest`` value set, which the caller persists only when every step
succeeded.
"""

import copy
import inspect
import logging
from typing import Any

from ..core.models import (
    CompiledRoutine,
    Entity,
    FieldDescriptor,
    FieldRef,
    Group,
    ModifierCall,
    TokenKind,
)
from ..errors import UsageError, ValidationError
from ..features import FEATURE_RULES, FEATURES, Feature, RuleName, route
from ..generators import generate_value
from ..rules import FlatRuleRegistry
from ..types import sanitize
from ..utils import FormulaError, eval_condition
from .context import MaterializerState, Mode, OperationContext, RuleFacts
from .store import RecordStore

logger = logging.getLogger(__name__)


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def apply_rules(
    rule_name: str,
    entity: Entity,
    context: OperationContext,
    rules: FlatRuleRegistry = FEATURE_RULES,
) -> None:
    """Run ``{feature}.{rule_name}`` for each feature use, in declaration order.

    Features without a rule at that point are skipped.
    """
    for use in entity.features:
        feature_route = route(use.name, rule_name)
        if rules.has_rule(feature_route):
            await rules.run(
                feature_route, RuleFacts(feature=use, entity=entity, context=context)
            )


class FieldMaterializer:
    """Runs one entity's routine against an OperationContext.

    Args:
        store: Used to load the existing record on update
        rules: Feature rule registry
        features: Feature table, consulted for ``needs_existing``
    """

    def __init__(
        self,
        store: RecordStore | None = None,
        rules: FlatRuleRegistry | None = None,
        features: dict[str, Feature] | None = None,
    ):
        self.store = store
        self.rules = rules if rules is not None else FEATURE_RULES
        self.features = features if features is not None else FEATURES

    async def materialize(
        self,
        entity: Entity,
        routine: CompiledRoutine,
        context: OperationContext,
        mode: Mode | str,
    ) -> dict[str, Any]:
        """Produce the values to persist.

        Raises:
            ValidationError: If the input violates a policy, a modifier or a
                feature check
            UsageError: If an update cannot identify or load its record
        """
        mode = Mode(mode)
        context.mode = mode
        context.latest = {}
        try:
            if mode == Mode.UPDATE:
                context.state = MaterializerState.RESOLVE_EXISTING
                await self._resolve_existing(entity, routine, context)

            context.state = MaterializerState.PER_FIELD_FILL
            await self._fill_fields(entity, context)

            context.state = MaterializerState.APPLY_ROUTINE
            await self._apply_routine(entity, routine, context)

            context.state = MaterializerState.POST_VALIDATION_HOOKS
            await apply_rules(RuleName.POST_DATA_VALIDATION, entity, context, self.rules)
            check = (
                RuleName.POST_CREATE_CHECK
                if mode == Mode.CREATE
                else RuleName.POST_UPDATE_CHECK
            )
            await apply_rules(check, entity, context, self.rules)
        except Exception:
            logger.debug(
                "%s %s failed in state %s", mode.value, entity.name, context.state.value
            )
            context.state = MaterializerState.FAILED
            raise

        context.state = MaterializerState.DONE
        return context.latest

    # =========================================================================
    # ResolveExisting
    # =========================================================================

    async def _resolve_existing(
        self, entity: Entity, routine: CompiledRoutine, context: OperationContext
    ) -> None:
        raw = dict(context.raw)
        if context.where is None:
            key = entity.unique_key_in(raw)
            if key is None:
                raise UsageError(
                    "Primary key value(s) or at least one group of unique key "
                    "value(s) is required for updating an entity.",
                    entity=entity.name,
                )
            context.where = {name: raw.pop(name) for name in key}
        context.raw = raw

        if context.existing is not None:
            return
        if not self._needs_existing(entity, routine, raw):
            return
        if self.store is None:
            raise UsageError(
                "A record store is required to load the existing record.",
                entity=entity.name,
            )

        record = await self.store.find_one(entity.name, context.where, context.tx)
        if record is None:
            raise ValidationError(
                f'No "{entity.name}" record matches {context.where}.',
                entity=entity.name,
                rule="exists",
            )
        context.set_existing(record)
        logger.debug("Loaded existing %s where %s", entity.name, context.where)

    def _needs_existing(
        self, entity: Entity, routine: CompiledRoutine, raw: dict[str, Any]
    ) -> bool:
        for name in raw:
            descriptor = entity.fields.get(name)
            if descriptor is not None and descriptor.write_once:
                return True

        changing = set(raw) | {
            f.name for f in entity.fields.values() if f.force_update and f.auto
        }
        for group in routine.groups:
            if group.require_target_present:
                runs = group.target in changing
            else:
                runs = bool(group.required_fields & changing)
            if not runs:
                continue
            if not group.required_fields <= set(raw):
                return True
            # a derived write-once value may only be set while still empty
            target = entity.fields.get(group.target)
            if not group.require_target_present and target is not None and target.write_once:
                return True

        for use in entity.features:
            feature = self.features.get(use.name)
            if feature and feature.needs_existing and feature.needs_existing(use.options, raw):
                return True
        return False

    # =========================================================================
    # PerFieldFill
    # =========================================================================

    async def _fill_fields(self, entity: Entity, context: OperationContext) -> None:
        raw, latest = context.raw, context.latest
        updating = context.mode == Mode.UPDATE

        unknown = [name for name in raw if not entity.has_field(name)]
        if unknown:
            logger.warning("Ignoring unknown field(s) for %s: %s", entity.name, unknown)

        for name, field in entity.fields.items():
            if name in raw:
                if field.read_only:
                    raise ValidationError(
                        f'Read-only field "{name}" is not allowed to be set by manual input.',
                        entity=entity.name,
                        field=name,
                        rule="read_only",
                    )
                if (
                    updating
                    and field.write_once
                    and context.existing is not None
                    and context.existing.get(name) is not None
                ):
                    raise ValidationError(
                        f'Write-once field "{name}" is not allowed to be updated once it was set.',
                        entity=entity.name,
                        field=name,
                        rule="write_once",
                    )

                value = raw[name]
                if value is None:
                    if not field.optional:
                        raise ValidationError(
                            f'The "{name}" value of "{entity.name}" entity cannot be null.',
                            entity=entity.name,
                            field=name,
                            rule="not_null",
                        )
                    latest[name] = None
                    continue
                try:
                    latest[name] = sanitize(value, field)
                except ValueError as e:
                    raise ValidationError(
                        f'Invalid value for "{name}": {e}',
                        entity=entity.name,
                        field=name,
                        rule="type",
                    ) from e
                continue

            if updating:
                if (
                    field.write_once
                    and context.existing is not None
                    and context.existing.get(name) is not None
                ):
                    continue
                if field.force_update:
                    if field.update_by_db:
                        continue
                    if field.auto:
                        latest[name] = await self._generate(entity, field, context)
                        continue
                    raise ValidationError(
                        f'"{name}" of "{entity.name}" entity is required for each update.',
                        entity=entity.name,
                        field=name,
                        rule="force_update",
                    )
                continue

            if field.create_by_db:
                continue
            if field.has_default:
                latest[name] = copy.deepcopy(field.default)
            elif field.auto:
                latest[name] = await self._generate(entity, field, context)
            elif not field.optional:
                raise ValidationError(
                    f'"{name}" of "{entity.name}" entity is required.',
                    entity=entity.name,
                    field=name,
                    rule="required",
                )

    @staticmethod
    async def _generate(
        entity: Entity, field: FieldDescriptor, context: OperationContext
    ) -> Any:
        try:
            return await _resolve(generate_value(field, context.i18n))
        except (KeyError, ValueError) as e:
            raise ValidationError(
                f'Cannot generate a value for "{field.name}": {e}',
                entity=entity.name,
                field=field.name,
                rule="generator",
            ) from e

    # =========================================================================
    # ApplyRoutine
    # =========================================================================

    async def _apply_routine(
        self, entity: Entity, routine: CompiledRoutine, context: OperationContext
    ) -> None:
        for group in routine.groups:
            if not self._should_run(entity, group, context):
                continue

            missing = [
                name
                for name in sorted(group.required_fields)
                if not context.lookup(name)[0]
            ]
            if missing:
                raise ValidationError(
                    f'"{group.target}" depends on missing field(s): {", ".join(missing)}',
                    entity=entity.name,
                    field=group.target,
                    rule="dependency",
                    missing=missing,
                )

            for op in group.operations:
                await self._run_operation(entity, op.kind, group.target, op.calls, context)

    @staticmethod
    def _should_run(entity: Entity, group: Group, context: OperationContext) -> bool:
        latest = context.latest
        changed_refs = any(name in latest for name in group.required_fields)

        if group.require_target_present:
            if latest.get(group.target) is not None:
                return True
            # explicit null on an optional field
            if group.target in latest:
                return False
            if context.mode == Mode.UPDATE and changed_refs:
                raise ValidationError(
                    f'"{group.target}" is required due to change of its dependencies.',
                    entity=entity.name,
                    field=group.target,
                    rule="dependency",
                )
            return False

        # caller input wins over derivation
        if group.target in latest:
            return False
        if context.mode == Mode.UPDATE:
            target = entity.fields.get(group.target)
            if (
                target is not None
                and target.write_once
                and context.existing is not None
                and context.existing.get(group.target) is not None
            ):
                return False
            return changed_refs
        return True

    async def _run_operation(
        self,
        entity: Entity,
        kind: TokenKind,
        target: str,
        calls: tuple[ModifierCall, ...],
        context: OperationContext,
    ) -> None:
        latest = context.latest
        scope = {**(context.existing or {}), **latest}

        if kind == TokenKind.VALIDATOR:
            value = latest[target]
            for call in calls:
                ok = await self._invoke(entity, target, call, scope, value)
                if not ok:
                    raise ValidationError(
                        f'Invalid "{target}": {call.name} check failed.',
                        entity=entity.name,
                        field=target,
                        rule=call.name,
                    )

        elif kind == TokenKind.PROCESSOR:
            value = latest[target]
            for call in calls:
                value = await self._invoke(entity, target, call, scope, value)
                scope[target] = value
            latest[target] = value

        else:
            for call in reversed(calls):
                if call.when is not None and not self._condition(entity, target, call, scope):
                    continue
                latest[target] = await self._invoke(entity, target, call, scope)
                break

    def _condition(
        self, entity: Entity, target: str, call: ModifierCall, scope: dict[str, Any]
    ) -> bool:
        try:
            return eval_condition(call.when, scope)
        except FormulaError as e:
            raise ValidationError(
                f'Condition "{call.when}" of {call.name} on "{target}" failed: {e}',
                entity=entity.name,
                field=target,
                rule=call.name,
            ) from e

    async def _invoke(
        self,
        entity: Entity,
        target: str,
        call: ModifierCall,
        scope: dict[str, Any],
        *value: Any,
    ) -> Any:
        args = [scope.get(a.ref) if isinstance(a, FieldRef) else a for a in call.args]
        kwargs = {"scope": scope} if call.definition.needs_scope else {}
        try:
            return await _resolve(call.definition.func(*value, *args, **kwargs))
        except (FormulaError, TypeError, ValueError) as e:
            raise ValidationError(
                f'{call.kind.value} {call.name} on "{target}" failed: {e}',
                entity=entity.name,
                field=target,
                rule=call.name,
            ) from e


async def materialize(
    entity: Entity,
    routine: CompiledRoutine,
    context: OperationContext,
    mode: Mode | str,
    store: RecordStore | None = None,
) -> dict[str, Any]:
    """Materialize with the default feature rules."""
    return await FieldMaterializer(store=store).materialize(entity, routine, context, mode)
