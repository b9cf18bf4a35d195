"""EntityModel: create/update an entity's records through a RecordStore.

An EntityModel binds one linked Entity to a store. It compiles the entity's
routine once and reuses it for every call. Each write runs inside a
transaction: the store transaction is begun unless the caller passes one,
and is rolled back when anything fails, so a rejected operation never
leaves a partial write.
"""

import logging
from typing import Any

from ..compiler import ModifierCompiler
from ..core.models import CompiledRoutine, Entity
from ..errors import UsageError, ValidationError
from ..features import FEATURE_RULES, RuleName
from ..rules import FlatRuleRegistry
from .context import Mode, OperationContext
from .materializer import FieldMaterializer, apply_rules
from .store import RecordStore

logger = logging.getLogger(__name__)


class EntityModel:
    """Runtime facade for one entity.

    Example:
        model = EntityModel(entity, InMemoryStore())
        user = await model.create({"name": "a"})
        await model.update({"id": user["id"], "secret": "x"})
    """

    def __init__(
        self,
        entity: Entity,
        store: RecordStore,
        *,
        compiler: ModifierCompiler | None = None,
        rules: FlatRuleRegistry | None = None,
        i18n: Any = None,
    ):
        self.entity = entity
        self.store = store
        self.rules = rules if rules is not None else FEATURE_RULES
        self.i18n = i18n
        self._compiler = compiler or ModifierCompiler()
        self._routine: CompiledRoutine | None = None
        self._materializer = FieldMaterializer(store=store, rules=self.rules)

    @property
    def routine(self) -> CompiledRoutine:
        if self._routine is None:
            self._routine = self._compiler.compile(self.entity)
        return self._routine

    @property
    def name(self) -> str:
        return self.entity.name

    async def create(self, data: dict[str, Any], tx: Any = None) -> dict[str, Any]:
        """Validate and insert a new record; returns the written values."""
        context = OperationContext(raw=dict(data), i18n=self.i18n, tx=tx)

        async def execute() -> dict[str, Any]:
            await self._materializer.materialize(
                self.entity, self.routine, context, Mode.CREATE
            )
            await apply_rules(RuleName.BEFORE_CREATE, self.entity, context, self.rules)
            return await self.store.insert(self.name, context.latest, context.tx)

        return await self._safe_execute(execute, context)

    async def update(
        self,
        data: dict[str, Any],
        where: dict[str, Any] | None = None,
        tx: Any = None,
    ) -> dict[str, Any]:
        """Validate and apply changes to an existing record.

        The record is identified by ``where`` or, when omitted, by the first
        unique key whose values are all present in ``data``.

        Returns:
            The changed values
        """
        context = OperationContext(raw=dict(data), i18n=self.i18n, tx=tx, where=where)

        async def execute() -> dict[str, Any]:
            await self._materializer.materialize(
                self.entity, self.routine, context, Mode.UPDATE
            )
            await apply_rules(RuleName.BEFORE_UPDATE, self.entity, context, self.rules)
            count = await self.store.update(
                self.name, context.latest, context.where, context.tx
            )
            if count == 0:
                raise ValidationError(
                    f'No "{self.name}" record matches {context.where}.',
                    entity=self.name,
                    rule="exists",
                )
            return context.latest

        return await self._safe_execute(execute, context)

    async def delete(self, where: dict[str, Any], tx: Any = None) -> int:
        """Delete matching records, or flag them when logical_deletion is used."""
        if not where:
            raise UsageError(
                "Empty condition is not allowed for deleting an entity.",
                entity=self.name,
            )
        flags = self.entity.features_named("logical_deletion")
        context = OperationContext(tx=tx, where=dict(where))

        async def execute() -> int:
            if flags:
                options = flags[0].options
                return await self.store.update(
                    self.name, {options["field"]: options["value"]}, context.where, context.tx
                )
            return await self.store.delete(self.name, context.where, context.tx)

        return await self._safe_execute(execute, context)

    async def find_one(self, where: dict[str, Any], tx: Any = None) -> dict[str, Any] | None:
        return await self.store.find_one(self.name, where, tx)

    async def _safe_execute(self, executor, context: OperationContext):
        if context.tx is not None:
            return await executor()

        context.tx = await self.store.begin()
        try:
            result = await executor()
        except Exception:
            await self.store.rollback(context.tx)
            logger.debug("Rolled back %s operation", self.name)
            raise
        await self.store.commit(context.tx)
        return result
