"""Link an EntitySpec into a frozen Entity.

EntityBuilder is a one-shot object: it copies the declaration, runs each
declared feature's link callbacks in fixed phase order, resolves field types
and keys, and returns an immutable Entity. Calling build() twice is an error.

Phase order:
1. LinkPhase.BEFORE_FIELDS for every feature use (declaration order)
2. declared fields are added
3. LinkPhase.AFTER_FIELDS for every feature use
4. LinkPhase.FINALIZE for every feature use
"""

import logging
from types import MappingProxyType
from typing import Any

from ..core.models import Entity, EntitySpec, FeatureUse, FieldDescriptor, FieldSpec
from ..errors import CompileError, UsageError
from ..features import FEATURES, Feature, LinkPhase
from ..generators import GENERATORS
from ..types import resolve_type

logger = logging.getLogger(__name__)


class EntityBuilder:
    """Short-lived builder turning one EntitySpec into an Entity."""

    def __init__(self, spec: EntitySpec, features: dict[str, Feature] | None = None):
        self.spec = spec
        self._features = features if features is not None else FEATURES
        self._fields: dict[str, FieldSpec] = {}
        self._key: tuple[str, ...] = ()
        self._uses: list[tuple[Feature, FeatureUse]] = []
        self._built = False

    @property
    def entity_name(self) -> str:
        return self.spec.name

    # -------------------------------------------------------------------------
    # API used by feature link callbacks
    # -------------------------------------------------------------------------

    def add_field(self, field: FieldSpec) -> None:
        if field.name in self._fields:
            raise ValueError(f'Field "{field.name}" is already defined')
        self._fields[field.name] = field

    def has_field(self, name: str) -> bool:
        return name in self._fields

    def get_field(self, name: str) -> FieldSpec:
        return self._fields[name]

    def update_field(self, name: str, **updates: Any) -> None:
        self._fields[name] = self._fields[name].model_copy(update=updates)

    def set_key(self, *names: str) -> None:
        self._key = tuple(names)

    # -------------------------------------------------------------------------
    # Build
    # -------------------------------------------------------------------------

    def build(self) -> Entity:
        """Link the declaration.

        Raises:
            CompileError: On unknown features, invalid feature options,
                duplicate or unknown fields, unknown types or bad keys
            UsageError: If called more than once
        """
        if self._built:
            raise UsageError("EntityBuilder.build() can only be called once")
        self._built = True

        self._resolve_features()
        self._run_phase(LinkPhase.BEFORE_FIELDS)
        for field in self.spec.fields:
            try:
                self.add_field(field)
            except ValueError as e:
                raise CompileError(
                    str(e), entity=self.entity_name, fields=[field.name]
                ) from e
        self._run_phase(LinkPhase.AFTER_FIELDS)
        self._run_phase(LinkPhase.FINALIZE)

        descriptors = {name: self._describe(f) for name, f in self._fields.items()}
        key, unique_keys = self._resolve_keys()

        entity = Entity(
            name=self.entity_name,
            fields=MappingProxyType(descriptors),
            features=tuple(use for _, use in self._uses),
            key=key,
            unique_keys=unique_keys,
        )
        logger.debug(
            "Linked entity %s: %d field(s), features=%s",
            entity.name,
            len(descriptors),
            [f.name for f in entity.features],
        )
        return entity

    def _resolve_features(self) -> None:
        seen: set[str] = set()
        for declared in self.spec.features:
            feature = self._features.get(declared.name)
            if feature is None:
                raise CompileError(
                    f'Unknown feature "{declared.name}"',
                    entity=self.entity_name,
                    feature=declared.name,
                )
            if declared.name in seen and not feature.allow_multiple:
                raise CompileError(
                    f'Feature "{declared.name}" may only be used once',
                    entity=self.entity_name,
                    feature=declared.name,
                )
            seen.add(declared.name)
            try:
                options = feature.normalize(declared.options)
            except ValueError as e:
                raise CompileError(
                    f'Invalid options for feature "{declared.name}": {e}',
                    entity=self.entity_name,
                    feature=declared.name,
                ) from e
            self._uses.append((feature, FeatureUse(name=declared.name, options=options)))

    def _run_phase(self, phase: LinkPhase) -> None:
        for feature, use in self._uses:
            callback = feature.phases.get(phase)
            if callback is None:
                continue
            try:
                callback(self, use.options)
            except ValueError as e:
                raise CompileError(
                    f'Feature "{use.name}" failed during {phase.value}: {e}',
                    entity=self.entity_name,
                    feature=use.name,
                ) from e

    def _describe(self, field: FieldSpec) -> FieldDescriptor:
        try:
            type_name = resolve_type(field.type).name
        except KeyError as e:
            raise CompileError(
                f'Unknown type "{field.type}" for field "{field.name}"',
                entity=self.entity_name,
                fields=[field.name],
            ) from e
        if type_name == "enum" and not field.values:
            raise CompileError(
                f'Enum field "{field.name}" declares no values',
                entity=self.entity_name,
                fields=[field.name],
            )
        if field.generator is not None and field.generator not in GENERATORS:
            raise CompileError(
                f'Unknown generator "{field.generator}" for field "{field.name}"',
                entity=self.entity_name,
                fields=[field.name],
            )
        return FieldDescriptor(
            name=field.name,
            type=type_name,
            optional=field.optional,
            read_only=field.read_only,
            write_once=field.write_once,
            auto=field.auto,
            force_update=field.force_update,
            update_by_db=field.update_by_db,
            create_by_db=field.create_by_db,
            default=field.default,
            has_default=field.has_default,
            generator=field.generator,
            generator_options=MappingProxyType(dict(field.generator_options)),
            max_length=field.max_length,
            fixed_length=field.fixed_length,
            values=tuple(field.values) if field.values is not None else None,
            display_name=field.comment or field.name,
            modifiers=tuple(field.modifiers),
        )

    def _resolve_keys(self) -> tuple[tuple[str, ...], tuple[tuple[str, ...], ...]]:
        if self.spec.key is not None:
            key = (self.spec.key,) if isinstance(self.spec.key, str) else tuple(self.spec.key)
        else:
            key = self._key

        unique_keys: list[tuple[str, ...]] = [key] if key else []
        for index in self.spec.indexes:
            if index.unique and tuple(index.fields) not in unique_keys:
                unique_keys.append(tuple(index.fields))

        for fields in unique_keys:
            missing = [f for f in fields if f not in self._fields]
            if missing:
                raise CompileError(
                    f"Key references unknown field(s): {', '.join(missing)}",
                    entity=self.entity_name,
                    fields=missing,
                )
        return key, tuple(unique_keys)


def build_entity(spec: EntitySpec) -> Entity:
    """Link a declaration with the default feature table."""
    return EntityBuilder(spec).build()
