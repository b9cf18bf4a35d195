"""Built-in entity features.

- auto_id: adds an auto-generated, read-only key field (default ``id``)
- create_timestamp: adds ``created_at``, generated on create
- update_timestamp: adds ``updated_at``, refreshed on every update
- logical_deletion: marks records deleted through a flag field
- at_least_one_not_null: at least one of the listed fields must hold a value
- state_tracking: stamps ``{field}_{state}_timestamp`` when an enum state is set
- i18n: adds one copy of a field per locale suffix
"""

import inspect
import logging
from typing import Any

from ..core.models.entity import FieldSpec
from ..errors import ValidationError
from ..generators import generate_value
from .base import Feature, LinkPhase, RuleName

logger = logging.getLogger(__name__)


def _field_options(options: Any, defaults: dict[str, Any]) -> dict[str, Any]:
    """Merge feature options (a field name or a dict of field settings) onto defaults."""
    merged = dict(defaults)
    if options is None:
        return merged
    if isinstance(options, str):
        merged["name"] = options
        return merged
    if isinstance(options, dict):
        merged.update(options)
        return merged
    raise ValueError(f"Expected a field name or a mapping, got {options!r}")


# =============================================================================
# auto_id
# =============================================================================


def _auto_id_normalize(options: Any) -> dict[str, Any]:
    return _field_options(
        options,
        {
            "name": "id",
            "type": "integer",
            "auto": True,
            "read_only": True,
            "write_once": True,
        },
    )


def _auto_id_before_fields(builder, options: dict[str, Any]) -> None:
    builder.add_field(FieldSpec(**options))
    builder.set_key(options["name"])


AUTO_ID = Feature(
    name="auto_id",
    normalize=_auto_id_normalize,
    phases={LinkPhase.BEFORE_FIELDS: _auto_id_before_fields},
)


# =============================================================================
# create_timestamp / update_timestamp
# =============================================================================


def _create_timestamp_normalize(options: Any) -> dict[str, Any]:
    return _field_options(
        options,
        {
            "name": "created_at",
            "type": "datetime",
            "auto": True,
            "read_only": True,
            "write_once": True,
        },
    )


def _update_timestamp_normalize(options: Any) -> dict[str, Any]:
    return _field_options(
        options,
        {
            "name": "updated_at",
            "type": "datetime",
            "auto": True,
            "read_only": True,
            "optional": True,
            "force_update": True,
        },
    )


def _add_field_after(builder, options: dict[str, Any]) -> None:
    builder.add_field(FieldSpec(**options))


CREATE_TIMESTAMP = Feature(
    name="create_timestamp",
    normalize=_create_timestamp_normalize,
    phases={LinkPhase.AFTER_FIELDS: _add_field_after},
)

UPDATE_TIMESTAMP = Feature(
    name="update_timestamp",
    normalize=_update_timestamp_normalize,
    phases={LinkPhase.AFTER_FIELDS: _add_field_after},
)


# =============================================================================
# logical_deletion
# =============================================================================


def _logical_deletion_normalize(options: Any) -> dict[str, Any]:
    """``None`` or a name adds a boolean flag; ``{field: value}`` reuses a field."""
    if options is None or isinstance(options, str):
        return {"field": options or "is_deleted", "value": True, "new_field": True}
    if isinstance(options, dict) and len(options) == 1:
        name, value = next(iter(options.items()))
        return {"field": name, "value": value, "new_field": False}
    raise ValueError(f"Invalid logical_deletion options: {options!r}")


def _logical_deletion_after_fields(builder, options: dict[str, Any]) -> None:
    if options["new_field"]:
        builder.add_field(
            FieldSpec(
                name=options["field"], type="boolean", default=False, read_only=True
            )
        )
    elif not builder.has_field(options["field"]):
        raise ValueError(
            f'Field "{options["field"]}" used by logical_deletion does not exist'
        )


LOGICAL_DELETION = Feature(
    name="logical_deletion",
    normalize=_logical_deletion_normalize,
    phases={LinkPhase.AFTER_FIELDS: _logical_deletion_after_fields},
)


# =============================================================================
# at_least_one_not_null
# =============================================================================


def _at_least_one_normalize(options: Any) -> list[str]:
    if not options:
        raise ValueError("at_least_one_not_null requires field names")
    fields = [options] if isinstance(options, str) else list(options)
    return fields


def _at_least_one_finalize(builder, fields: list[str]) -> None:
    for name in fields:
        if not builder.has_field(name):
            raise ValueError(f'Field "{name}" used by at_least_one_not_null does not exist')
        builder.update_field(name, optional=True)


def _at_least_one_error(facts) -> ValidationError:
    fields = facts.feature.options
    listed = ", ".join(f'"{f}"' for f in fields)
    return ValidationError(
        f"At least one of these fields {listed} should not be null.",
        entity=facts.entity.name,
        rule="at_least_one_not_null",
        fields=list(fields),
    )


def _at_least_one_create_check(facts, next):
    latest = facts.context.latest
    if all(latest.get(name) is None for name in facts.feature.options):
        raise _at_least_one_error(facts)
    return next()


def _at_least_one_update_check(facts, next):
    latest = facts.context.latest
    existing = facts.context.existing

    def is_null(name: str) -> bool:
        if name in latest:
            return latest[name] is None
        # Unchanged and not loaded: the stored record already passed this check
        if existing is None:
            return False
        return existing.get(name) is None

    if all(is_null(name) for name in facts.feature.options):
        raise _at_least_one_error(facts)
    return next()


def _at_least_one_needs_existing(fields: list[str], raw) -> bool:
    return any(name in raw and raw[name] is None for name in fields)


AT_LEAST_ONE_NOT_NULL = Feature(
    name="at_least_one_not_null",
    normalize=_at_least_one_normalize,
    phases={LinkPhase.FINALIZE: _at_least_one_finalize},
    rules={
        RuleName.POST_CREATE_CHECK: [_at_least_one_create_check],
        RuleName.POST_UPDATE_CHECK: [_at_least_one_update_check],
    },
    allow_multiple=True,
    needs_existing=_at_least_one_needs_existing,
)


# =============================================================================
# state_tracking
# =============================================================================


def state_timestamp_field(field: str, state: str) -> str:
    return f"{field}_{state}_timestamp"


def _state_tracking_normalize(options: Any) -> dict[str, Any]:
    if isinstance(options, str):
        options = {"field": options}
    if not isinstance(options, dict) or not options.get("field"):
        raise ValueError("state_tracking requires a field name")
    return {"field": options["field"], "reversible": bool(options.get("reversible"))}


def _state_tracking_after_fields(builder, options: dict[str, Any]) -> None:
    name = options["field"]
    if not builder.has_field(name):
        raise ValueError(f'Field "{name}" used by state_tracking does not exist')
    tracked = builder.get_field(name)
    if tracked.type != "enum" or not tracked.values:
        raise ValueError("Only an enum field with values can be used with state_tracking")
    for state in tracked.values:
        builder.add_field(
            FieldSpec(
                name=state_timestamp_field(name, state),
                type="datetime",
                read_only=True,
                optional=True,
                write_once=not options["reversible"],
            )
        )


async def _state_tracking_stamp(facts, next):
    options = facts.feature.options
    latest = facts.context.latest
    state = latest.get(options["field"])
    if state is not None:
        stamp_name = state_timestamp_field(options["field"], state)
        existing = facts.context.existing
        already_set = existing is not None and existing.get(stamp_name) is not None
        if options["reversible"] or not already_set:
            value = generate_value(facts.entity.fields[stamp_name], facts.context.i18n)
            if inspect.isawaitable(value):
                value = await value
            latest[stamp_name] = value
            logger.debug("Stamped %s.%s", facts.entity.name, stamp_name)
    return await next()


STATE_TRACKING = Feature(
    name="state_tracking",
    normalize=_state_tracking_normalize,
    phases={LinkPhase.AFTER_FIELDS: _state_tracking_after_fields},
    rules={RuleName.POST_DATA_VALIDATION: [_state_tracking_stamp]},
    allow_multiple=True,
    needs_existing=lambda options, raw: options["field"] in raw
    and not options["reversible"],
)


# =============================================================================
# i18n
# =============================================================================


def _i18n_normalize(options: Any) -> dict[str, Any]:
    if not isinstance(options, dict):
        raise ValueError("i18n options must be a mapping")
    if not options.get("field"):
        raise ValueError("i18n requires a field name")
    locales = options.get("locales")
    if not isinstance(locales, dict) or not locales:
        raise ValueError("i18n requires a locale -> suffix mapping")
    return {"field": options["field"], "locales": dict(locales)}


def _i18n_after_fields(builder, options: dict[str, Any]) -> None:
    name = options["field"]
    if not builder.has_field(name):
        raise ValueError(f'Field "{name}" used by i18n does not exist')
    source = builder.get_field(name)
    # dict.fromkeys keeps first-seen order while dropping repeated suffixes
    for suffix in dict.fromkeys(options["locales"].values()):
        if suffix == "default":
            continue
        builder.add_field(source.model_copy(update={"name": f"{name}_{suffix}"}))


I18N = Feature(
    name="i18n",
    normalize=_i18n_normalize,
    phases={LinkPhase.AFTER_FIELDS: _i18n_after_fields},
    allow_multiple=True,
)


BUILTIN_FEATURES = (
    AUTO_ID,
    CREATE_TIMESTAMP,
    UPDATE_TIMESTAMP,
    LOGICAL_DELETION,
    AT_LEAST_ONE_NOT_NULL,
    STATE_TRACKING,
    I18N,
)
