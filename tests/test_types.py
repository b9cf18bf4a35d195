"""Tests for base types, generators and the built-in modifiers."""

from datetime import datetime

import pytest

from fieldwright.config import FieldwrightConfig, RuntimeConfig, configure
from fieldwright.core.models import FieldDescriptor, TokenKind
from fieldwright.generators import generate_value, register_generator
from fieldwright.modifiers import DEFAULT_MODIFIERS, ModifierTable
from fieldwright.modifiers import activators, processors, validators
from fieldwright.types import TYPES, canonical_type_name, resolve_type, sanitize, serialize


def _field(**kwargs) -> FieldDescriptor:
    kwargs.setdefault("name", "f")
    kwargs.setdefault("type", "text")
    return FieldDescriptor(**kwargs)


class TestTypes:
    def test_aliases(self):
        assert canonical_type_name("int") == "integer"
        assert canonical_type_name("String") == "text"
        assert canonical_type_name("json") == "object"
        assert resolve_type("bool") is TYPES["boolean"]

    def test_unknown_type(self):
        with pytest.raises(KeyError, match="Unknown field type"):
            resolve_type("money")

    def test_sanitize(self):
        assert sanitize("3", _field(type="integer")) == 3
        assert sanitize("1.5", _field(type="number")) == 1.5
        assert sanitize("false", _field(type="boolean")) is False
        assert sanitize(" a ", _field()) == "a"
        assert isinstance(sanitize("2024-05-01T10:00:00Z", _field(type="datetime")), datetime)

    def test_sanitize_rejects(self):
        with pytest.raises(ValueError):
            sanitize("abc", _field(type="integer"))
        with pytest.raises(ValueError):
            sanitize("toolong", _field(max_length=3))
        with pytest.raises(ValueError):
            sanitize("ab", _field(fixed_length=3))
        with pytest.raises(ValueError):
            sanitize("pink", _field(type="enum", values=("red", "blue")))

    def test_trim_text_setting(self):
        configure(FieldwrightConfig(runtime=RuntimeConfig(trim_text=False)))
        assert sanitize(" a ", _field()) == " a "

    def test_serialize(self):
        stamp = datetime(2024, 5, 1, 10, 0)
        assert serialize({"at": stamp, "tags": (1, 2)}) == {
            "at": "2024-05-01T10:00:00",
            "tags": [1, 2],
        }


class TestGenerators:
    def test_type_defaults(self):
        assert len(generate_value(_field())) == 32
        assert len(generate_value(_field(fixed_length=6))) == 6
        assert generate_value(_field(type="enum", values=("a", "b"))) == "a"
        assert generate_value(_field(type="object")) == {}

    def test_random_text_length_setting(self):
        configure(FieldwrightConfig(runtime=RuntimeConfig(random_text_length=10)))
        assert len(generate_value(_field())) == 10

    def test_uuid_requires_text(self):
        assert len(generate_value(_field(generator="uuid"))) == 36
        with pytest.raises(ValueError, match="requires a text field"):
            generate_value(_field(type="integer", generator="uuid"))

    def test_uniqid_monotonic_with_prefix(self):
        field = _field(generator="uniqid", generator_options={"prefix": "ord_"})
        values = [generate_value(field) for _ in range(20)]
        assert all(v.startswith("ord_") for v in values)
        numbers = [int(v[4:], 16) for v in values]
        assert numbers == sorted(set(numbers))

    def test_timestamp(self):
        assert isinstance(generate_value(_field(type="datetime", generator="timestamp")), datetime)
        assert isinstance(generate_value(_field(type="integer", generator="timestamp")), int)

    def test_unknown_generator(self):
        with pytest.raises(KeyError, match="Unknown generator"):
            generate_value(_field(generator="nope"))

    def test_register_generator(self, monkeypatch):
        from fieldwright import generators

        monkeypatch.setattr(generators, "GENERATORS", dict(generators.GENERATORS))
        register_generator("fixed", lambda field, i18n, options: "F")
        assert generate_value(_field(generator="fixed")) == "F"

        with pytest.raises(TypeError):
            register_generator("broken", "not callable")


class TestBuiltinModifiers:
    def test_validators(self):
        assert validators.not_empty("a")
        assert not validators.not_empty("")
        assert not validators.not_empty([])
        assert validators.one_of("a", ["a", "b"])
        assert validators.one_of("b", "a", "b")
        assert not validators.one_of("c", ["a", "b"])
        assert validators.is_email("a@b.io")
        assert not validators.is_email("a@b")
        assert validators.matches("abc123", r"\d+$")
        assert validators.min_(5, 5)
        assert not validators.max_(6, 5)

    def test_processors(self):
        assert processors.round_(2.5) == 3
        assert processors.round_(0.125, 2) == 0.13
        assert processors.truncate("abcdef", 3) == "abc"
        digest = processors.hash_("pw", "sha256", "salt")
        assert len(digest) == 64
        assert digest != processors.hash_("pw")

    def test_activators(self):
        assert activators.concat("a", None, 1) == "a1"
        assert activators.formula("a + b", scope={"a": 1, "b": 2}) == 3
        assert activators.constant(0) == 0

    def test_table_lookup(self):
        assert DEFAULT_MODIFIERS.get(TokenKind.VALIDATOR, "min") is not None
        assert DEFAULT_MODIFIERS.get(TokenKind.PROCESSOR, "min") is None
        assert "formula" in DEFAULT_MODIFIERS.names(TokenKind.ACTIVATOR)
        assert DEFAULT_MODIFIERS.get(TokenKind.ACTIVATOR, "formula").needs_scope

    def test_register_rejects(self):
        table = ModifierTable()
        with pytest.raises(ValueError):
            table.register("Mutator", "x", lambda v: v)
        with pytest.raises(TypeError):
            table.register("Validator", "x", None)

    def test_copy_is_independent(self):
        table = DEFAULT_MODIFIERS.copy()
        table.register("Processor", "reverse", lambda v: v[::-1])
        assert (TokenKind.PROCESSOR, "reverse") in table
        assert (TokenKind.PROCESSOR, "reverse") not in DEFAULT_MODIFIERS
        assert len(table) == len(DEFAULT_MODIFIERS) + 1
