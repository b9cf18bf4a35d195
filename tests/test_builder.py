"""Tests for EntityBuilder: linking declarations and feature link phases."""

import pytest

from fieldwright.compiler import EntityBuilder
from fieldwright.core.models import EntitySpec
from fieldwright.errors import CompileError, UsageError


class TestLinking:
    def test_declaration_order_and_types(self, make_entity):
        entity = make_entity(
            {
                "name": "item",
                "fields": [
                    {"name": "title", "type": "string", "comment": "Item title"},
                    {"name": "count", "type": "int", "default": 0},
                    {"name": "price", "type": "decimal", "optional": True},
                ],
            }
        )

        assert entity.field_names() == ["title", "count", "price"]
        assert entity.fields["title"].type == "text"
        assert entity.fields["title"].display_name == "Item title"
        assert entity.fields["count"].type == "integer"
        assert entity.fields["count"].has_default is True
        assert entity.fields["price"].type == "number"
        assert entity.fields["price"].has_default is False

    def test_keys_from_key_and_unique_indexes(self, make_entity):
        entity = make_entity(
            {
                "name": "user",
                "key": "id",
                "fields": [
                    {"name": "id", "type": "integer", "auto": True},
                    {"name": "email"},
                    {"name": "tenant"},
                    {"name": "handle"},
                ],
                "indexes": [
                    {"fields": ["email"], "unique": True},
                    {"fields": ["tenant"]},
                    {"fields": ["tenant", "handle"], "unique": True},
                ],
            }
        )

        assert entity.key == ("id",)
        assert entity.unique_keys == (("id",), ("email",), ("tenant", "handle"))
        assert entity.unique_key_in({"email": "a@b.io"}) == ("email",)
        assert entity.unique_key_in({"tenant": "t"}) is None

    def test_unknown_type(self, make_entity):
        with pytest.raises(CompileError, match="Unknown type"):
            make_entity({"name": "e", "fields": [{"name": "a", "type": "blob"}]})

    def test_enum_requires_values(self, make_entity):
        with pytest.raises(CompileError, match="declares no values"):
            make_entity({"name": "e", "fields": [{"name": "a", "type": "enum"}]})

    def test_unknown_generator(self, make_entity):
        with pytest.raises(CompileError, match="Unknown generator") as exc_info:
            make_entity(
                {
                    "name": "e",
                    "fields": [{"name": "t", "auto": True, "generator": "nope"}],
                }
            )
        assert exc_info.value.fields == ["t"]

    def test_duplicate_field(self, make_entity):
        with pytest.raises(CompileError, match="already defined"):
            make_entity({"name": "e", "fields": [{"name": "a"}, {"name": "a"}]})

    def test_key_must_exist(self, make_entity):
        with pytest.raises(CompileError, match="unknown field"):
            make_entity({"name": "e", "key": "id", "fields": [{"name": "a"}]})

    def test_build_is_one_shot(self):
        builder = EntityBuilder(EntitySpec(name="e"))
        builder.build()
        with pytest.raises(UsageError):
            builder.build()


class TestFeatureFields:
    def test_auto_id_first_and_key(self, make_entity):
        entity = make_entity(
            {"name": "user", "features": [{"name": "auto_id"}], "fields": [{"name": "name"}]}
        )

        assert entity.field_names() == ["id", "name"]
        id_field = entity.fields["id"]
        assert id_field.type == "integer"
        assert id_field.auto and id_field.read_only and id_field.write_once
        assert entity.key == ("id",)

    def test_auto_id_options(self, make_entity):
        entity = make_entity(
            {
                "name": "user",
                "features": [
                    {"name": "auto_id", "options": {"name": "uid", "type": "text", "generator": "uuid"}}
                ],
            }
        )
        assert entity.key == ("uid",)
        assert entity.fields["uid"].generator == "uuid"

    def test_timestamps_follow_declared_fields(self, make_entity):
        entity = make_entity(
            {
                "name": "post",
                "features": [
                    {"name": "create_timestamp"},
                    {"name": "update_timestamp"},
                ],
                "fields": [{"name": "body"}],
            }
        )

        assert entity.field_names() == ["body", "created_at", "updated_at"]
        assert entity.fields["updated_at"].force_update
        assert entity.fields["created_at"].type == "datetime"

    def test_logical_deletion_new_flag(self, make_entity):
        entity = make_entity(
            {"name": "post", "features": [{"name": "logical_deletion"}]}
        )
        flag = entity.fields["is_deleted"]
        assert flag.type == "boolean"
        assert flag.default is False and flag.has_default
        assert entity.features[0].options == {
            "field": "is_deleted",
            "value": True,
            "new_field": True,
        }

    def test_logical_deletion_existing_field(self, make_entity):
        entity = make_entity(
            {
                "name": "post",
                "features": [{"name": "logical_deletion", "options": {"status": "deleted"}}],
                "fields": [
                    {"name": "status", "type": "enum", "values": ["live", "deleted"]}
                ],
            }
        )
        assert "is_deleted" not in entity.fields
        assert entity.features[0].options["value"] == "deleted"

        with pytest.raises(CompileError, match="does not exist"):
            make_entity(
                {
                    "name": "post",
                    "features": [{"name": "logical_deletion", "options": {"state": 1}}],
                }
            )

    def test_at_least_one_not_null_marks_optional(self, make_entity):
        entity = make_entity(
            {
                "name": "contact",
                "features": [
                    {"name": "at_least_one_not_null", "options": ["email", "mobile"]}
                ],
                "fields": [{"name": "email"}, {"name": "mobile"}],
            }
        )
        assert entity.fields["email"].optional
        assert entity.fields["mobile"].optional

    def test_state_tracking_adds_timestamps(self, make_entity):
        entity = make_entity(
            {
                "name": "order",
                "features": [{"name": "state_tracking", "options": "status"}],
                "fields": [
                    {"name": "status", "type": "enum", "values": ["open", "closed"]}
                ],
            }
        )
        assert entity.field_names() == [
            "status",
            "status_open_timestamp",
            "status_closed_timestamp",
        ]
        stamp = entity.fields["status_open_timestamp"]
        assert stamp.read_only and stamp.optional and stamp.write_once

    def test_state_tracking_requires_enum(self, make_entity):
        with pytest.raises(CompileError, match="enum"):
            make_entity(
                {
                    "name": "order",
                    "features": [{"name": "state_tracking", "options": "status"}],
                    "fields": [{"name": "status"}],
                }
            )

    def test_i18n_copies_field_per_suffix(self, make_entity):
        entity = make_entity(
            {
                "name": "product",
                "features": [
                    {
                        "name": "i18n",
                        "options": {
                            "field": "title",
                            "locales": {
                                "en": "default",
                                "zh-CN": "zh",
                                "zh-TW": "zh",
                                "fr": "fr",
                            },
                        },
                    }
                ],
                "fields": [{"name": "title", "max_length": 40}],
            }
        )
        assert entity.field_names() == ["title", "title_zh", "title_fr"]
        assert entity.fields["title_fr"].max_length == 40

    def test_unknown_feature(self, make_entity):
        with pytest.raises(CompileError, match="Unknown feature"):
            make_entity({"name": "e", "features": [{"name": "teleport"}]})

    def test_single_use_feature_repeated(self, make_entity):
        with pytest.raises(CompileError, match="only be used once"):
            make_entity(
                {"name": "e", "features": [{"name": "auto_id"}, {"name": "auto_id"}]}
            )

    def test_multi_use_feature_repeated(self, make_entity):
        entity = make_entity(
            {
                "name": "e",
                "features": [
                    {"name": "at_least_one_not_null", "options": ["a", "b"]},
                    {"name": "at_least_one_not_null", "options": ["c", "d"]},
                ],
                "fields": [{"name": n} for n in "abcd"],
            }
        )
        assert len(entity.features_named("at_least_one_not_null")) == 2

    def test_invalid_feature_options(self, make_entity):
        with pytest.raises(CompileError, match="Invalid options"):
            make_entity({"name": "e", "features": [{"name": "i18n", "options": "title"}]})
