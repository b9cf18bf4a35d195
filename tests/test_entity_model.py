"""Tests for EntityModel: create/update through a store with transactions."""

import asyncio

import pytest

from fieldwright.compiler import ModifierCompiler
from fieldwright.errors import ValidationError
from fieldwright.runtime import EntityModel, InMemoryStore


class FailingStore(InMemoryStore):
    """Writes the record, then fails, to check the rollback."""

    async def insert(self, entity, values, tx=None):
        await super().insert(entity, values, tx)
        raise RuntimeError("disk full")


class CountingCompiler(ModifierCompiler):
    def __init__(self):
        super().__init__()
        self.calls = 0

    def compile(self, entity):
        self.calls += 1
        return super().compile(entity)


class TestCreateUpdate:
    def test_write_once_lifecycle(self, user_entity):
        store = InMemoryStore()
        model = EntityModel(user_entity, store)

        created = asyncio.run(model.create({"name": "a"}))
        assert isinstance(created["id"], int)
        assert created["name"] == "a"

        changed = asyncio.run(model.update({"id": created["id"], "secret": "x"}))
        assert changed == {"secret": "x"}

        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(model.update({"id": created["id"], "secret": "y"}))
        assert exc_info.value.rule == "write_once"

        record = asyncio.run(model.find_one({"id": created["id"]}))
        assert record["secret"] == "x"

    def test_update_missing_record(self, user_entity):
        model = EntityModel(user_entity, InMemoryStore())
        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(model.update({"id": 404, "name": "b"}))
        assert exc_info.value.rule == "exists"

    def test_update_by_unique_index(self, make_entity):
        entity = make_entity(
            {
                "name": "member",
                "features": [{"name": "auto_id"}],
                "fields": [{"name": "email"}, {"name": "nick"}],
                "indexes": [{"fields": ["email"], "unique": True}],
            }
        )
        model = EntityModel(entity, InMemoryStore())
        asyncio.run(model.create({"email": "a@b.io", "nick": "a"}))

        asyncio.run(model.update({"email": "a@b.io", "nick": "b"}))
        record = asyncio.run(model.find_one({"email": "a@b.io"}))
        assert record["nick"] == "b"

    def test_timestamps(self, make_entity):
        entity = make_entity(
            {
                "name": "post",
                "features": [
                    {"name": "auto_id"},
                    {"name": "create_timestamp"},
                    {"name": "update_timestamp"},
                ],
                "fields": [{"name": "body"}],
            }
        )
        model = EntityModel(entity, InMemoryStore())
        created = asyncio.run(model.create({"body": "a"}))

        changed = asyncio.run(model.update({"id": created["id"], "body": "b"}))
        assert changed["updated_at"] >= created["created_at"]
        assert "created_at" not in changed


class TestTransactions:
    def test_failed_write_is_rolled_back(self, user_entity):
        store = FailingStore()
        model = EntityModel(user_entity, store)

        with pytest.raises(RuntimeError, match="disk full"):
            asyncio.run(model.create({"name": "a"}))
        assert store.tables.get("user", []) == []
        assert store._active is None

    def test_failed_validation_releases_transaction(self, user_entity):
        store = InMemoryStore()
        model = EntityModel(user_entity, store)

        with pytest.raises(ValidationError):
            asyncio.run(model.create({}))
        assert store._active is None

        asyncio.run(model.create({"name": "a"}))
        assert len(store.tables["user"]) == 1

    def test_caller_transaction_left_open(self, user_entity):
        store = InMemoryStore()
        model = EntityModel(user_entity, store)

        async def scenario():
            tx = await store.begin()
            await model.create({"name": "a"}, tx=tx)
            await model.create({"name": "b"}, tx=tx)
            assert store._active is tx
            await store.rollback(tx)

        asyncio.run(scenario())
        assert store.tables == {}


class TestRoutineCache:
    def test_compiled_once(self, user_entity):
        compiler = CountingCompiler()
        model = EntityModel(user_entity, InMemoryStore(), compiler=compiler)

        asyncio.run(model.create({"name": "a"}))
        asyncio.run(model.create({"name": "b"}))
        assert model.routine is model.routine
        assert compiler.calls == 1
