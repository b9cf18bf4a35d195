"""Shared fixtures for fieldwright tests."""

from typing import Any

import pytest

from fieldwright.compiler import build_entity
from fieldwright.config import FieldwrightConfig, configure, reset_config
from fieldwright.core.models import Entity, EntitySpec


@pytest.fixture(autouse=True)
def default_config():
    """Run every test against default settings, ignoring files and env."""
    configure(FieldwrightConfig())
    yield
    reset_config()


@pytest.fixture
def make_entity():
    """Link an entity from a plain declaration dict."""

    def _make(data: dict[str, Any]) -> Entity:
        return build_entity(EntitySpec.model_validate(data))

    return _make


@pytest.fixture
def user_entity(make_entity) -> Entity:
    """id: auto int key, name: required text, secret: write-once text."""
    return make_entity(
        {
            "name": "user",
            "key": "id",
            "fields": [
                {"name": "id", "type": "integer", "auto": True},
                {"name": "name", "type": "text"},
                {"name": "secret", "type": "text", "write_once": True, "optional": True},
            ],
        }
    )
