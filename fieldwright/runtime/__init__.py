"""Runtime: materialize records for create/update and persist them."""

from .context import MaterializerState, Mode, OperationContext, RuleFacts
from .materializer import FieldMaterializer, apply_rules, materialize
from .model import EntityModel
from .store import InMemoryStore, RecordStore

__all__ = [
    "MaterializerState",
    "Mode",
    "OperationContext",
    "RuleFacts",
    "FieldMaterializer",
    "apply_rules",
    "materialize",
    "EntityModel",
    "InMemoryStore",
    "RecordStore",
]
