"""All models for fieldwright, organized by stage.

- entity.py: pydantic declaration models (input, YAML I/O)
- linked.py: frozen linked entity metadata
- routine.py: compiled routine structures
"""

from .entity import (
    FieldRef,
    ModifierSpec,
    FieldSpec,
    FeatureSpec,
    IndexSpec,
    EntitySpec,
)
from .linked import FieldDescriptor, FeatureUse, Entity
from .routine import (
    TokenKind,
    ModifierDef,
    ModifierCall,
    Token,
    Operation,
    Group,
    CompiledRoutine,
)

__all__ = [
    # Declarations
    "FieldRef",
    "ModifierSpec",
    "FieldSpec",
    "FeatureSpec",
    "IndexSpec",
    "EntitySpec",
    # Linked
    "FieldDescriptor",
    "FeatureUse",
    "Entity",
    # Routine
    "TokenKind",
    "ModifierDef",
    "ModifierCall",
    "Token",
    "Operation",
    "Group",
    "CompiledRoutine",
]
