"""Declaration linking and modifier compilation.

- builder: EntityBuilder, EntitySpec -> Entity
- modifier_compiler: ModifierCompiler, Entity -> CompiledRoutine
"""

from .builder import EntityBuilder, build_entity
from .modifier_compiler import (
    ModifierCompiler,
    compile_entity,
    compile_many,
    token_id,
)

__all__ = [
    "EntityBuilder",
    "build_entity",
    "ModifierCompiler",
    "compile_entity",
    "compile_many",
    "token_id",
]
