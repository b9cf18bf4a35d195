"""fieldwright: compile declarative entity field pipelines and materialize records.

Typical use:

    from fieldwright import EntitySpec, build_entity, compile_entity, EntityModel, InMemoryStore

    entity = build_entity(EntitySpec.from_yaml("user.yaml"))
    model = EntityModel(entity, InMemoryStore())
    record = await model.create({"name": "a"})
"""

__version__ = "0.1.0"

from .config import FieldwrightConfig, configure, get_config, reset_config
from .errors import (
    CompileError,
    FieldwrightError,
    RuleChainError,
    RuleRouteError,
    UsageError,
    ValidationError,
)
from .core.models import CompiledRoutine, Entity, EntitySpec, FieldSpec, ModifierSpec
from .compiler import EntityBuilder, ModifierCompiler, build_entity, compile_entity, compile_many
from .features import LinkPhase, RuleName
from .rules import FlatRuleRegistry, TreeRuleRegistry
from .runtime import (
    EntityModel,
    FieldMaterializer,
    InMemoryStore,
    Mode,
    OperationContext,
    materialize,
)
from .utils import CircularDependencyError, DependencyGraph

__all__ = [
    "__version__",
    # Config
    "FieldwrightConfig",
    "configure",
    "get_config",
    "reset_config",
    # Errors
    "FieldwrightError",
    "CompileError",
    "ValidationError",
    "RuleChainError",
    "RuleRouteError",
    "UsageError",
    # Models
    "EntitySpec",
    "FieldSpec",
    "ModifierSpec",
    "Entity",
    "CompiledRoutine",
    # Compiler
    "EntityBuilder",
    "build_entity",
    "ModifierCompiler",
    "compile_entity",
    "compile_many",
    # Features and rules
    "LinkPhase",
    "RuleName",
    "FlatRuleRegistry",
    "TreeRuleRegistry",
    # Runtime
    "EntityModel",
    "FieldMaterializer",
    "InMemoryStore",
    "Mode",
    "OperationContext",
    "materialize",
    # Graphs
    "DependencyGraph",
    "CircularDependencyError",
]
