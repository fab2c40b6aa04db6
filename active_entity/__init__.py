from active_entity.entity import (
    Entity,
    EntityWithoutTableName,
    FieldWithoutDefault,
    ReservedFieldName,
    instantiate_default,
    is_entity_reference_type,
    list_persisted_fields,
)
from active_entity.errors import ErrorKind, ExecutorNotConfigured, PersistenceError
from active_entity.executor import ExecutionResult, Executor, PreparedStatement
from active_entity.registry import Registry, configure, default_registry
from active_entity.storages.sqlalchemy import SqlAlchemyExecutor

__all__ = [
    "Entity",
    "EntityWithoutTableName",
    "ErrorKind",
    "ExecutionResult",
    "Executor",
    "ExecutorNotConfigured",
    "FieldWithoutDefault",
    "PersistenceError",
    "PreparedStatement",
    "Registry",
    "ReservedFieldName",
    "SqlAlchemyExecutor",
    "configure",
    "default_registry",
    "instantiate_default",
    "is_entity_reference_type",
    "list_persisted_fields",
]
