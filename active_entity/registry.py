import typing

import attr

from active_entity.errors import ExecutorNotConfigured
from active_entity.executor import Executor
from active_entity.fields import FieldDescriptor
from active_entity.storages.sqlalchemy import SqlAlchemyExecutor


@attr.s(auto_attribs=True)
class Registry:
    executor: typing.Optional[Executor] = None
    entity_types: typing.Dict[str, typing.Type] = attr.Factory(dict)
    fields: typing.Dict[typing.Type, typing.List[FieldDescriptor]] = attr.Factory(dict)

    def register(self, entity_cls: typing.Type) -> None:
        self.entity_types[entity_cls.__name__] = entity_cls
        self.fields.pop(entity_cls, None)

    def require_executor(self) -> Executor:
        if self.executor is None:
            raise ExecutorNotConfigured("No executor configured, call active_entity.configure() first")
        return self.executor


default_registry = Registry()


def configure(bind: typing.Any, registry: Registry = default_registry) -> Executor:
    """Installs the executor used by every entity bound to ``registry``.

    ``bind`` is either an ``Executor`` or an SQLAlchemy ``Engine``/``Connection``,
    which gets wrapped in ``SqlAlchemyExecutor``.
    """
    if isinstance(bind, Executor):
        executor = bind
    else:
        executor = SqlAlchemyExecutor(bind)

    registry.executor = executor
    return executor
