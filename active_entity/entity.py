import abc
import logging
import sys
import typing

import attr

from active_entity import statements
from active_entity.errors import ErrorKind, PersistenceError, StatementError
from active_entity.executor import ExecutionResult
from active_entity.fields import FieldDescriptor
from active_entity.registry import Registry, default_registry
from active_entity.types import from_storage, to_storage


logger = logging.getLogger(__name__)


class EntityWithoutTableName(TypeError):
    pass


class ReservedFieldName(TypeError):
    pass


class FieldWithoutDefault(TypeError):
    pass


def _track_modification(instance: "Entity", attribute: attr.Attribute, value: typing.Any) -> typing.Any:
    instance._modified_fields.add(attribute.name)
    instance._related_ids.pop(attribute.name, None)
    return value


class EntityMeta(abc.ABCMeta):
    def __new__(mcs, name: str, bases: tuple, namespace: dict):
        cls = super().__new__(mcs, name, bases, namespace)
        if name == "Entity" and namespace.get("__module__") == __name__:
            return cls

        attr_cls = attr.s(
            auto_attribs=True,
            on_setattr=attr.setters.pipe(attr.setters.convert, attr.setters.validate, _track_modification),
        )(cls)

        for field in attr.fields(attr_cls):
            if field.name == statements.ID_COLUMN:
                raise ReservedFieldName(f"{name} declares a field named {field.name!r}, which is reserved")
            if field.default is attr.NOTHING:
                raise FieldWithoutDefault(f"{name}.{field.name} needs a default, entities are default-constructed")
            statements.check_identifier(field.metadata.get("column", field.name))

        if namespace.get("__abstract__", False):
            return attr_cls

        if not getattr(attr_cls, "__tablename__", None):
            raise EntityWithoutTableName(f"{name} must define __tablename__")
        statements.check_identifier(attr_cls.__tablename__, qualified=True)

        attr_cls.__registry__.register(attr_cls)
        return attr_cls


def is_entity_reference_type(field_type: typing.Any) -> bool:
    return isinstance(field_type, type) and issubclass(field_type, Entity)


def list_persisted_fields(entity_cls: typing.Type["Entity"]) -> typing.List[FieldDescriptor]:
    registry: Registry = entity_cls.__registry__
    try:
        return registry.fields[entity_cls]
    except KeyError:
        pass

    # the defining module wins over other entities sharing a name
    globalns = {**registry.entity_types, **vars(sys.modules[entity_cls.__module__])}
    try:
        attr.resolve_types(entity_cls, globalns=globalns)
    except NameError as error:
        raise TypeError(f"Could not resolve field types of {entity_cls.__name__}: {error}") from error

    descriptors = [
        FieldDescriptor.from_attribute(attribute, is_entity_reference_type) for attribute in attr.fields(entity_cls)
    ]
    registry.fields[entity_cls] = descriptors
    return descriptors


def instantiate_default(entity_cls: typing.Type["Entity"]) -> "Entity":
    return entity_cls()


class Entity(metaclass=EntityMeta):
    """Base class of everything stored as one row of a table.

    Subclasses declare annotated fields (each with a default) and
    ``__tablename__``::

        class Book(Entity):
            __tablename__ = "books"

            title: str = ""
            author: typing.Optional[Author] = None

    A field holding another entity is stored as that entity's id.
    Operations report failure by returning ``False``; the reason is kept in
    ``last_error``.
    """

    __registry__: typing.ClassVar[Registry] = default_registry
    __abstract__: typing.ClassVar[bool] = True

    def __attrs_pre_init__(self) -> None:
        self._id = 0
        self._modified_fields: typing.Set[str] = set()
        self._related_ids: typing.Dict[str, int] = {}
        self._id_listeners: typing.List[typing.Callable[["Entity"], None]] = []
        self._deleted = False
        self._last_error: typing.Optional[PersistenceError] = None

    @classmethod
    def table_name(cls) -> str:
        return cls.__tablename__

    @property
    def id(self) -> int:
        return self._id

    @property
    def last_error(self) -> typing.Optional[PersistenceError]:
        return self._last_error

    def is_saved(self) -> bool:
        return self._id != 0

    def is_modified(self) -> bool:
        return bool(self._modified_fields)

    def is_deleted(self) -> bool:
        return self._deleted

    def modified_fields(self) -> typing.FrozenSet[str]:
        return frozenset(self._modified_fields)

    def related_id(self, field_name: str) -> typing.Optional[int]:
        """The id of a related entity left unresolved by a lazy ``load``."""
        return self._related_ids.get(field_name)

    def on_id_changed(self, callback: typing.Callable[["Entity"], None]) -> None:
        self._id_listeners.append(callback)

    def insert(self) -> bool:
        return self._insert({})

    def update(self) -> bool:
        return self._update({})

    def delete_from_database(self) -> bool:
        """Deletes the row of this entity; related entities are left alone.

        After a successful delete the instance must not be used again.
        """
        self._last_error = None
        if self._deleted:
            return self._fail(ErrorKind.PRECONDITION, "Entity was deleted from the database")

        sql = statements.delete_by_id(self.table_name())
        if self._execute("DELETE", sql, {statements.ID_COLUMN: self._id}) is None:
            return False

        self._deleted = True
        self._related_ids.clear()
        return True

    def load(self, id: int, eager_load: bool = True) -> bool:
        """Reads the row ``id`` into this entity, replacing every field value.

        With ``eager_load`` related entities are loaded recursively, otherwise
        their ids are kept aside for ``load_related``. A row reached twice while
        loading one graph is read once and shared, so reference cycles come back
        as cycles of instances. On failure the entity is left as it was before
        the call.
        """
        return self._load(id, eager_load, {})

    def load_related(self, field_name: str, eager_load: bool = True) -> bool:
        """Resolves a related entity left unloaded by ``load(..., eager_load=False)``.

        ``eager_load`` applies to the related entity's own related fields. The
        pending id is forgotten once the field is assigned directly.
        """
        self._last_error = None
        if self._deleted:
            return self._fail(ErrorKind.PRECONDITION, "Entity was deleted from the database")

        related_id = self._related_ids.get(field_name)
        if related_id is None:
            return self._fail(ErrorKind.PRECONDITION, f"No pending related id for field {field_name!r}")

        field = next(f for f in list_persisted_fields(type(self)) if f.name == field_name)
        related = instantiate_default(field.type)
        if not related._load(related_id, eager_load, {(type(self), self._id): self}):
            message = f"Could not load related field {field_name!r}"
            return self._fail(ErrorKind.NESTED, message, cause=related.last_error)

        was_modified = field_name in self._modified_fields
        if not self._write_fields([field], {field_name: related}):
            return False
        if not was_modified:
            self._modified_fields.discard(field_name)

        self._related_ids.pop(field_name, None)
        return True

    def _insert(self, saving: typing.Dict[int, "Entity"]) -> bool:
        self._last_error = None
        if self._deleted:
            return self._fail(ErrorKind.PRECONDITION, "Entity was deleted from the database")
        if self.is_saved():
            return self._fail(ErrorKind.PRECONDITION, "Entity is already saved", level=logging.DEBUG)

        fields = list_persisted_fields(type(self))
        saving[id(self)] = self
        try:
            parameters = self._collect_parameters(fields, saving)
        finally:
            del saving[id(self)]
        if parameters is None:
            return False

        sql = statements.insert(self.table_name(), [f.column for f in fields], [f.name for f in fields])
        result = self._execute("INSERT", sql, parameters)
        if result is None:
            return False

        if result.generated_id:
            self._set_id(result.generated_id)
        else:
            logger.warning("INSERT into %s did not report a generated id", self.table_name())
        self._modified_fields.clear()
        return True

    def _update(self, saving: typing.Dict[int, "Entity"]) -> bool:
        self._last_error = None
        if self._deleted:
            return self._fail(ErrorKind.PRECONDITION, "Entity was deleted from the database")
        if not self.is_saved():
            return self._fail(ErrorKind.PRECONDITION, "Entity is not saved")
        if not self.is_modified():
            return self._fail(ErrorKind.PRECONDITION, "Entity has no modified fields", level=logging.DEBUG)

        fields = [f for f in list_persisted_fields(type(self)) if f.name in self._modified_fields]
        saving[id(self)] = self
        try:
            parameters = self._collect_parameters(fields, saving)
        finally:
            del saving[id(self)]
        if parameters is None:
            return False
        parameters[statements.ID_COLUMN] = self._id

        sql = statements.update_by_id(self.table_name(), [f.column for f in fields], [f.name for f in fields])
        if self._execute("UPDATE", sql, parameters) is None:
            return False

        self._modified_fields.clear()
        return True

    def _load(
        self, id: int, eager_load: bool, loading: typing.Dict[typing.Tuple[type, int], "Entity"]
    ) -> bool:
        self._last_error = None
        if self._deleted:
            return self._fail(ErrorKind.PRECONDITION, "Entity was deleted from the database")

        fields = list_persisted_fields(type(self))
        sql = statements.select_by_id(self.table_name(), [f.column for f in fields])
        result = self._execute("SELECT", sql, {statements.ID_COLUMN: id})
        if result is None:
            return False

        row = result.first()
        if row is None:
            return self._fail(ErrorKind.NO_ROW, f"No row with id {id} in {self.table_name()}", level=logging.DEBUG)

        key = (type(self), id)
        loading[key] = self
        try:
            read = self._read_row(fields, row, eager_load, loading)
        finally:
            del loading[key]
        if read is None:
            return False
        values, related_ids = read

        if not self._write_fields(fields, values):
            return False

        self._related_ids = related_ids
        self._modified_fields.clear()
        self._set_id(id)
        return True

    def _read_row(
        self,
        fields: typing.List[FieldDescriptor],
        row: typing.Mapping[str, typing.Any],
        eager_load: bool,
        loading: typing.Dict[typing.Tuple[type, int], "Entity"],
    ) -> typing.Optional[typing.Tuple[typing.Dict[str, typing.Any], typing.Dict[str, int]]]:
        values: typing.Dict[str, typing.Any] = {}
        related_ids: typing.Dict[str, int] = {}
        for field in fields:
            db_value = row[field.column]

            if field.is_entity_reference and db_value is not None:
                if not isinstance(db_value, int) or isinstance(db_value, bool):
                    message = f"Could not set field {field.name!r}: {db_value!r} is not an id"
                    self._fail(ErrorKind.WRITE_BACK, message)
                    return None
                if eager_load:
                    related = loading.get((field.type, db_value))
                    if related is None:
                        related = instantiate_default(field.type)
                        if not related._load(db_value, eager_load, loading):
                            message = f"Could not load related field {field.name!r}"
                            self._fail(ErrorKind.NESTED, message, cause=related.last_error)
                            return None
                    values[field.name] = related
                else:
                    related_ids[field.name] = db_value
                    values[field.name] = None
                continue

            try:
                values[field.name] = from_storage(db_value, field.type)
            except (TypeError, ValueError) as error:
                self._fail(ErrorKind.WRITE_BACK, f"Could not set field {field.name!r}: {error}")
                return None
        return values, related_ids

    def _write_fields(self, fields: typing.List[FieldDescriptor], values: typing.Dict[str, typing.Any]) -> bool:
        snapshot = {field.name: field.read(self) for field in fields}
        modified_before = set(self._modified_fields)
        related_ids_before = dict(self._related_ids)
        for field in fields:
            try:
                field.write(self, values[field.name])
            except (TypeError, ValueError) as error:
                for name, value in snapshot.items():
                    object.__setattr__(self, name, value)
                self._modified_fields = modified_before
                self._related_ids = related_ids_before
                return self._fail(ErrorKind.WRITE_BACK, f"Could not set field {field.name!r}: {error}")
        return True

    def _collect_parameters(
        self, fields: typing.List[FieldDescriptor], saving: typing.Dict[int, "Entity"]
    ) -> typing.Optional[typing.Dict[str, typing.Any]]:
        parameters = {}
        for field in fields:
            value = field.read(self)
            if not field.is_entity_reference or value is None:
                parameters[field.name] = to_storage(value)
                continue

            # no transaction spans these nested writes and the outer statement
            if id(value) in saving:
                # already being written further up this graph
                if not value.is_saved():
                    self._fail(ErrorKind.NESTED, f"Related field {field.name!r} is part of an unsaved reference cycle")
                    return None
            elif not value.is_saved():
                if not value._insert(saving):
                    self._fail(ErrorKind.NESTED, f"Could not insert related field {field.name!r}", value.last_error)
                    return None
                if not value.is_saved():
                    self._fail(ErrorKind.NESTED, f"Related field {field.name!r} was inserted without a generated id")
                    return None
            elif value.is_modified() and not value._update(saving):
                self._fail(ErrorKind.NESTED, f"Could not update related field {field.name!r}", value.last_error)
                return None
            parameters[field.name] = value.id
        return parameters

    def _execute(
        self, verb: str, sql: str, parameters: typing.Dict[str, typing.Any]
    ) -> typing.Optional[ExecutionResult]:
        executor = self.__registry__.require_executor()
        try:
            statement = executor.prepare(sql)
            for name, value in parameters.items():
                executor.bind(statement, name, value)
            return executor.execute(statement)
        except StatementError as error:
            action = "prepare" if error.kind is ErrorKind.PREPARATION else "execute"
            self._fail(error.kind, f"Could not {action} {verb} query: {error}", level=logging.ERROR)
            return None

    def _set_id(self, id: int) -> None:
        if id == self._id:
            return

        self._id = id
        for callback in self._id_listeners:
            callback(self)

    def _fail(
        self,
        kind: ErrorKind,
        message: str,
        cause: typing.Optional[PersistenceError] = None,
        level: int = logging.WARNING,
    ) -> bool:
        self._last_error = PersistenceError(kind, message, cause)
        logger.log(level, "%s: %s", type(self).__name__, message)
        return False
