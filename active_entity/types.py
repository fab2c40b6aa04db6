import enum
import typing
import uuid
from datetime import date, datetime
from functools import singledispatch


@singledispatch
def to_storage(argument: typing.Any) -> typing.Any:
    return argument


@to_storage.register(uuid.UUID)
def _(argument: uuid.UUID) -> str:
    return str(argument)


@to_storage.register(enum.Enum)
def _(argument: enum.Enum) -> typing.Any:
    return argument.value


def _to_uuid(argument: typing.Any) -> uuid.UUID:
    if isinstance(argument, uuid.UUID):
        return argument
    return uuid.UUID(str(argument))


def _to_datetime(argument: typing.Any) -> datetime:
    if isinstance(argument, datetime):
        return argument
    return datetime.fromisoformat(str(argument))


def _to_date(argument: typing.Any) -> date:
    if isinstance(argument, datetime):
        return argument.date()
    if isinstance(argument, date):
        return argument
    return date.fromisoformat(str(argument)[:10])


mapping: typing.Dict[typing.Any, typing.Callable[[typing.Any], typing.Any]] = {
    uuid.UUID: _to_uuid,
    datetime: _to_datetime,
    date: _to_date,
    bool: bool,
}


def from_storage(argument: typing.Any, field_type: typing.Any) -> typing.Any:
    """Rebuilds the Python value of a column read from the database.

    Raises ``ValueError`` or ``TypeError`` when the stored value does not fit
    ``field_type``.
    """
    if argument is None:
        return None

    if isinstance(field_type, type) and issubclass(field_type, enum.Enum):
        return field_type(argument)

    try:
        return mapping[field_type](argument)
    except KeyError:
        return argument
