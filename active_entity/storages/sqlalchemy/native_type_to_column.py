import enum
import typing
import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, String


mapping = {
    int: Integer,
    str: String(255),
    uuid.UUID: String(36),
    float: Float,
    bool: Boolean,
    datetime: DateTime,
    date: Date,
}


def convert(arg: typing.Type) -> typing.Any:
    if isinstance(arg, type) and issubclass(arg, enum.Enum):
        values = [member.value for member in arg]
        return Integer if values and all(isinstance(value, int) for value in values) else String(255)

    try:
        return mapping[arg]
    except KeyError:
        raise TypeError(f"Unsupported type - {arg}")
