"""SQL text for the four statements an entity knows how to run.

Only identifiers coming from entity declarations are interpolated; every value
travels as a named ``:placeholder``.
"""
import re
import typing


ID_COLUMN = "id"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_QUALIFIED_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


def check_identifier(name: str, qualified: bool = False) -> str:
    """Rejects anything but a plain identifier; ``qualified`` also allows ``schema.table``."""
    pattern = _QUALIFIED_IDENTIFIER if qualified else _IDENTIFIER
    if not isinstance(name, str) or not pattern.match(name):
        raise ValueError(f"Not a valid SQL identifier - {name!r}")
    return name


def placeholder(name: str) -> str:
    return f":{name}"


def select_by_id(table: str, columns: typing.Sequence[str]) -> str:
    column_list = ", ".join(columns) or ID_COLUMN
    return f"SELECT {column_list} FROM {table} WHERE {ID_COLUMN} = {placeholder(ID_COLUMN)}"


def insert(table: str, columns: typing.Sequence[str], parameters: typing.Sequence[str]) -> str:
    if not columns:
        return f"INSERT INTO {table} DEFAULT VALUES"
    values = ", ".join(placeholder(name) for name in parameters)
    return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({values})"


def update_by_id(table: str, columns: typing.Sequence[str], parameters: typing.Sequence[str]) -> str:
    assignments = ", ".join(f"{column} = {placeholder(name)}" for column, name in zip(columns, parameters))
    return f"UPDATE {table} SET {assignments} WHERE {ID_COLUMN} = {placeholder(ID_COLUMN)}"


def delete_by_id(table: str) -> str:
    return f"DELETE FROM {table} WHERE {ID_COLUMN} = {placeholder(ID_COLUMN)}"
