import typing

from sqlalchemy import Column, ForeignKey, Integer, MetaData, Table

from active_entity.entity import Entity, list_persisted_fields
from active_entity.statements import ID_COLUMN
from active_entity.storages.sqlalchemy import native_type_to_column


def define_table(metadata: MetaData, entity_cls: typing.Type[Entity]) -> Table:
    """Describes the table ``entity_cls`` is stored in.

    Meant for creating fresh tables, e.g. with ``metadata.create_all(engine)``;
    existing schemas are never altered.
    """
    columns = [Column(ID_COLUMN, Integer, primary_key=True, autoincrement=True)]

    for field in list_persisted_fields(entity_cls):
        if field.is_entity_reference:
            foreign_key = ForeignKey(f"{field.type.table_name()}.{ID_COLUMN}")
            columns.append(Column(field.column, Integer, foreign_key, nullable=True))
        else:
            columns.append(Column(field.column, native_type_to_column.convert(field.type), nullable=True))

    return Table(entity_cls.table_name(), metadata, *columns)
