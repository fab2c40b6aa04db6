import types
import typing

import attr


COLUMN_METADATA_KEY = "column"

_UNION_ORIGINS = {typing.Union, getattr(types, "UnionType", typing.Union)}


def _is_generic(field_type: typing.Any) -> bool:
    return typing.get_origin(field_type) is not None


def _get_wrapped_type(wrapped_type: typing.Any) -> typing.Any:
    return next(arg for arg in typing.get_args(wrapped_type) if arg is not type(None))


def _is_field_nullable(field_type: typing.Any) -> bool:
    args = typing.get_args(field_type)
    return typing.get_origin(field_type) in _UNION_ORIGINS and len(args) == 2 and type(None) in args


def unwrap(field_type: typing.Any) -> typing.Tuple[typing.Any, bool]:
    """Returns the declared type without ``Optional`` and whether it was optional."""
    if _is_generic(field_type):
        if _is_field_nullable(field_type):
            return _get_wrapped_type(field_type), True
        raise TypeError(f"Unhandled Generic type - {field_type}")
    return field_type, False


@attr.s(auto_attribs=True, frozen=True)
class FieldDescriptor:
    name: str
    column: str
    type: typing.Any
    nullable: bool = False
    is_entity_reference: bool = False

    @classmethod
    def from_attribute(
        cls, attribute: attr.Attribute, is_reference: typing.Callable[[typing.Any], bool]
    ) -> "FieldDescriptor":
        field_type, nullable = unwrap(attribute.type)
        return cls(
            name=attribute.name,
            column=attribute.metadata.get(COLUMN_METADATA_KEY, attribute.name),
            type=field_type,
            nullable=nullable,
            is_entity_reference=is_reference(field_type),
        )

    def read(self, instance: typing.Any) -> typing.Any:
        return getattr(instance, self.name)

    def write(self, instance: typing.Any, value: typing.Any) -> None:
        # goes through the entity's on_setattr pipeline: converters, validators, dirty tracking
        setattr(instance, self.name, value)
