import abc
import typing

import attr


@attr.s(auto_attribs=True)
class PreparedStatement:
    sql: str
    handle: typing.Any = None
    parameters: typing.Dict[str, typing.Any] = attr.Factory(dict)


@attr.s(auto_attribs=True, frozen=True)
class ExecutionResult:
    rows: typing.List[typing.Mapping[str, typing.Any]] = attr.Factory(list)
    generated_id: typing.Optional[int] = None
    rowcount: int = -1

    def first(self) -> typing.Optional[typing.Mapping[str, typing.Any]]:
        return self.rows[0] if self.rows else None


class Executor(abc.ABC):
    """Prepares, binds and runs the statements generated by entities.

    Implementations raise ``PreparationError`` or ``ExecutionError`` and never
    let driver exceptions escape.
    """

    @abc.abstractmethod
    def prepare(self, sql: str) -> PreparedStatement:
        pass

    @abc.abstractmethod
    def bind(self, statement: PreparedStatement, name: str, value: typing.Any) -> None:
        pass

    @abc.abstractmethod
    def execute(self, statement: PreparedStatement) -> ExecutionResult:
        pass
