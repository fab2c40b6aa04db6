import enum
import typing

import attr


class ErrorKind(enum.Enum):
    PREPARATION = "preparation"
    EXECUTION = "execution"
    NO_ROW = "no_row"
    WRITE_BACK = "write_back"
    PRECONDITION = "precondition"
    NESTED = "nested"


@attr.s(auto_attribs=True, frozen=True)
class PersistenceError:
    kind: ErrorKind
    message: str
    cause: typing.Optional["PersistenceError"] = None


class StatementError(Exception):
    kind = ErrorKind.EXECUTION


class PreparationError(StatementError):
    kind = ErrorKind.PREPARATION


class ExecutionError(StatementError):
    kind = ErrorKind.EXECUTION


class ExecutorNotConfigured(RuntimeError):
    pass
