import contextlib
import logging
import typing

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from active_entity.errors import ExecutionError, PreparationError
from active_entity.executor import ExecutionResult, Executor, PreparedStatement


logger = logging.getLogger(__name__)


class SqlAlchemyExecutor(Executor):
    """Runs entity statements as SQLAlchemy ``text()`` clauses.

    With an ``Engine`` every statement runs in its own transaction and is
    committed right away. With a ``Connection`` the caller owns the transaction.

    Generated ids are read from ``lastrowid`` only. Drivers that do not report
    it, such as psycopg on PostgreSQL, run inserts fine but leave the inserted
    entity unsaved, and an entity referencing it then refuses to be written.
    """

    def __init__(self, bind: typing.Union[Engine, Connection]) -> None:
        self._bind = bind

    def _connection(self) -> typing.ContextManager[Connection]:
        if isinstance(self._bind, Engine):
            return self._bind.begin()
        return contextlib.nullcontext(self._bind)

    def prepare(self, sql: str) -> PreparedStatement:
        try:
            return PreparedStatement(sql, text(sql))
        except ArgumentError as error:
            raise PreparationError(str(error)) from error

    def bind(self, statement: PreparedStatement, name: str, value: typing.Any) -> None:
        try:
            statement.handle = statement.handle.bindparams(**{name: value})
        except ArgumentError as error:
            raise PreparationError(str(error)) from error
        statement.parameters[name] = value

    def execute(self, statement: PreparedStatement) -> ExecutionResult:
        logger.debug("Executing %s with parameters %s", statement.sql, sorted(statement.parameters))
        try:
            with self._connection() as connection:
                result = connection.execute(statement.handle)
                if result.returns_rows:
                    return ExecutionResult(rows=[dict(row) for row in result.mappings()], rowcount=result.rowcount)
                return ExecutionResult(generated_id=result.lastrowid or None, rowcount=result.rowcount)
        except SQLAlchemyError as error:
            raise ExecutionError(str(error)) from error
