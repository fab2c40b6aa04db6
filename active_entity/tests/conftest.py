from typing import Generator

import pytest
from _pytest.config.argparsing import Parser
from _pytest.fixtures import SubRequest
from sqlalchemy import MetaData, create_engine
from sqlalchemy.engine import Connection, Engine

from active_entity import configure, default_registry
from active_entity.storages.sqlalchemy.schema import define_table
from active_entity.tests.fakes import RecordingExecutor
from active_entity.tests.models import Author, Book, Review


def pytest_addoption(parser: Parser) -> None:
    parser.addoption("--sqlalchemy-url", action="store", default="sqlite://")


@pytest.fixture(autouse=True)
def restore_executor() -> Generator[None, None, None]:
    previous = default_registry.executor
    yield
    default_registry.executor = previous


@pytest.fixture()
def recorder() -> RecordingExecutor:
    executor = RecordingExecutor()
    configure(executor)
    return executor


@pytest.fixture()
def engine(request: SubRequest) -> Engine:
    return create_engine(request.config.getoption("--sqlalchemy-url"))


@pytest.fixture()
def metadata() -> MetaData:
    metadata = MetaData()
    for entity_cls in (Author, Book, Review):
        define_table(metadata, entity_cls)
    return metadata


@pytest.fixture()
def tables(engine: Engine, metadata: MetaData) -> Generator[MetaData, None, None]:
    metadata.drop_all(engine)
    metadata.create_all(engine)
    yield metadata
    metadata.drop_all(engine)


@pytest.fixture()
def connection(engine: Engine, tables: MetaData) -> Generator[Connection, None, None]:
    with engine.connect() as connection:
        configure(connection)
        yield connection
        connection.rollback()
