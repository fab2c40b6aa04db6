import logging
import typing
from datetime import date

from sqlalchemy import MetaData, create_engine

from active_entity import Entity, configure
from active_entity.storages.sqlalchemy.schema import define_table


class Author(Entity):
    __tablename__ = "authors"

    name: str = ""
    born: typing.Optional[date] = None


class Book(Entity):
    __tablename__ = "books"

    title: str = ""
    pages: int = 0
    author: typing.Optional[Author] = None


logging.basicConfig(level=logging.DEBUG)

engine = create_engine("sqlite://")
metadata = MetaData()
define_table(metadata, Author)
define_table(metadata, Book)
metadata.create_all(engine)
configure(engine)

book = Book(title="Dune", pages=412, author=Author(name="Frank Herbert", born=date(1920, 10, 8)))
assert book.insert(), book.last_error

book.pages = 896
assert book.update(), book.last_error

eager = Book()
assert eager.load(book.id)
assert eager == book, f"\n{eager}\n{book}"

lazy = Book()
assert lazy.load(book.id, eager_load=False)
assert lazy.author is None and lazy.related_id("author") == book.author.id
assert lazy.load_related("author")
assert lazy.author == book.author

assert book.delete_from_database()
assert not Book().load(eager.id)
