import os

import pytest

# Must be set before the app module configures the database.
os.environ["LIBRARY_DATABASE_URI"] = "sqlite://"

from app import app as flask_app  # noqa: E402
from data_models import db, Author, Book  # noqa: E402


@pytest.fixture
def app():
    flask_app.config.update(TESTING=True, WTF_CSRF_ENABLED=False)
    with flask_app.app_context():
        db.create_all()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def add_author(app):
    def _add(first_name="John", family_name="Tolkien", **fields):
        with app.app_context():
            author = Author(first_name=first_name, family_name=family_name, **fields)
            db.session.add(author)
            db.session.commit()
            return author.id
    return _add


@pytest.fixture
def add_book(app):
    def _add(author_id, title="The Hobbit", summary="A hobbit goes on an adventure.", isbn="9780261102217"):
        with app.app_context():
            book = Book(title=title, author_id=author_id, summary=summary, isbn=isbn)
            db.session.add(book)
            db.session.commit()
            return book.id
    return _add


@pytest.fixture
def fetch(app):
    """Load a record by id in a fresh session; None when it does not exist."""
    def _fetch(model, record_id):
        with app.app_context():
            record = db.session.get(model, record_id)
            if record is not None:
                db.session.expunge(record)
            return record
    return _fetch
