import sqlite3

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()

# Shared by the column definitions and the form validators.
NAME_MAX_LENGTH = 100


@event.listens_for(Engine, "connect")
def enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """
    SQLite only enforces foreign keys (and so ON DELETE RESTRICT) when asked to.
    """
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def format_date_medium(value):
    """
    Format a date the way the catalog displays it, e.g. 'Jan 3, 1892'.

    Returns an empty string for missing dates.
    """
    if value is None:
        return ""
    return f"{value:%b} {value.day}, {value.year}"


def format_date_iso(value):
    """
    Format a date for pre-filling an <input type="date"> ('YYYY-MM-DD').
    """
    return value.isoformat() if value else ""


class Author(db.Model):
    """
    Author model storing names and optional life dates.

    Text columns hold HTML-escaped values (see forms.sanitize).
    """
    __tablename__ = 'authors'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    first_name = db.Column(db.String(NAME_MAX_LENGTH), nullable=False)
    family_name = db.Column(db.String(NAME_MAX_LENGTH), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=True)
    date_of_death = db.Column(db.Date, nullable=True)

    # No delete cascade: an author with books must not be removed.
    books = db.relationship(
        "Book",
        back_populates="author",
        passive_deletes="all",
    )

    @property
    def name(self):
        if self.first_name and self.family_name:
            return f"{self.family_name} {self.first_name}"
        return ""

    @property
    def url(self):
        return f"/author/{self.id}"

    @property
    def date_of_birth_formatted(self):
        return format_date_medium(self.date_of_birth)

    @property
    def date_of_death_formatted(self):
        return format_date_medium(self.date_of_death)

    @property
    def date_of_birth_form(self):
        return format_date_iso(self.date_of_birth)

    @property
    def date_of_death_form(self):
        return format_date_iso(self.date_of_death)

    @property
    def lifespan(self):
        return f"{self.date_of_birth_formatted} - {self.date_of_death_formatted}"

    def __repr__(self):
        return f"Author(id = {self.id}, name = {self.name})"

    def __str__(self):
        return f"{self.name}"


class Book(db.Model):
    """
    Book model storing title, summary, ISBN and the author link.
    """
    __tablename__ = 'books'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    title = db.Column(db.String(255), nullable=False)
    summary = db.Column(db.Text, nullable=False)
    isbn = db.Column(db.String(32), nullable=False)

    author_id = db.Column(
        db.Integer,
        db.ForeignKey("authors.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    author = db.relationship("Author", back_populates="books")

    @property
    def url(self):
        return f"/book/{self.id}"

    def __repr__(self):
        return f"<Book id={self.id} title='{self.title}'>"

    def __str__(self):
        return f"{self.title}"
