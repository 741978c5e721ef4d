"""
Local Library - a library catalog built with Flask and SQLAlchemy.

Features:
- Browse authors and books, with detail pages
- Create and update authors and books (with validation and sanitizing)
- Delete books, and authors that have no books left
- Search authors and books, as full pages or as live-search fragments
"""


import logging
import os

from flask import Flask, request, render_template, redirect, url_for, flash
from flask_wtf import CSRFProtect
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload, load_only

from data_models import db, Author, Book
from forms import AuthorForm, AuthorCreateForm, BookForm, error_list, sanitize, unescape


logger = logging.getLogger(__name__)


app = Flask(__name__)
app.secret_key = os.environ.get("LIBRARY_SECRET_KEY", "dev-secret-key")    # Dev default only.

basedir = os.path.abspath(os.path.dirname(__file__))
DEFAULT_DATABASE_URI = f"sqlite:///{os.path.join(basedir, 'data/library.sqlite')}"
app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get("LIBRARY_DATABASE_URI", DEFAULT_DATABASE_URI)
app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
db.init_app(app)
csrf = CSRFProtect(app)


class PersistenceError(Exception):
    """
    A write to the database failed; the message is safe to show to the user.
    """


def commit(action: str):
    """
    Commit the session. On failure roll back, log, and raise PersistenceError.
    """
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Database error while %s", action)
        raise PersistenceError(f"There was an error {action}.") from exc


def search_text(query: str) -> str:
    """
    Escape a search query the same way stored text is, so it compares against
    the stored form.
    """
    return sanitize(query) or ""


def all_authors():
    return Author.query.order_by(Author.family_name.asc()).all()


def books_by_author(author_id: int):
    return (
        Book.query
        .filter_by(author_id=author_id)
        .options(load_only(Book.title, Book.summary))
        .order_by(Book.title.asc())
        .all()
    )


def search_authors(query: str):
    text = search_text(query)
    return (
        Author.query
        .filter(
            Author.first_name.icontains(text, autoescape=True)
            | Author.family_name.icontains(text, autoescape=True)
        )
        .order_by(Author.family_name.asc())
        .all()
    )


def search_books(query: str):
    text = search_text(query)
    return (
        Book.query
        .options(joinedload(Book.author))
        .filter(Book.title.icontains(text, autoescape=True))
        .order_by(Book.title.asc())
        .all()
    )


def create_app():
    """
    Factory hook: makes sure the tables exist and returns the app.
    Used by `python app.py`; `flask run` does not call it.
    """
    if app.config["SQLALCHEMY_DATABASE_URI"] == DEFAULT_DATABASE_URI:
        os.makedirs(os.path.join(basedir, "data"), exist_ok=True)
    with app.app_context():
        db.create_all()
    return app


@app.errorhandler(404)
def not_found(error):
    return render_template("error.html", title="Not Found", message=error.description, status=404), 404


@app.errorhandler(PersistenceError)
def persistence_failed(error):
    return render_template("error.html", title="Error", message=str(error), status=500), 500


@app.route("/")
def index():
    """
    Landing page with the number of books and authors.
    """
    book_count = Book.query.count()
    author_count = Author.query.count()
    return render_template(
        "index.html",
        title="Local Library Home",
        book_count=book_count,
        author_count=author_count,
    )


# --- Authors ---

@app.route("/authors")
def author_list():
    return render_template("author_list.html", title="Author List", author_list=all_authors())


@app.route("/authors/search")
def author_search():
    """
    Full-page author search on first or family name.
    An empty query goes back to the full list.
    """
    q = request.args.get("q", "").strip()
    if not q:
        return redirect(url_for("author_list"))

    return render_template("author_list.html", title="Author List", author_list=search_authors(q), q=q)


@app.route("/authors/search2")
def author_search_fragment():
    """
    Same search as author_search, rendered as a bare list for live search.
    """
    q = request.args.get("q", "").strip()
    return render_template("author_list_change.html", author_list=search_authors(q))


@app.route("/author/create", methods=["GET", "POST"])
def author_create():
    form = AuthorCreateForm()

    if form.validate_on_submit():
        author = Author(**form.sanitized_data())
        db.session.add(author)
        commit("saving the author")

        logger.info("Created author %s (id=%s)", author.name, author.id)
        return redirect(author.url, code=303)

    return render_template("author_form.html", title="Create Author", form=form, errors=error_list(form))


@app.route("/author/<int:author_id>")
def author_detail(author_id):
    author = db.get_or_404(Author, author_id, description="Author not found")
    return render_template(
        "author_detail.html",
        title="Author Detail",
        author=author,
        author_books=books_by_author(author_id),
    )


@app.route("/author/<int:author_id>/delete", methods=["GET", "POST"])
def author_delete(author_id):
    """
    Confirm and delete an author. Authors that still have books are never
    deleted; the confirmation page lists the books instead.
    """
    author = db.session.get(Author, author_id)
    if author is None:
        return redirect(url_for("author_list"), code=303)

    author_books = books_by_author(author_id)

    if request.method == "GET" or author_books:
        if author_books and request.method == "POST":
            logger.info("Refused to delete author id=%s: %d book(s) reference it", author_id, len(author_books))
        return render_template(
            "author_delete.html",
            title="Delete Author",
            author=author,
            author_books=author_books,
        )

    name = author.name
    db.session.delete(author)
    try:
        db.session.commit()
    except IntegrityError:
        # A book was added for this author in the meantime.
        db.session.rollback()
        logger.info("Refused to delete author id=%s: foreign key violation", author_id)
        return render_template(
            "author_delete.html",
            title="Delete Author",
            author=db.session.get(Author, author_id),
            author_books=books_by_author(author_id),
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Database error while deleting author id=%s", author_id)
        raise PersistenceError("There was an error deleting the author.") from exc

    logger.info("Deleted author id=%s", author_id)
    flash(f"Author '{unescape(name)}' was deleted.", "success")
    return redirect(url_for("author_list"), code=303)


@app.route("/author/<int:author_id>/update", methods=["GET", "POST"])
def author_update(author_id):
    author = db.get_or_404(Author, author_id, description="Author not found")

    if request.method == "GET":
        form = AuthorForm.for_author(author)
        return render_template("author_form.html", title="Update Author", form=form, errors=[])

    form = AuthorForm()
    if not form.validate_on_submit():
        return render_template("author_form.html", title="Update Author", form=form, errors=error_list(form))

    # Update the existing row so the author keeps its id.
    for field, value in form.sanitized_data().items():
        setattr(author, field, value)
    commit("updating the author")

    logger.info("Updated author id=%s", author.id)
    return redirect(author.url, code=303)


# --- Books ---

@app.route("/books")
def book_list():
    books = Book.query.options(joinedload(Book.author)).order_by(Book.title.asc()).all()
    return render_template("book_list.html", title="Book List", book_list=books)


@app.route("/books/search")
def book_search():
    """
    Full-page book search on title.
    An empty query goes back to the full list.
    """
    q = request.args.get("q", "").strip()
    if not q:
        return redirect(url_for("book_list"))

    return render_template("book_list.html", title="Book List", book_list=search_books(q), q=q)


@app.route("/books/search2")
def book_search_fragment():
    """
    Same search as book_search, rendered as a bare list for live search.
    """
    q = request.args.get("q", "").strip()
    return render_template("book_list_change.html", book_list=search_books(q))


@app.route("/book/create", methods=["GET", "POST"])
def book_create():
    form = BookForm(all_authors())

    if form.validate_on_submit():
        book = Book(**form.sanitized_data())
        db.session.add(book)
        commit("saving the book")

        logger.info("Created book %s (id=%s)", book.title, book.id)
        return redirect(book.url, code=303)

    return render_template("book_form.html", title="Create Book", form=form, errors=error_list(form))


@app.route("/book/<int:book_id>")
def book_detail(book_id):
    book = db.get_or_404(Book, book_id, description="Book not found")
    return render_template("book_detail.html", title=book.title, book=book)


@app.route("/book/<int:book_id>/delete", methods=["GET", "POST"])
def book_delete(book_id):
    book = db.session.get(Book, book_id)

    if request.method == "GET":
        if book is None:
            return redirect(url_for("book_list"))
        return render_template("book_delete.html", title="Delete Book", book=book)

    if book is not None:
        title = book.title
        db.session.delete(book)
        commit("deleting the book")

        logger.info("Deleted book id=%s", book_id)
        flash(f"Book '{unescape(title)}' was deleted.", "success")

    return redirect(url_for("book_list"), code=303)


@app.route("/book/<int:book_id>/update", methods=["GET", "POST"])
def book_update(book_id):
    book = db.get_or_404(Book, book_id, description="Book not found")
    authors = all_authors()

    if request.method == "GET":
        form = BookForm.for_book(book, authors)
        return render_template("book_form.html", title="Update Book", form=form, errors=[])

    form = BookForm(authors)
    if not form.validate_on_submit():
        return render_template("book_form.html", title="Update Book", form=form, errors=error_list(form))

    # Update the existing row so the book keeps its id.
    for field, value in form.sanitized_data().items():
        setattr(book, field, value)
    commit("updating the book")

    logger.info("Updated book id=%s", book.id)
    return redirect(book.url, code=303)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    create_app().run(debug=True)
