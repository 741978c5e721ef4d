"""
Form definitions for the catalog.

Each entity has one form class shared by its create and update handlers.
Fields are trimmed on input; sanitized_data() returns the values ready to be
stored, with text HTML-escaped.
"""

from flask_wtf import FlaskForm
from markupsafe import Markup, escape
from wtforms import DateField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Optional, Regexp, ValidationError

from data_models import NAME_MAX_LENGTH


def strip_filter(value):
    return value.strip() if isinstance(value, str) else value


def sanitize(value):
    """
    HTML-escape a trimmed text value before it is persisted.
    """
    if not value:
        return value
    return str(escape(value))


def unescape(value):
    """
    Reverse sanitize() so stored text can pre-fill a form.
    """
    if not value:
        return value
    return Markup(value).unescape()


def error_list(form):
    """
    All error messages of a submitted form, in field declaration order.
    """
    return [message for field in form for message in field.errors]


class ISODateField(DateField):
    """
    DateField accepting 'YYYY-MM-DD' that reports its own message on bad input.
    """

    def __init__(self, label=None, validators=None, invalid_message=None, **kwargs):
        super().__init__(label, validators, format="%Y-%m-%d", **kwargs)
        self.invalid_message = invalid_message

    def process_formdata(self, valuelist):
        try:
            super().process_formdata([value.strip() for value in valuelist])
        except ValueError as exc:
            raise ValueError(self.invalid_message or "Not a valid date value.") from exc


def name_length_message(label):
    return f"{label} must be specified or is too long (max {NAME_MAX_LENGTH})."


class StoredLength:
    """
    Requires a non-empty value whose escaped, stored form fits in max_length characters.
    """

    def __init__(self, max_length, message):
        self.max_length = max_length
        self.message = message

    def __call__(self, form, field):
        if not field.data or len(sanitize(field.data)) > self.max_length:
            raise ValidationError(self.message)


class AuthorForm(FlaskForm):
    first_name = StringField(
        "First name",
        filters=[strip_filter],
        validators=[StoredLength(NAME_MAX_LENGTH, message=name_length_message("First name"))],
    )
    family_name = StringField(
        "Family name",
        filters=[strip_filter],
        validators=[StoredLength(NAME_MAX_LENGTH, message=name_length_message("Family name"))],
    )
    date_of_birth = ISODateField(
        "Date of birth",
        validators=[Optional()],
        invalid_message="Invalid date of birth",
    )
    date_of_death = ISODateField(
        "Date of death",
        validators=[Optional()],
        invalid_message="Invalid date of death",
    )

    @classmethod
    def for_author(cls, author):
        """
        Build a form pre-filled from a stored author.
        """
        return cls(data={
            "first_name": unescape(author.first_name),
            "family_name": unescape(author.family_name),
            "date_of_birth": author.date_of_birth,
            "date_of_death": author.date_of_death,
        })

    def sanitized_data(self):
        return {
            "first_name": sanitize(self.first_name.data),
            "family_name": sanitize(self.family_name.data),
            "date_of_birth": self.date_of_birth.data,
            "date_of_death": self.date_of_death.data,
        }


ALPHANUMERIC = r"^[A-Za-z0-9]+$"


class AuthorCreateForm(AuthorForm):
    """
    New authors may only use letters and digits in their names.
    """

    alphanumeric_rules = {
        "first_name": Regexp(ALPHANUMERIC, message="First name has non-alphanumeric characters."),
        "family_name": Regexp(ALPHANUMERIC, message="Family name has non-alphanumeric characters."),
    }

    def validate(self, extra_validators=None):
        extra = {name: list(rules) for name, rules in (extra_validators or {}).items()}
        for name, rule in self.alphanumeric_rules.items():
            extra.setdefault(name, []).append(rule)
        return super().validate(extra_validators=extra)


class BookForm(FlaskForm):
    title = StringField(
        "Title",
        filters=[strip_filter],
        validators=[DataRequired(message="Title must not be empty.")],
    )
    author = SelectField(
        "Author",
        coerce=int,
        validate_choice=False,
        validators=[DataRequired(message="Author must not be empty.")],
    )
    summary = TextAreaField(
        "Summary",
        filters=[strip_filter],
        validators=[DataRequired(message="Summary must not be empty.")],
    )
    isbn = StringField(
        "ISBN",
        filters=[strip_filter],
        validators=[DataRequired(message="ISBN must not be empty")],
    )

    def __init__(self, authors, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Stored names are already escaped.
        self.author.choices = [(author.id, Markup(author.name)) for author in authors]

    @classmethod
    def for_book(cls, book, authors):
        return cls(authors, data={
            "title": unescape(book.title),
            "author": book.author_id,
            "summary": unescape(book.summary),
            "isbn": unescape(book.isbn),
        })

    def validate_author(self, field):
        if field.data not in {author_id for author_id, _ in field.choices}:
            raise ValidationError("Author does not exist.")

    def sanitized_data(self):
        return {
            "title": sanitize(self.title.data),
            "author_id": self.author.data,
            "summary": sanitize(self.summary.data),
            "isbn": sanitize(self.isbn.data),
        }
