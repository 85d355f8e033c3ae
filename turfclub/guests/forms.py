"""Forms for the guests blueprint."""

from flask_wtf import FlaskForm  # type: ignore
from wtforms import SelectMultipleField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional


class GuestForm(FlaskForm):
    """Form for adding a guest player."""

    guest_name = StringField(
        "Guest name",
        validators=[
            DataRequired(),
            Length(min=2, message="Guest name is required (minimum 2 characters)"),
        ],
    )
    # Parents are any registered users, so the choices are not fixed.
    parent_ids = SelectMultipleField("Parent accounts", validate_choice=False)
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=500)])
