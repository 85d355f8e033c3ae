"""Forms for the profiles blueprint."""

from flask_wtf import FlaskForm  # type: ignore
from wtforms import FieldList, Form, FormField, IntegerField, SelectField, StringField
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from turfclub.core.constants import MAX_JERSEY_NUMBER, MIN_JERSEY_NUMBER, PLAYER_POSITIONS

POSITION_CHOICES = [(p, p) for p in PLAYER_POSITIONS]
JERSEY_RANGE_MESSAGE = (
    f"Jersey number must be between {MIN_JERSEY_NUMBER} and {MAX_JERSEY_NUMBER}"
)


class GuestProfileEntryForm(Form):
    """One guest's details inside the profile form."""

    guest_id = StringField("Guest", validators=[DataRequired()])
    full_name = StringField("Full name", validators=[DataRequired(), Length(min=2)])
    jersey_number = IntegerField(
        "Jersey number",
        validators=[
            Optional(),
            NumberRange(
                min=MIN_JERSEY_NUMBER,
                max=MAX_JERSEY_NUMBER,
                message=JERSEY_RANGE_MESSAGE,
            ),
        ],
    )
    position = SelectField("Position", choices=POSITION_CHOICES)


class ProfileForm(FlaskForm):
    """Form for completing or updating a player profile."""

    full_name = StringField(
        "Full name",
        validators=[
            DataRequired(),
            Length(min=2, message="Please enter your full name (minimum 2 characters)"),
        ],
    )
    jersey_number = IntegerField(
        "Jersey number",
        validators=[
            DataRequired(message="Your jersey number is required"),
            NumberRange(
                min=MIN_JERSEY_NUMBER,
                max=MAX_JERSEY_NUMBER,
                message=JERSEY_RANGE_MESSAGE,
            ),
        ],
    )
    position = SelectField("Position", choices=POSITION_CHOICES)
    guest_profiles = FieldList(FormField(GuestProfileEntryForm))
