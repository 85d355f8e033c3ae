"""Forms for the events blueprint."""

from flask_wtf import FlaskForm  # type: ignore
from wtforms import DateField, FloatField, StringField, TimeField, ValidationError
from wtforms.validators import DataRequired, InputRequired, Length, Optional


def _positive(form, field):
    if field.data is not None and field.data <= 0:
        raise ValidationError(f"{field.label.text} must be greater than 0.")


class EventForm(FlaskForm):
    """Form for creating a new event."""

    title = StringField("Title", validators=[DataRequired(), Length(max=120)])
    date = DateField("Date", validators=[DataRequired()])
    time = TimeField("Time", validators=[Optional()])
    duration_hours = FloatField("Duration", validators=[InputRequired(), _positive])
    total_amount = FloatField("Total amount", validators=[InputRequired(), _positive])
    deadline_date = DateField("Registration deadline", validators=[DataRequired()])
    deadline_time = TimeField("Deadline time", validators=[Optional()])


class EventEditForm(FlaskForm):
    """Form for editing an event. Empty fields are left unchanged."""

    title = StringField("Title", validators=[Optional(), Length(max=120)])
    total_amount = FloatField("Total amount", validators=[Optional(), _positive])
    duration_hours = FloatField("Duration", validators=[Optional(), _positive])


class AddPlayerForm(FlaskForm):
    """Form for adding a registered player or guest to a closed event."""

    player_id = StringField("Player", validators=[DataRequired()])
