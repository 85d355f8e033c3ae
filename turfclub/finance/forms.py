"""Forms for the finance blueprint."""

from flask_wtf import FlaskForm  # type: ignore
from wtforms import DateField, FloatField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, InputRequired, Length, Optional

from turfclub.core.constants import INCOME_SOURCES


class ExpenseForm(FlaskForm):
    """Form for a club expense."""

    expense_name = StringField("Expense name", validators=[DataRequired()])
    amount = FloatField("Amount", validators=[InputRequired()])
    date_spent = DateField("Date spent", validators=[DataRequired()])
    description = TextAreaField("Description", validators=[Optional(), Length(max=500)])


class IncomeForm(FlaskForm):
    """Form for income received directly by the club."""

    income_name = StringField("Income name", validators=[DataRequired()])
    amount = FloatField("Amount", validators=[InputRequired()])
    date_received = DateField("Date received", validators=[DataRequired()])
    income_source = SelectField(
        "Source",
        choices=[(s, s.replace("_", " ").title()) for s in INCOME_SOURCES],
        validators=[DataRequired()],
    )
    description = TextAreaField("Description", validators=[Optional(), Length(max=500)])


class VendorPaymentForm(FlaskForm):
    """Form for recording that an event's venue was paid."""

    date_paid = DateField("Date paid", validators=[Optional()])
