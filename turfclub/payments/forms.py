"""Forms for the payments blueprint."""

from flask_wtf import FlaskForm  # type: ignore
from wtforms import FloatField, SelectMultipleField, ValidationError
from wtforms.validators import InputRequired


class BulkPaymentForm(FlaskForm):
    """Form for marking several payments of one event at once."""

    payment_ids = SelectMultipleField("Payments", validate_choice=False)

    def validate_payment_ids(self, field):
        """Require at least one payment."""
        if not field.data:
            raise ValidationError("Select at least one payment.")


class RecordAmountForm(FlaskForm):
    """Form for recording cash received against one payment."""

    amount = FloatField("Amount", validators=[InputRequired()])

    def validate_amount(self, field):
        """Validate that the amount is positive."""
        if field.data is not None and field.data <= 0:
            raise ValidationError("Amount must be greater than 0.")
