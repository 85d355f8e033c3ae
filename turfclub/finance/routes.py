"""Routes for the finance blueprint."""

from firebase_admin import firestore
from flask import Response, g, jsonify, stream_with_context

from turfclub.auth.decorators import login_required
from turfclub.core.constants import (
    CLUB_ROLES,
    EVENT_MANAGER_ROLES,
    EVENTS_COLLECTION,
    EXPENSES_COLLECTION,
    INCOME_COLLECTION,
    ROLE_TREASURER,
)
from turfclub.core.realtime import event_stream
from turfclub.errors import ValidationError
from turfclub.utils import combine_date_time, first_form_error, format_currency

from . import bp
from .forms import ExpenseForm, IncomeForm, VendorPaymentForm
from .services import FinanceService


@bp.route("/treasurer/finance/summary")
@login_required(roles=(ROLE_TREASURER,))
def summary():
    """Show club income, expenses and the team fund."""
    db = firestore.client()
    return jsonify(
        {
            "status": "success",
            "data": {
                "finances": FinanceService.financial_summary(db),
                "teamFund": FinanceService.team_fund_summary(db),
            },
        }
    )


@bp.route("/player/ledger")
@login_required(roles=CLUB_ROLES)
def club_ledger():
    """Show every member the club's income, expenses and event collections."""
    db = firestore.client()
    return jsonify({"status": "success", "data": FinanceService.club_ledger(db)})


@bp.route("/treasurer/finance/team-fund/refresh", methods=["POST"])
@login_required(roles=(ROLE_TREASURER,))
def refresh_team_fund():
    """Recompute the cached team fund summary."""
    db = firestore.client()
    return jsonify(
        {"status": "success", "data": FinanceService.team_fund_summary(db, refresh=True)}
    )


@bp.route("/treasurer/finance/expenses")
@login_required(roles=EVENT_MANAGER_ROLES)
def list_expenses():
    """List club expenses."""
    db = firestore.client()
    return jsonify({"status": "success", "data": FinanceService.list_expenses(db)})


@bp.route("/treasurer/finance/expenses", methods=["POST"])
@login_required(roles=(ROLE_TREASURER,))
def add_expense():
    """Record a club expense."""
    form = ExpenseForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))

    db = firestore.client()
    expense_id = FinanceService.add_expense(
        db,
        form.expense_name.data,
        form.amount.data,
        combine_date_time(form.date_spent.data, None),
        form.description.data,
        g.user,
    )
    return (
        jsonify(
            {
                "status": "success",
                "message": f"Expense of {format_currency(form.amount.data)} added.",
                "data": {"id": expense_id},
            }
        ),
        201,
    )


@bp.route("/treasurer/finance/expenses/<string:expense_id>", methods=["DELETE"])
@login_required(roles=(ROLE_TREASURER,))
def delete_expense(expense_id):
    """Delete a manually entered expense."""
    db = firestore.client()
    FinanceService.delete_expense(db, expense_id, g.user)
    return jsonify({"status": "success", "message": "Expense deleted."})


@bp.route("/treasurer/finance/income")
@login_required(roles=(ROLE_TREASURER,))
def list_income():
    """List income received directly by the club."""
    db = firestore.client()
    return jsonify({"status": "success", "data": FinanceService.list_income(db)})


@bp.route("/treasurer/finance/income", methods=["POST"])
@login_required(roles=(ROLE_TREASURER,))
def add_income():
    """Record income received directly by the club."""
    form = IncomeForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))

    db = firestore.client()
    income_id = FinanceService.add_income(
        db,
        form.income_name.data,
        form.amount.data,
        combine_date_time(form.date_received.data, None),
        form.income_source.data,
        form.description.data,
        g.user,
    )
    return (
        jsonify(
            {
                "status": "success",
                "message": f"Income of {format_currency(form.amount.data)} added.",
                "data": {"id": income_id},
            }
        ),
        201,
    )


@bp.route("/treasurer/finance/vendor/unpaid-events")
@login_required(roles=(ROLE_TREASURER,))
def unpaid_events():
    """List closed events whose venue has not been paid."""
    db = firestore.client()
    return jsonify({"status": "success", "data": FinanceService.unpaid_events(db)})


@bp.route("/treasurer/finance/vendor/<string:event_id>/paid", methods=["POST"])
@login_required(roles=(ROLE_TREASURER,))
def mark_vendor_paid(event_id):
    """Record that an event's venue was paid."""
    form = VendorPaymentForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))

    db = firestore.client()
    date_paid = (
        combine_date_time(form.date_paid.data, None) if form.date_paid.data else None
    )
    expense_id = FinanceService.mark_event_paid_to_vendor(
        db, event_id, g.user, date_paid
    )
    return jsonify(
        {
            "status": "success",
            "message": "Event marked as paid to vendor.",
            "data": {"expenseId": expense_id},
        }
    )


def _feed(collection):
    db = firestore.client()
    return Response(
        stream_with_context(event_stream(db.collection(collection))),
        mimetype="text/event-stream",
    )


@bp.route("/treasurer/finance/feeds/expenses")
@login_required(roles=(ROLE_TREASURER,))
def expenses_feed():
    """Stream expenses as server-sent events."""
    return _feed(EXPENSES_COLLECTION)


@bp.route("/treasurer/finance/feeds/income")
@login_required(roles=(ROLE_TREASURER,))
def income_feed():
    """Stream income entries as server-sent events."""
    return _feed(INCOME_COLLECTION)


@bp.route("/treasurer/finance/feeds/events")
@login_required(roles=(ROLE_TREASURER,))
def events_feed():
    """Stream events as server-sent events."""
    return _feed(EVENTS_COLLECTION)
