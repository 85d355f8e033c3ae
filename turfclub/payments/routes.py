"""Routes for the payments blueprint."""

from firebase_admin import firestore
from flask import Response, g, jsonify, stream_with_context

from turfclub.auth.decorators import login_required
from turfclub.core.constants import (
    CLUB_ROLES,
    EVENTS_COLLECTION,
    PAYMENTS_COLLECTION,
    ROLE_TREASURER,
)
from turfclub.core.realtime import event_stream
from turfclub.errors import NotFoundError, ValidationError
from turfclub.utils import first_form_error, plural

from . import bp
from .forms import BulkPaymentForm, RecordAmountForm
from .services import PaymentService


@bp.route("/player/payments")
@login_required(roles=CLUB_ROLES)
def my_payments():
    """List the signed-in member's payments and those of their guests."""
    db = firestore.client()
    payments = PaymentService.list_for_player(db, g.user.uid)
    return jsonify(
        {
            "status": "success",
            "data": {
                "payments": payments,
                "summary": PaymentService.summarize(payments),
            },
        }
    )


@bp.route("/treasurer/payments/<string:event_id>")
@login_required(roles=(ROLE_TREASURER,))
def event_payments(event_id):
    """List an event's payments with collection totals."""
    db = firestore.client()
    event_doc = db.collection(EVENTS_COLLECTION).document(event_id).get()
    if not event_doc.exists:
        raise NotFoundError("Event not found")
    event = event_doc.to_dict() or {}
    event["id"] = event_id

    payments = PaymentService.list_for_event(db, event_id)
    return jsonify(
        {
            "status": "success",
            "data": {
                "event": event,
                "payments": payments,
                "summary": PaymentService.summarize(payments),
            },
        }
    )


@bp.route("/treasurer/payments/<string:event_id>/mark-paid", methods=["POST"])
@login_required(roles=(ROLE_TREASURER,))
def mark_paid(event_id):
    """Mark the selected payments as fully paid."""
    form = BulkPaymentForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))

    db = firestore.client()
    count = PaymentService.mark_paid(db, event_id, form.payment_ids.data, g.user)
    return jsonify(
        {
            "status": "success",
            "message": f"Marked {plural(count, 'payment')} as paid.",
            "data": {"updated": count},
        }
    )


@bp.route("/treasurer/payments/<string:event_id>/mark-unpaid", methods=["POST"])
@login_required(roles=(ROLE_TREASURER,))
def mark_unpaid(event_id):
    """Reset the selected payments to unpaid."""
    form = BulkPaymentForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))

    db = firestore.client()
    count = PaymentService.mark_unpaid(db, event_id, form.payment_ids.data, g.user)
    return jsonify(
        {
            "status": "success",
            "message": f"Marked {plural(count, 'payment')} as unpaid.",
            "data": {"updated": count},
        }
    )


@bp.route(
    "/treasurer/payments/<string:event_id>/<string:payment_id>/record",
    methods=["POST"],
)
@login_required(roles=(ROLE_TREASURER,))
def record_amount(event_id, payment_id):
    """Record cash received against one payment."""
    form = RecordAmountForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))

    db = firestore.client()
    payment = PaymentService.record_amount(
        db, payment_id, form.amount.data, g.user, event_id=event_id
    )
    return jsonify({"status": "success", "data": payment})


@bp.route("/treasurer/payments/<string:event_id>/feed")
@login_required(roles=(ROLE_TREASURER,))
def payments_feed(event_id):
    """Stream the event's payments as server-sent events."""
    db = firestore.client()
    query = db.collection(PAYMENTS_COLLECTION).where(
        filter=firestore.FieldFilter("eventId", "==", event_id)
    )

    def with_summary(payments):
        return {"payments": payments, "summary": PaymentService.summarize(payments)}

    return Response(
        stream_with_context(event_stream(query, with_summary)),
        mimetype="text/event-stream",
    )
