"""Routes for the events blueprint."""

from firebase_admin import firestore
from flask import current_app, g, jsonify, request

from turfclub.auth.decorators import login_required
from turfclub.core.constants import (
    CLUB_ROLES,
    EVENT_MANAGER_ROLES,
    EVENT_VIEW_UPCOMING,
    ROLE_SECRETARY,
    ROLE_TREASURER,
)
from turfclub.core.costs import share_for
from turfclub.errors import ValidationError
from turfclub.utils import combine_date_time, first_form_error, plural

from . import bp
from .forms import AddPlayerForm, EventEditForm, EventForm
from .models import EventChanges, EventSubmission
from .participation import ParticipationService
from .reconcile import ReconciliationService
from .services import EventService


@bp.route("/events/")
@login_required(roles=CLUB_ROLES)
def list_events():
    """List events for the signed-in member: upcoming, joined or past."""
    db = firestore.client()
    view = request.args.get("view", EVENT_VIEW_UPCOMING)
    joined_ids = EventService.joined_event_ids(db, g.user.uid)
    events = EventService.filter_for_member(
        EventService.list_events(db), joined_ids, view
    )
    return jsonify(
        {
            "status": "success",
            "data": EventService.annotate_for_member(events, joined_ids),
        }
    )


@bp.route("/events/<string:event_id>")
@login_required(roles=CLUB_ROLES)
def view_event(event_id):
    """Show one event with the member's share and join state."""
    db = firestore.client()
    event = EventService.get(db, event_id)
    joined_ids = EventService.joined_event_ids(db, g.user.uid)
    annotated = EventService.annotate_for_member([event], joined_ids)[0]
    return jsonify({"status": "success", "data": annotated})


@bp.route("/events/<string:event_id>/participants")
@login_required(roles=CLUB_ROLES)
def event_participants(event_id):
    """List who joined an event."""
    db = firestore.client()
    event = EventService.get(db, event_id)
    participants = EventService.list_participants(db, event_id)
    return jsonify(
        {
            "status": "success",
            "data": {
                "event": event,
                "participants": participants,
                "perPlayerAmount": share_for(event, len(participants)),
            },
        }
    )


@bp.route("/events/<string:event_id>/join", methods=["POST"])
@login_required(roles=CLUB_ROLES)
def join_event(event_id):
    """Join an event, optionally with linked guests."""
    db = firestore.client()
    guest_ids = request.form.getlist("guest_ids")
    result = ParticipationService.join(db, event_id, g.user, guest_ids)
    guest_text = f" with {plural(result.guest_count, 'guest')}" if guest_ids else ""
    return jsonify(
        {
            "status": "success",
            "message": f"You{guest_text} have successfully joined the event.",
            "data": {
                "participantIds": result.participant_ids,
                "participantCount": result.participant_count,
            },
        }
    )


@bp.route("/events/<string:event_id>/leave", methods=["POST"])
@login_required(roles=CLUB_ROLES)
def leave_event(event_id):
    """Leave an event together with any guests brought along."""
    db = firestore.client()
    result = ParticipationService.leave(db, event_id, g.user)
    guests = result.removed_count - 1
    guest_text = f" and {plural(guests, 'guest')}" if guests > 0 else ""
    return jsonify(
        {
            "status": "success",
            "message": f"You{guest_text} have successfully left the event.",
            "data": {
                "removedIds": result.removed_ids,
                "participantCount": result.participant_count,
            },
        }
    )


@bp.route("/secretary/events")
@bp.route("/treasurer/events")
@login_required(roles=EVENT_MANAGER_ROLES)
def manage_events():
    """List every event for the event managers, optionally by status."""
    db = firestore.client()
    events = EventService.list_events(db)
    status = request.args.get("status")
    if status:
        events = [e for e in events if e.get("status") == status]
    for event in events:
        event["perPlayerAmount"] = share_for(event)
    return jsonify({"status": "success", "data": events})


@bp.route("/secretary/events", methods=["POST"])
@bp.route("/treasurer/events", methods=["POST"])
@login_required(roles=EVENT_MANAGER_ROLES)
def create_event():
    """Create an event."""
    form = EventForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))

    db = firestore.client()
    submission = EventSubmission(
        title=form.title.data,
        date=combine_date_time(form.date.data, form.time.data),
        total_amount=form.total_amount.data,
        duration_hours=form.duration_hours.data,
        deadline=combine_date_time(form.deadline_date.data, form.deadline_time.data),
        time=form.time.data.strftime("%H:%M") if form.time.data else "",
    )
    event_id = EventService.create(db, submission, g.user)
    current_app.logger.info(f"Event {event_id} created by {g.user.uid}")
    return (
        jsonify(
            {
                "status": "success",
                "message": "Event created successfully.",
                "data": {"id": event_id},
            }
        ),
        201,
    )


@bp.route("/secretary/events/<string:event_id>", methods=["DELETE"])
@login_required(roles=(ROLE_SECRETARY,))
def delete_event(event_id):
    """Delete an event and everything recorded against it."""
    db = firestore.client()
    removed = EventService.delete(db, event_id, g.user)
    return jsonify(
        {"status": "success", "message": "Event deleted.", "data": removed}
    )


@bp.route("/treasurer/events/<string:event_id>/edit", methods=["POST"])
@login_required(roles=EVENT_MANAGER_ROLES)
def edit_event(event_id):
    """Edit the title, cost or duration of an event."""
    form = EventEditForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))

    db = firestore.client()
    changes = EventChanges(
        title=form.title.data or None,
        total_amount=form.total_amount.data,
        duration_hours=form.duration_hours.data,
    )
    event = EventService.edit(db, event_id, changes, g.user)
    return jsonify({"status": "success", "message": "Event updated.", "data": event})


@bp.route("/treasurer/events/<string:event_id>/close", methods=["POST"])
@login_required(roles=EVENT_MANAGER_ROLES)
def close_event(event_id):
    """Close registration and create the payments."""
    db = firestore.client()
    count = EventService.close(db, event_id, g.user)
    return jsonify(
        {
            "status": "success",
            "message": f"Event closed with {plural(count, 'participant')}.",
            "data": {"participantCount": count},
        }
    )


@bp.route("/treasurer/events/<string:event_id>/reopen", methods=["POST"])
@login_required(roles=EVENT_MANAGER_ROLES)
def reopen_event(event_id):
    """Reopen a closed event."""
    db = firestore.client()
    deleted = EventService.reopen(db, event_id, g.user)
    return jsonify(
        {
            "status": "success",
            "message": "Event reopened.",
            "data": {"paymentsDeleted": deleted},
        }
    )


@bp.route("/treasurer/events/<string:event_id>/lock", methods=["POST"])
@login_required(roles=EVENT_MANAGER_ROLES)
def lock_event(event_id):
    """Lock a closed event."""
    db = firestore.client()
    EventService.lock(db, event_id, g.user)
    return jsonify({"status": "success", "message": "Event locked."})


@bp.route("/secretary/events/<string:event_id>/players", methods=["POST"])
@bp.route("/treasurer/events/<string:event_id>/players", methods=["POST"])
@login_required(roles=EVENT_MANAGER_ROLES)
def add_player(event_id):
    """Add a player to an event after registration closed."""
    form = AddPlayerForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))

    db = firestore.client()
    result = ParticipationService.add_after_close(
        db, event_id, form.player_id.data, g.user
    )
    message = (
        "Player added and payments recalculated."
        if result["created"]
        else "Player was already added; payments recalculated."
    )
    return jsonify({"status": "success", "message": message, "data": result})


@bp.route("/treasurer/events/auto-close", methods=["POST"])
@login_required(roles=(ROLE_TREASURER,))
def auto_close_events():
    """Close events past their deadline and lock events in the past."""
    db = firestore.client()
    result = EventService.close_due_events(db)
    return jsonify({"status": "success", "data": result})


@bp.route("/treasurer/events/<string:event_id>/reconcile", methods=["POST"])
@login_required(roles=(ROLE_TREASURER,))
def reconcile_event(event_id):
    """Repair the participant count and payments of an event."""
    db = firestore.client()
    report = ReconciliationService.reconcile_event(db, event_id)
    return jsonify({"status": "success", "data": report})
