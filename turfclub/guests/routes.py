"""Routes for the guests blueprint."""

from firebase_admin import firestore
from flask import current_app, g, jsonify

from turfclub.auth.decorators import login_required
from turfclub.auth.services import PlayerDirectory
from turfclub.core.constants import CLUB_ROLES, EVENT_MANAGER_ROLES, ROLE_SECRETARY
from turfclub.errors import ValidationError
from turfclub.utils import first_form_error

from . import bp
from .forms import GuestForm
from .services import GuestService


@bp.route("/player/guests")
@login_required(roles=CLUB_ROLES)
def my_guests():
    """List the guests the signed-in member can bring to events."""
    db = firestore.client()
    return jsonify(
        {"status": "success", "data": GuestService.linked_guests(db, g.user.uid)}
    )


@bp.route("/secretary/guests")
@login_required(roles=(ROLE_SECRETARY,))
def list_guests():
    """List every active guest."""
    db = firestore.client()
    return jsonify({"status": "success", "data": GuestService.list_guests(db)})


@bp.route("/secretary/guests", methods=["POST"])
@login_required(roles=(ROLE_SECRETARY,))
def add_guest():
    """Add a guest player linked to one or more parents."""
    form = GuestForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))

    db = firestore.client()
    guest_id = GuestService.create(
        db, form.guest_name.data, form.parent_ids.data or [], form.notes.data, g.user
    )
    current_app.logger.info(f"Guest {guest_id} added by {g.user.uid}")
    return (
        jsonify(
            {
                "status": "success",
                "message": "Guest player added successfully.",
                "data": {"id": guest_id},
            }
        ),
        201,
    )


@bp.route("/secretary/guests/<string:guest_id>/deactivate", methods=["POST"])
@login_required(roles=(ROLE_SECRETARY,))
def deactivate_guest(guest_id):
    """Deactivate a guest player."""
    db = firestore.client()
    GuestService.deactivate(db, guest_id, g.user)
    return jsonify({"status": "success", "message": "Guest deactivated."})


@bp.route("/secretary/players")
@login_required(roles=EVENT_MANAGER_ROLES)
def list_players():
    """List registered players, for choosing a guest's parents."""
    db = firestore.client()
    return jsonify({"status": "success", "data": PlayerDirectory.list_players(db)})
