"""Routes for the profiles blueprint."""

from firebase_admin import firestore
from flask import current_app, g, jsonify

from turfclub.auth.decorators import login_required
from turfclub.core.constants import CLUB_ROLES
from turfclub.errors import ValidationError
from turfclub.utils import first_form_error

from . import bp
from .forms import ProfileForm
from .models import GuestProfileEntry, ProfileSubmission
from .services import ProfileService


@bp.route("/")
@login_required(roles=CLUB_ROLES)
def view_profile():
    """Show the member's profile and which guests still need one."""
    db = firestore.client()
    status = ProfileService.check_complete(db, g.user.uid)
    data = status.to_dict()
    data["linkedGuests"] = ProfileService.linked_guests(db, g.user.uid)
    return jsonify({"status": "success", "data": data})


@bp.route("/", methods=["POST"])
@login_required(roles=CLUB_ROLES)
def save_profile():
    """Complete or update the member's profile."""
    form = ProfileForm()
    if not form.validate_on_submit():
        raise ValidationError(first_form_error(form))

    submission = ProfileSubmission(
        full_name=form.full_name.data,
        jersey_number=form.jersey_number.data,
        position=form.position.data,
        guest_profiles=[
            GuestProfileEntry(
                guest_id=entry.guest_id.data,
                full_name=entry.full_name.data,
                position=entry.position.data,
                jersey_number=entry.jersey_number.data,
            )
            for entry in form.guest_profiles
        ],
    )
    db = firestore.client()
    profile = ProfileService.save(db, submission, g.user)
    current_app.logger.info(f"Profile updated by {g.user.uid}")
    return jsonify(
        {"status": "success", "message": "Profile saved successfully!", "data": profile}
    )
