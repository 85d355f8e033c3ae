from firebase_admin import auth, firestore
from flask import current_app, g, jsonify, request, session, url_for

from turfclub.errors import NotFoundError, ValidationError

from . import bp
from .decorators import login_required
from .services import AuthService


@bp.route("/login", methods=["GET"])
def login():
    """
    Describes how to sign in.
    The actual login happens in the Firebase client SDK, which then posts the
    ID token to session_login.
    """
    current_app.logger.info("Login page loaded")
    return jsonify(
        {
            "status": "success",
            "message": "Sign in with Firebase, then POST the ID token here.",
            "data": {"sessionLogin": url_for(".session_login")},
        }
    )


@bp.route("/session_login", methods=["POST"])
def session_login():
    """
    This endpoint is called from the client-side after a successful Firebase login.
    It receives the ID token, verifies it, and creates a server-side session.
    """
    id_token = (request.get_json(silent=True) or {}).get("idToken")
    if not id_token:
        raise ValidationError("An ID token is required.")

    try:
        decoded_token = auth.verify_id_token(id_token)
    except (ValueError, auth.InvalidIdTokenError) as e:
        current_app.logger.error(f"Error during session login: {e}")
        return jsonify({"status": "error", "message": "Invalid token."}), 401

    uid = decoded_token["uid"]
    email = decoded_token.get("email")
    db = firestore.client()
    superadmin_email = AuthService.get_superadmin_email(
        db, current_app.config.get("SUPERADMIN_EMAIL")
    )
    role = AuthService.determine_user_role(db, email, uid, superadmin_email)
    user = AuthService.load_session(db, uid, role)
    if user is None:
        raise NotFoundError("User not found in Firestore.")

    session.clear()
    session["user_id"] = uid
    session["role"] = role
    current_app.logger.info(f"User {uid} signed in as {role}.")
    return jsonify({"status": "success", "data": {"uid": uid, "role": role}})


@bp.route("/logout")
def logout():
    """
    The actual logout is handled by the Firebase client-side SDK.
    This route is for clearing any server-side session info.
    """
    session.clear()
    return jsonify({"status": "success", "message": "You have been logged out."})


@bp.route("/me")
@login_required
def me():
    """Return the signed-in user's identity and role."""
    return jsonify(
        {
            "status": "success",
            "data": {
                "uid": g.user.uid,
                "role": g.user.role,
                "name": g.user.display_name,
                "email": g.user.email,
            },
        }
    )
