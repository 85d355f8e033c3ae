"""Decorators for the auth blueprint."""

from functools import wraps

from flask import g, redirect, session, url_for

from turfclub.core.constants import ROLE_SUPERADMIN
from turfclub.errors import PermissionDeniedError


def login_required(f=None, roles=None):
    """Redirect to the login page if the user is not logged in.

    Usage:
    @login_required
    def protected_view():
        ...

    @login_required(roles=("treasurer",))
    def treasurer_view():
        ...
    """

    def decorator(func):
        @wraps(func)
        def decorated_function(*args, **kwargs):
            if "user_id" not in session or g.get("user") is None:
                return redirect(url_for("auth.login"))
            role = g.user.role
            if roles and role not in roles and role != ROLE_SUPERADMIN:
                raise PermissionDeniedError(
                    "You are not authorized to view this page."
                )
            return func(*args, **kwargs)

        return decorated_function

    if f:
        return decorator(f)
    return decorator
