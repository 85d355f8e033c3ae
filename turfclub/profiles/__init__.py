"""The profiles blueprint."""

from flask import Blueprint

bp = Blueprint("profiles", __name__, url_prefix="/player/profile")

from . import routes  # noqa: E402

__all__ = ["routes"]
