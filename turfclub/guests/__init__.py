"""The guests blueprint."""

from flask import Blueprint

bp = Blueprint("guests", __name__)

from . import routes  # noqa: E402

__all__ = ["routes"]
