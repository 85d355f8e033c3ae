"""The finance blueprint."""

from flask import Blueprint

bp = Blueprint("finance", __name__)

from . import routes  # noqa: E402

__all__ = ["routes"]
