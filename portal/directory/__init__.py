from flask import Blueprint

directory_bp = Blueprint("directory", __name__, url_prefix="/api")

from portal.directory import routes  # noqa: E402,F401
