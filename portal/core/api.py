from __future__ import annotations

import logging

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from portal.core.extensions import db, login_manager
from portal.core.permissions import ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Error interno del servidor"

_HTTP_MESSAGES = {
    400: "Solicitud inválida",
    401: "No autorizado",
    403: "No tienes permisos para realizar esta acción",
    404: "Recurso no encontrado",
    405: "Método no permitido",
    413: "El archivo supera el tamaño máximo permitido",
}


def json_error(message: str, status: int, **extra):
    body: dict[str, object] = {"error": message}
    body.update(extra)
    return jsonify(body), status


def request_payload() -> dict[str, object]:
    """JSON body when present, otherwise the submitted form fields."""
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ValueError)
    def handle_value_error(exc: ValueError):
        db.session.rollback()
        return json_error(str(exc), 400)

    @app.errorhandler(NotFoundError)
    def handle_not_found(exc: NotFoundError):
        return json_error(str(exc) or _HTTP_MESSAGES[404], 404)

    @app.errorhandler(ForbiddenError)
    def handle_forbidden(exc: ForbiddenError):
        db.session.rollback()
        return json_error(str(exc) or _HTTP_MESSAGES[403], 403)

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        status = exc.code or 500
        return json_error(_HTTP_MESSAGES.get(status, exc.name), status)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        db.session.rollback()
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return json_error(GENERIC_ERROR, 500)

    @login_manager.unauthorized_handler
    def unauthorized():
        return json_error(_HTTP_MESSAGES[401], 401)


def rejected(exc: ValueError):
    db.session.rollback()
    return json_error(str(exc), 400)
