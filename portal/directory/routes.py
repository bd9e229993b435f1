from __future__ import annotations

import logging

from flask import jsonify
from flask_login import login_required

from portal.core.api import json_error, request_payload
from portal.directory import directory_bp
from portal.directory.client import DirectoryError
from portal.directory.services import (
    student_by_code,
    student_by_dni,
    student_consult,
    student_consult_by_code,
    teacher_consult,
)

logger = logging.getLogger(__name__)


def _directory_failure(exc: DirectoryError, message: str):
    logger.warning("Directory lookup failed: %s", exc)
    return json_error(message, 500)


@directory_bp.get("/student/by-dni/<dni>")
def student_lookup_by_dni(dni: str):
    try:
        return jsonify(student_by_dni(dni))
    except ValueError as exc:
        return json_error(str(exc), 400)
    except DirectoryError as exc:
        return _directory_failure(exc, "Error al obtener datos del estudiante")


@directory_bp.get("/student/by-code/<code>")
def student_lookup_by_code(code: str):
    try:
        return jsonify(student_by_code(code))
    except ValueError as exc:
        return json_error(str(exc), 400)
    except DirectoryError as exc:
        return _directory_failure(exc, "Error al obtener datos del estudiante")


@directory_bp.post("/student/consult")
@login_required
def student_consult_post():
    payload = request_payload()
    try:
        return jsonify(student_consult(str(payload.get("dni") or "")))
    except ValueError as exc:
        return json_error(str(exc), 400)
    except DirectoryError as exc:
        return _directory_failure(exc, "Error al consultar la información del estudiante")


@directory_bp.post("/student/consult-by-code")
@login_required
def student_consult_by_code_post():
    payload = request_payload()
    try:
        return jsonify(student_consult_by_code(str(payload.get("codigo") or "")))
    except ValueError as exc:
        return json_error(str(exc), 400)
    except DirectoryError as exc:
        return _directory_failure(exc, "Error al consultar la información del estudiante")


@directory_bp.post("/teacher/consult")
@login_required
def teacher_consult_post():
    payload = request_payload()
    try:
        return jsonify(teacher_consult(str(payload.get("dni") or "")))
    except ValueError as exc:
        return json_error(str(exc), 400)
    except DirectoryError as exc:
        return _directory_failure(exc, "Error al consultar la información del docente")
