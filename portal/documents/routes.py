from __future__ import annotations

from flask import jsonify, request, send_file
from flask_login import current_user, login_required

from portal.core.api import json_error, rejected, request_payload
from portal.core.models import PermissionAction
from portal.core.permissions import require_permission
from portal.documents import documents_bp
from portal.documents.services import (
    approve_constancia,
    approve_resolucion,
    create_constancia,
    create_resolucion,
    delete_constancia,
    delete_resolucion,
    get_constancia,
    get_resolucion,
    list_constancias,
    list_facultades,
    list_resoluciones,
    reject_constancia,
    reject_resolucion,
    search_approved_documents,
    stored_file_path,
    update_constancia,
    update_resolucion,
)

CONSTANCIAS = "constancias.access"
RESOLUCIONES = "resoluciones.access"


# Constancias


@documents_bp.get("/api/documents/constancias")
@login_required
@require_permission(CONSTANCIAS, PermissionAction.READ)
def constancias_index():
    return jsonify([c.to_dict() for c in list_constancias()])


@documents_bp.post("/api/documents/constancias")
@login_required
@require_permission(CONSTANCIAS, PermissionAction.CREATE)
def constancias_create():
    try:
        constancia = create_constancia(request_payload(), request.files.get("file"), current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify(constancia.to_dict()), 201


@documents_bp.get("/api/documents/constancias/<int:constancia_id>")
@login_required
@require_permission(CONSTANCIAS, PermissionAction.READ)
def constancias_detail(constancia_id: int):
    return jsonify(get_constancia(constancia_id).to_dict())


@documents_bp.patch("/api/documents/constancias/<int:constancia_id>")
@login_required
@require_permission(CONSTANCIAS, PermissionAction.UPDATE)
def constancias_update(constancia_id: int):
    try:
        constancia = update_constancia(constancia_id, request_payload(), request.files.get("file"), current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify(constancia.to_dict())


@documents_bp.delete("/api/documents/constancias/<int:constancia_id>")
@login_required
@require_permission(CONSTANCIAS, PermissionAction.DELETE)
def constancias_delete(constancia_id: int):
    try:
        delete_constancia(constancia_id, current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify({"message": "Constancia eliminada correctamente"})


@documents_bp.post("/api/documents/constancias/<int:constancia_id>/approve")
@login_required
@require_permission(CONSTANCIAS, PermissionAction.UPDATE)
def constancias_approve(constancia_id: int):
    try:
        constancia = approve_constancia(constancia_id, current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify(constancia.to_dict())


@documents_bp.post("/api/documents/constancias/<int:constancia_id>/reject")
@login_required
@require_permission(CONSTANCIAS, PermissionAction.UPDATE)
def constancias_reject(constancia_id: int):
    try:
        constancia = reject_constancia(constancia_id, current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify(constancia.to_dict())


# Resoluciones


@documents_bp.get("/api/documents/resoluciones")
@login_required
@require_permission(RESOLUCIONES, PermissionAction.READ)
def resoluciones_index():
    return jsonify([r.to_dict() for r in list_resoluciones()])


@documents_bp.get("/api/documents/facultades")
@login_required
def facultades_index():
    return jsonify([f.to_dict() for f in list_facultades()])


@documents_bp.post("/api/documents/resoluciones")
@login_required
@require_permission(RESOLUCIONES, PermissionAction.CREATE)
def resoluciones_create():
    try:
        resolucion = create_resolucion(request_payload(), request.files.getlist("files"), current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify(resolucion.to_dict()), 201


@documents_bp.get("/api/documents/resoluciones/<int:resolucion_id>")
@login_required
@require_permission(RESOLUCIONES, PermissionAction.READ)
def resoluciones_detail(resolucion_id: int):
    return jsonify(get_resolucion(resolucion_id).to_dict())


@documents_bp.put("/api/documents/resoluciones/<int:resolucion_id>")
@login_required
@require_permission(RESOLUCIONES, PermissionAction.UPDATE)
def resoluciones_update(resolucion_id: int):
    try:
        resolucion = update_resolucion(
            resolucion_id,
            request_payload(),
            request.files.getlist("files"),
            current_user,
        )
    except ValueError as exc:
        return rejected(exc)
    return jsonify(resolucion.to_dict())


@documents_bp.delete("/api/documents/resoluciones/<int:resolucion_id>")
@login_required
@require_permission(RESOLUCIONES, PermissionAction.DELETE)
def resoluciones_delete(resolucion_id: int):
    try:
        delete_resolucion(resolucion_id, current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify({"message": "Resolución eliminada correctamente"})


@documents_bp.post("/api/documents/resoluciones/<int:resolucion_id>/approve")
@login_required
@require_permission(RESOLUCIONES, PermissionAction.UPDATE)
def resoluciones_approve(resolucion_id: int):
    try:
        resolucion = approve_resolucion(resolucion_id, current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify(resolucion.to_dict())


@documents_bp.post("/api/documents/resoluciones/<int:resolucion_id>/reject")
@login_required
@require_permission(RESOLUCIONES, PermissionAction.UPDATE)
def resoluciones_reject(resolucion_id: int):
    try:
        resolucion = reject_resolucion(resolucion_id, current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify(resolucion.to_dict())


# Files and public search


@documents_bp.get("/api/documents/files/<kind>/<name>")
@login_required
def document_file(kind: str, name: str):
    try:
        path = stored_file_path(kind, name)
    except ValueError as exc:
        return json_error(str(exc), 403)
    return send_file(path, conditional=True)


@documents_bp.post("/api/public/documentos/buscar")
def public_search():
    payload = request_payload()
    try:
        results = search_approved_documents(str(payload.get("query") or ""))
    except ValueError as exc:
        return json_error(str(exc), 400)
    return jsonify(results)
