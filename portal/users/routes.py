from __future__ import annotations

from flask import jsonify, request
from flask_login import current_user, login_required

from portal.core.api import json_error, rejected, request_payload
from portal.core.models import PermissionAction
from portal.core.permissions import has_permission, require_permission
from portal.users import users_bp
from portal.users.services import (
    assign_permissions,
    bulk_update_role_permissions,
    create_module,
    create_submodule,
    create_user,
    delete_module,
    delete_submodule,
    delete_user,
    get_module,
    get_submodule,
    get_user,
    list_modules,
    list_permissions,
    list_submodules,
    list_users,
    permissions_by_role,
    reset_password,
    toggle_status,
    update_module,
    update_submodule,
    update_user,
    user_detail,
    user_permissions,
)

USERS = "users.access"
ROLES = "roles.access"


# Users


@users_bp.get("/users")
@login_required
@require_permission(USERS, PermissionAction.READ)
def users_index():
    users = list_users(request.args.get("search", ""), request.args.get("role", ""))
    return jsonify([u.to_dict() for u in users])


@users_bp.post("/users")
@login_required
@require_permission(USERS, PermissionAction.CREATE)
def users_create():
    try:
        user = create_user(request_payload(), current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify({"success": True, "user": user_detail(user)}), 201


@users_bp.get("/users/<int:user_id>")
@login_required
@require_permission(USERS, PermissionAction.READ)
def users_detail(user_id: int):
    return jsonify(user_detail(get_user(user_id)))


@users_bp.patch("/users/<int:user_id>")
@login_required
@require_permission(USERS, PermissionAction.UPDATE)
def users_update(user_id: int):
    try:
        user = update_user(user_id, request_payload(), current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify({"success": True, "user": user_detail(user)})


@users_bp.delete("/users/<int:user_id>")
@login_required
@require_permission(USERS, PermissionAction.DELETE)
def users_delete(user_id: int):
    try:
        delete_user(user_id, current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify({"success": True, "message": "Usuario eliminado correctamente"})


@users_bp.post("/users/<int:user_id>/reset-password")
@login_required
def users_reset_password(user_id: int):
    payload = request_payload()
    try:
        reset_password(user_id, str(payload.get("newPassword") or ""), current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify({"success": True, "message": "Contraseña restablecida correctamente"})


@users_bp.post("/users/<int:user_id>/toggle-status")
@login_required
@require_permission(USERS, PermissionAction.UPDATE)
def users_toggle_status(user_id: int):
    try:
        user = toggle_status(user_id, current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify(
        {
            "success": True,
            "isActive": user.is_active,
            "message": "Usuario activado" if user.is_active else "Usuario desactivado",
        }
    )


# Modules


@users_bp.get("/modules")
@login_required
def modules_index():
    return jsonify([m.to_dict() for m in list_modules()])


@users_bp.post("/modules")
@login_required
@require_permission(ROLES, PermissionAction.CREATE)
def modules_create():
    try:
        module = create_module(request_payload(), current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify(module.to_dict()), 201


@users_bp.get("/modules/<int:module_id>")
@login_required
def modules_detail(module_id: int):
    return jsonify(get_module(module_id).to_dict())


@users_bp.patch("/modules/<int:module_id>")
@login_required
@require_permission(ROLES, PermissionAction.UPDATE)
def modules_update(module_id: int):
    try:
        module = update_module(module_id, request_payload(), current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify(module.to_dict())


@users_bp.delete("/modules/<int:module_id>")
@login_required
@require_permission(ROLES, PermissionAction.DELETE)
def modules_delete(module_id: int):
    try:
        delete_module(module_id, current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify({"success": True, "message": "Módulo eliminado correctamente"})


@users_bp.get("/submodules")
@login_required
def submodules_index():
    return jsonify([s.to_dict() for s in list_submodules(request.args.get("moduleId", type=int))])


@users_bp.post("/submodules")
@login_required
@require_permission(ROLES, PermissionAction.CREATE)
def submodules_create():
    try:
        submodule = create_submodule(request_payload(), current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify(submodule.to_dict()), 201


@users_bp.get("/submodules/<int:submodule_id>")
@login_required
def submodules_detail(submodule_id: int):
    return jsonify(get_submodule(submodule_id).to_dict())


@users_bp.patch("/submodules/<int:submodule_id>")
@login_required
@require_permission(ROLES, PermissionAction.UPDATE)
def submodules_update(submodule_id: int):
    try:
        submodule = update_submodule(submodule_id, request_payload(), current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify(submodule.to_dict())


@users_bp.delete("/submodules/<int:submodule_id>")
@login_required
@require_permission(ROLES, PermissionAction.DELETE)
def submodules_delete(submodule_id: int):
    try:
        delete_submodule(submodule_id, current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify({"success": True, "message": "Submódulo eliminado correctamente"})


# Permissions


@users_bp.get("/permissions")
@login_required
@require_permission(ROLES, PermissionAction.READ)
def permissions_index():
    return jsonify(list_permissions())


@users_bp.post("/permissions/assign")
@login_required
@require_permission(ROLES, PermissionAction.UPDATE)
def permissions_assign():
    try:
        result = assign_permissions(request_payload(), current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify(result)


@users_bp.get("/permissions/by-role")
@login_required
@require_permission(ROLES, PermissionAction.READ)
def permissions_matrix():
    return jsonify(permissions_by_role())


@users_bp.post("/permissions/bulk-update")
@login_required
@require_permission(ROLES, PermissionAction.UPDATE)
def permissions_bulk_update():
    try:
        result = bulk_update_role_permissions(request_payload(), current_user)
    except ValueError as exc:
        return rejected(exc)
    return jsonify(result)


@users_bp.get("/permissions/user")
@login_required
def permissions_for_current_user():
    return jsonify(user_permissions(current_user))


@users_bp.post("/permissions/check")
@login_required
def permissions_check():
    payload = request_payload()
    code = str(payload.get("permissionCode") or "").strip()
    if not code:
        return json_error("El código de permiso es requerido", 400)
    action = str(payload.get("action") or PermissionAction.READ.value).upper()
    if action not in PermissionAction.__members__:
        return json_error("Acción inválida", 400)
    return jsonify({"hasPermission": has_permission(current_user, code, action)})
