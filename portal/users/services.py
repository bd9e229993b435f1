from __future__ import annotations

import logging

from sqlalchemy import or_

from portal.core.extensions import db
from portal.core.models import (
    AuditLog,
    Constancia,
    Module,
    Permission,
    PermissionAction,
    Resolucion,
    Submodule,
    User,
    UserPermission,
    UserRole,
    utcnow,
)
from portal.core.permissions import ForbiddenError, NotFoundError, current_grants, has_permission
from portal.core.validation import ADMIN_PASSWORD_MIN_LENGTH, validate_email, validate_slug

logger = logging.getLogger(__name__)

ASSIGN_ACTIONS = ("add", "remove", "set")
ASSIGN_MESSAGES = {"add": "agregados", "remove": "eliminados", "set": "actualizados"}


def _audit(actor: User, action: str, entity: str, entity_id: object, details: dict | None = None) -> None:
    db.session.add(
        AuditLog(
            user_id=actor.id,
            action=action,
            entity=entity,
            entity_id=str(entity_id),
            details=details or {},
        )
    )


def _parse_role(value: object) -> UserRole:
    try:
        return UserRole(str(value or "").strip().upper())
    except ValueError as exc:
        raise ValueError("Rol inválido") from exc


def _parse_id_list(value: object, message: str = "Datos inválidos") -> list[int]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(message)
    try:
        return [int(item) for item in value]
    except (TypeError, ValueError) as exc:
        raise ValueError(message) from exc


def _parse_order(value: object) -> int:
    try:
        order = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("El orden debe ser un número entero") from exc
    if order < 0:
        raise ValueError("El orden debe ser un número entero")
    return order


def _ensure_role_assignable(role: UserRole, actor: User) -> None:
    if role == UserRole.SUPER_ADMIN and actor.role != UserRole.SUPER_ADMIN:
        raise ForbiddenError("Solo un super administrador puede asignar ese rol")


def _existing_permissions(permission_ids: list[int]) -> list[Permission]:
    if not permission_ids:
        return []
    unique_ids = set(permission_ids)
    permissions = Permission.query.filter(Permission.id.in_(unique_ids)).all()
    if len(permissions) != len(unique_ids):
        raise ValueError("Algunos permisos no existen")
    return permissions


# Users


def list_users(search: str = "", role: str = "") -> list[User]:
    query = User.query
    term = (search or "").strip()
    if term:
        like = f"%{term}%"
        query = query.filter(or_(User.name.ilike(like), User.email.ilike(like), User.student_code.ilike(like)))
    if role:
        query = query.filter(User.role == _parse_role(role))
    return query.order_by(User.created_at.desc(), User.id.desc()).all()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("Usuario no encontrado")
    return user


def user_detail(user: User) -> dict[str, object]:
    data = user.to_dict()
    data["permissions"] = [
        {
            "id": grant.permission.id,
            "code": grant.permission.code,
            "name": grant.permission.name,
            "actions": list(grant.permission.actions or []),
            "expiresAt": grant.expires_at.isoformat() if grant.expires_at else None,
        }
        for grant in current_grants(user)
    ]
    return data


def create_user(payload: dict[str, object], actor: User) -> User:
    email = str(payload.get("email") or "").strip().lower()
    name = str(payload.get("name") or "").strip()
    password = str(payload.get("password") or "")
    if not validate_email(email):
        raise ValueError("Email inválido")
    if not name:
        raise ValueError("El nombre es requerido")
    if len(password) < ADMIN_PASSWORD_MIN_LENGTH:
        raise ValueError("La contraseña debe tener al menos 6 caracteres")
    role = _parse_role(payload.get("role") or UserRole.USER.value)
    _ensure_role_assignable(role, actor)
    permissions = _existing_permissions(_parse_id_list(payload.get("permissions")))
    if User.query.filter_by(email=email).first():
        raise ValueError("El email ya está registrado")

    user = User(email=email, name=name, role=role)
    user.set_password(password)
    db.session.add(user)
    db.session.flush()
    for permission in permissions:
        db.session.add(UserPermission(user_id=user.id, permission_id=permission.id, granted_by_id=actor.id))
    _audit(actor, "CREATE", "User", user.id, {"after": {"email": email, "role": role.value}})
    db.session.commit()
    logger.info("User %s created by %s", email, actor.email)
    return user


def update_user(user_id: int, payload: dict[str, object], actor: User) -> User:
    user = get_user(user_id)
    before = {"email": user.email, "role": user.role.value}

    if "email" in payload:
        email = str(payload.get("email") or "").strip().lower()
        if not validate_email(email):
            raise ValueError("Email inválido")
        if email != user.email and User.query.filter_by(email=email).first():
            raise ValueError("El email ya está en uso")
        user.email = email
    if "name" in payload:
        name = str(payload.get("name") or "").strip()
        if not name:
            raise ValueError("El nombre es requerido")
        user.name = name
    if "role" in payload:
        role = _parse_role(payload.get("role"))
        if role != user.role:
            _ensure_role_assignable(role, actor)
            if user.role == UserRole.SUPER_ADMIN:
                _ensure_other_super_admin(user)
            user.role = role
    if "permissions" in payload:
        permissions = _existing_permissions(_parse_id_list(payload.get("permissions")))
        # Old grants must be gone before the same permission is granted again.
        user.permissions.clear()
        db.session.flush()
        for permission in permissions:
            user.permissions.append(UserPermission(permission_id=permission.id, granted_by_id=actor.id))

    db.session.add(user)
    _audit(actor, "UPDATE", "User", user.id, {"before": before, "after": {"email": user.email, "role": user.role.value}})
    db.session.commit()
    db.session.refresh(user)
    return user


def _ensure_other_super_admin(user: User) -> None:
    remaining = User.query.filter(User.role == UserRole.SUPER_ADMIN, User.id != user.id).count()
    if remaining == 0:
        raise ValueError("No se puede eliminar el último super administrador")


def delete_user(user_id: int, actor: User) -> None:
    if user_id == actor.id:
        raise ValueError("No puedes eliminar tu propio usuario")
    user = get_user(user_id)
    if user.role == UserRole.SUPER_ADMIN:
        _ensure_other_super_admin(user)
    owns_documents = (
        Constancia.query.filter(or_(Constancia.created_by_id == user.id, Constancia.approved_by_id == user.id)).first()
        or Resolucion.query.filter(
            or_(Resolucion.created_by_id == user.id, Resolucion.approved_by_id == user.id)
        ).first()
    )
    if owns_documents:
        raise ValueError("El usuario tiene documentos registrados; desactívalo en su lugar")

    AuditLog.query.filter_by(user_id=user.id).update({"user_id": None})
    UserPermission.query.filter_by(granted_by_id=user.id).update({"granted_by_id": None})
    _audit(actor, "DELETE", "User", user.id, {"before": {"email": user.email, "role": user.role.value}})
    db.session.delete(user)
    db.session.commit()
    logger.info("User %s deleted by %s", user_id, actor.email)


def reset_password(user_id: int, new_password: str, actor: User) -> User:
    if actor.id != user_id and not has_permission(actor, "users.access", PermissionAction.UPDATE):
        raise ForbiddenError("Sin permisos para restablecer contraseña")
    user = get_user(user_id)
    if len(new_password or "") < ADMIN_PASSWORD_MIN_LENGTH:
        raise ValueError("La contraseña debe tener al menos 6 caracteres")
    user.set_password(new_password)
    _audit(actor, "RESET_PASSWORD", "User", user.id)
    db.session.commit()
    return user


def toggle_status(user_id: int, actor: User) -> User:
    if user_id == actor.id:
        raise ValueError("No puedes desactivar tu propio usuario")
    user = get_user(user_id)
    user.is_active = not user.is_active
    _audit(actor, "TOGGLE_STATUS", "User", user.id, {"isActive": user.is_active})
    db.session.commit()
    logger.info("User %s %s by %s", user.email, "activated" if user.is_active else "deactivated", actor.email)
    return user


# Modules and submodules


def list_modules() -> list[Module]:
    return Module.query.order_by(Module.order.asc(), Module.id.asc()).all()


def get_module(module_id: int) -> Module:
    module = db.session.get(Module, module_id)
    if not module:
        raise NotFoundError("Módulo no encontrado")
    return module


def _slug(payload: dict[str, object]) -> str:
    slug = str(payload.get("slug") or "").strip()
    if not slug:
        raise ValueError("El slug es requerido")
    if not validate_slug(slug):
        raise ValueError("El slug solo puede contener letras minúsculas, números y guiones")
    return slug


def _apply_menu_fields(target: Module | Submodule, payload: dict[str, object], creating: bool) -> None:
    if creating or "name" in payload:
        name = str(payload.get("name") or "").strip()
        if not name:
            raise ValueError("El nombre es requerido")
        target.name = name
    if "description" in payload:
        target.description = str(payload.get("description") or "").strip()
    if "isActive" in payload:
        target.is_active = bool(payload.get("isActive"))
    if "order" in payload:
        target.order = _parse_order(payload.get("order"))


def create_module(payload: dict[str, object], actor: User) -> Module:
    slug = _slug(payload)
    if Module.query.filter_by(slug=slug).first():
        raise ValueError("El slug ya está en uso")
    module = Module(slug=slug, is_active=True, order=0)
    _apply_menu_fields(module, payload, creating=True)
    module.icon = str(payload.get("icon") or "").strip()
    db.session.add(module)
    db.session.flush()
    _audit(actor, "CREATE", "Module", module.id, {"slug": slug})
    db.session.commit()
    return module


def update_module(module_id: int, payload: dict[str, object], actor: User) -> Module:
    module = get_module(module_id)
    if "slug" in payload:
        slug = _slug(payload)
        if slug != module.slug and Module.query.filter_by(slug=slug).first():
            raise ValueError("El slug ya está en uso")
        module.slug = slug
    _apply_menu_fields(module, payload, creating=False)
    if "icon" in payload:
        module.icon = str(payload.get("icon") or "").strip()
    _audit(actor, "UPDATE", "Module", module.id, {"fields": sorted(payload)})
    db.session.commit()
    return module


def delete_module(module_id: int, actor: User) -> None:
    module = get_module(module_id)
    if module.submodules or module.permissions:
        raise ValueError("No se puede eliminar un módulo con submódulos o permisos asociados")
    _audit(actor, "DELETE", "Module", module.id, {"slug": module.slug})
    db.session.delete(module)
    db.session.commit()


def list_submodules(module_id: int | None = None) -> list[Submodule]:
    query = Submodule.query
    if module_id is not None:
        query = query.filter_by(module_id=module_id)
    return query.order_by(Submodule.module_id.asc(), Submodule.order.asc()).all()


def get_submodule(submodule_id: int) -> Submodule:
    submodule = db.session.get(Submodule, submodule_id)
    if not submodule:
        raise NotFoundError("Submódulo no encontrado")
    return submodule


def create_submodule(payload: dict[str, object], actor: User) -> Submodule:
    try:
        module_id = int(payload.get("moduleId"))
    except (TypeError, ValueError) as exc:
        raise ValueError("El módulo es requerido") from exc
    module = get_module(module_id)
    slug = _slug(payload)
    if Submodule.query.filter_by(module_id=module.id, slug=slug).first():
        raise ValueError("El slug ya está en uso en este módulo")
    submodule = Submodule(module_id=module.id, slug=slug, is_active=True, order=0)
    _apply_menu_fields(submodule, payload, creating=True)
    db.session.add(submodule)
    db.session.flush()
    _audit(actor, "CREATE", "Submodule", submodule.id, {"module": module.slug, "slug": slug})
    db.session.commit()
    return submodule


def update_submodule(submodule_id: int, payload: dict[str, object], actor: User) -> Submodule:
    submodule = get_submodule(submodule_id)
    if "slug" in payload:
        slug = _slug(payload)
        duplicate = (
            Submodule.query.filter_by(module_id=submodule.module_id, slug=slug)
            .filter(Submodule.id != submodule.id)
            .first()
        )
        if duplicate:
            raise ValueError("El slug ya está en uso en este módulo")
        submodule.slug = slug
    _apply_menu_fields(submodule, payload, creating=False)
    _audit(actor, "UPDATE", "Submodule", submodule.id, {"fields": sorted(payload)})
    db.session.commit()
    return submodule


def delete_submodule(submodule_id: int, actor: User) -> None:
    submodule = get_submodule(submodule_id)
    if submodule.permissions:
        raise ValueError("No se puede eliminar un submódulo con permisos asociados")
    _audit(actor, "DELETE", "Submodule", submodule.id, {"slug": submodule.slug})
    db.session.delete(submodule)
    db.session.commit()


# Permissions


def list_permissions() -> list[dict[str, object]]:
    permissions = Permission.query.order_by(Permission.module_id.asc(), Permission.code.asc()).all()
    rows = []
    for permission in permissions:
        data = permission.to_dict()
        data["module"] = {"id": permission.module.id, "name": permission.module.name} if permission.module else None
        rows.append(data)
    return rows


def assign_permissions(payload: dict[str, object], actor: User) -> dict[str, object]:
    action = str(payload.get("action") or "")
    if action not in ASSIGN_ACTIONS:
        raise ValueError("Acción inválida")
    user_id = payload.get("userId")
    role_value = payload.get("role")
    if not user_id and not role_value:
        raise ValueError("Debe especificar userId o role")
    permission_ids = _parse_id_list(payload.get("permissions"), "Datos inválidos")
    permissions = _existing_permissions(permission_ids)

    if role_value:
        role = _parse_role(role_value)
        targets = User.query.filter_by(role=role).order_by(User.id.asc()).all()
    else:
        try:
            targets = [get_user(int(user_id))]
        except (TypeError, ValueError) as exc:
            raise ValueError("Datos inválidos") from exc

    wanted_ids = {p.id for p in permissions}
    for user in targets:
        held = {grant.permission_id for grant in UserPermission.query.filter_by(user_id=user.id).all()}
        if action == "set":
            UserPermission.query.filter_by(user_id=user.id).delete()
            to_add = wanted_ids
        elif action == "add":
            to_add = wanted_ids - held
        else:
            to_add = set()
            if wanted_ids:
                UserPermission.query.filter(
                    UserPermission.user_id == user.id,
                    UserPermission.permission_id.in_(wanted_ids),
                ).delete(synchronize_session=False)
        db.session.expire(user, ["permissions"])
        for permission_id in sorted(to_add):
            db.session.add(UserPermission(user_id=user.id, permission_id=permission_id, granted_by_id=actor.id))
        _audit(
            actor,
            f"permissions.{action}",
            "UserPermission",
            user.id,
            {"permissions": sorted(wanted_ids), "role": str(role_value) if role_value else None},
        )
    db.session.commit()
    logger.info("Permissions %s for %s users by %s", action, len(targets), actor.email)
    return {
        "success": True,
        "message": f"Permisos {ASSIGN_MESSAGES[action]} correctamente",
        "affectedUsers": len(targets),
    }


def permissions_by_role() -> dict[str, object]:
    """Role x permission matrix, read off the first user holding each role."""
    by_role: dict[str, list[dict[str, object]]] = {}
    counts: dict[str, int] = {}
    for role in UserRole:
        holders = User.query.filter_by(role=role).order_by(User.id.asc())
        counts[role.value] = holders.count()
        sample = holders.first()
        by_role[role.value] = user_permissions(sample) if sample else []
    return {"allPermissions": list_permissions(), "permissionsByRole": by_role, "userCountByRole": counts}


def _parse_change(change: object) -> tuple[UserRole, Permission, list[str]]:
    if not isinstance(change, dict):
        raise ValueError("Datos inválidos")
    role = _parse_role(change.get("roleId"))
    try:
        permission = db.session.get(Permission, int(change.get("permissionId")))
    except (TypeError, ValueError) as exc:
        raise ValueError("Datos inválidos") from exc
    if permission is None:
        raise ValueError("Algunos permisos no existen")
    actions = change.get("actions")
    if not isinstance(actions, list):
        raise ValueError("Datos inválidos")
    actions = [str(a).upper() for a in actions]
    if any(a not in PermissionAction.__members__ for a in actions):
        raise ValueError("Acción inválida")
    if not set(actions) <= set(permission.actions or []):
        raise ValueError(f"El permiso {permission.code} no admite esas acciones")
    return role, permission, actions


def bulk_update_role_permissions(payload: dict[str, object], actor: User) -> dict[str, object]:
    """Apply matrix edits to every user of each role.

    An empty ``actions`` list revokes the permission; anything else grants it.
    """
    changes = payload.get("changes")
    if not isinstance(changes, list):
        raise ValueError("Datos inválidos")
    parsed = [_parse_change(change) for change in changes]
    for role in {role for role, _, _ in parsed}:
        _ensure_role_assignable(role, actor)

    for role, permission, actions in parsed:
        for user in User.query.filter_by(role=role).all():
            grant = UserPermission.query.filter_by(user_id=user.id, permission_id=permission.id).first()
            if not actions:
                if grant is not None:
                    db.session.delete(grant)
            elif grant is None:
                db.session.add(UserPermission(user_id=user.id, permission_id=permission.id, granted_by_id=actor.id))
            else:
                grant.granted_by_id = actor.id
                grant.granted_at = utcnow()
                grant.expires_at = None
            db.session.expire(user, ["permissions"])
    _audit(
        actor,
        "permissions.bulk_update",
        "UserPermission",
        "bulk_update",
        {
            "count": len(parsed),
            "details": [
                {"roleId": role.value, "permissionId": permission.id, "actions": actions}
                for role, permission, actions in parsed
            ],
        },
    )
    db.session.commit()
    logger.info("Bulk permission update of %s changes by %s", len(parsed), actor.email)
    return {"success": True, "message": f"{len(parsed)} permisos actualizados exitosamente"}


def user_permissions(user: User) -> list[dict[str, object]]:
    if user.role == UserRole.SUPER_ADMIN:
        return [p.to_dict() for p in Permission.query.order_by(Permission.code.asc()).all()]
    return [grant.permission.to_dict() for grant in current_grants(user)]
