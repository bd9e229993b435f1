from __future__ import annotations

import logging

from flask import Blueprint, jsonify
from flask_login import current_user, login_required, login_user, logout_user
from werkzeug.security import check_password_hash

from portal.core.api import json_error, request_payload
from portal.core.extensions import db
from portal.core.models import AuditLog, IdentityDocumentType, User, UserRole
from portal.core.permissions import current_grants
from portal.core.validation import (
    REGISTRATION_FIELDS,
    password_rule_checks,
    step1_errors,
    step2_errors,
    step3_errors,
)

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user: User) -> dict[str, object]:
    data = user.to_dict()
    data["permissions"] = [
        {"code": grant.permission.code, "actions": list(grant.permission.actions or [])}
        for grant in current_grants(user)
    ]
    return data


def register_student(payload: dict[str, object]) -> User:
    data = {field: payload.get(wire) for wire, field in REGISTRATION_FIELDS.items()}
    for key in ("student_code", "name", "document_number", "email", "personal_email"):
        data[key] = str(data.get(key) or "").strip()
    data["accept_terms"] = data.get("accept_terms") in (True, "true", "on", "1", 1)

    errors = {**step1_errors(data), **step2_errors(data), **step3_errors(data)}
    if errors:
        raise ValueError(next(iter(errors.values())))

    email = data["email"].lower()
    if User.query.filter_by(email=email).first():
        raise ValueError("El correo institucional ya está registrado")
    if User.query.filter_by(student_code=data["student_code"]).first():
        raise ValueError("El código de estudiante ya está registrado")
    if User.query.filter_by(document_number=data["document_number"]).first():
        raise ValueError("El número de documento ya está registrado")

    user = User(
        email=email,
        name=data["name"],
        role=UserRole.USER,
        student_code=data["student_code"],
        document_type=IdentityDocumentType(data["document_type"]),
        document_number=data["document_number"],
        sex=str(data["sex"]),
        faculty=str(data["faculty"]),
        career=str(data["career"]),
        career_code=str(data["career_code"]),
        enrollment_period=str(data["enrollment_period"]),
        personal_email=data["personal_email"].lower(),
    )
    user.set_password(str(data["password"]))
    db.session.add(user)
    db.session.flush()
    db.session.add(
        AuditLog(user_id=user.id, action="REGISTER", entity="User", entity_id=str(user.id), details={"email": email})
    )
    db.session.commit()
    logger.info("Student account %s registered", user.email)
    return user


def change_password(user: User, current_password: str, new_password: str) -> None:
    if not current_password:
        raise ValueError("Contraseña actual requerida")
    checks = password_rule_checks(new_password)
    if not checks["min_length"]:
        raise ValueError("La contraseña debe tener al menos 8 caracteres")
    if not checks["has_uppercase"]:
        raise ValueError("Debe contener al menos una mayúscula")
    if not checks["has_lowercase"]:
        raise ValueError("Debe contener al menos una minúscula")
    if not checks["has_number"]:
        raise ValueError("Debe contener al menos un número")
    if not check_password_hash(user.password_hash, current_password):
        raise ValueError("La contraseña actual no es correcta")
    if check_password_hash(user.password_hash, new_password):
        raise ValueError("La nueva contraseña debe ser diferente a la actual")
    user.set_password(new_password)
    db.session.add(
        AuditLog(user_id=user.id, action="CHANGE_PASSWORD", entity="User", entity_id=str(user.id), details={})
    )
    db.session.commit()


@auth_bp.post("/login")
def login():
    payload = request_payload()
    email = str(payload.get("email") or "").strip().lower()
    password = str(payload.get("password") or "")
    user = User.query.filter_by(email=email).first()
    if not user or not check_password_hash(user.password_hash, password):
        return json_error("Credenciales inválidas", 401)
    if not user.is_active:
        return json_error("Usuario inactivo", 403)
    login_user(user)
    logger.info("User %s logged in", user.email)
    return jsonify(_session_payload(user))


@auth_bp.post("/logout")
@login_required
def logout():
    logout_user()
    return jsonify({"success": True})


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(_session_payload(current_user))


@auth_bp.post("/register")
def register():
    user = register_student(request_payload())
    return jsonify({"message": "Usuario creado exitosamente", "user": user.summary()}), 201


@auth_bp.post("/change-password")
@login_required
def change_password_post():
    payload = request_payload()
    change_password(
        current_user,
        str(payload.get("currentPassword") or ""),
        str(payload.get("newPassword") or ""),
    )
    return jsonify({"message": "Contraseña actualizada exitosamente"})
