from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from portal.core.models import IdentityDocumentType

DNI_RE = re.compile(r"^\d{8}$")
STUDENT_CODE_RE = re.compile(r"^\d{6,10}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
INSTITUTIONAL_EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+-]+@unamad\.edu\.pe$", re.IGNORECASE)
SLUG_RE = re.compile(r"^[a-z0-9-]+$")

DOCUMENT_NUMBER_PATTERNS: dict[IdentityDocumentType, re.Pattern[str]] = {
    IdentityDocumentType.DNI: DNI_RE,
    IdentityDocumentType.CE: re.compile(r"^[A-Za-z0-9]{9,12}$"),
    IdentityDocumentType.PTP: re.compile(r"^[A-Za-z0-9]{9,12}$"),
    IdentityDocumentType.CPP: re.compile(r"^[A-Za-z0-9]{9,12}$"),
    IdentityDocumentType.PASAPORTE: re.compile(r"^[A-Za-z0-9]{6,12}$"),
}

REGISTRATION_PASSWORD_MIN_LENGTH = 8
ADMIN_PASSWORD_MIN_LENGTH = 6

# Wire names of the registration payload and their draft field names.
REGISTRATION_FIELDS: dict[str, str] = {
    "studentCode": "student_code",
    "name": "name",
    "documentType": "document_type",
    "documentNumber": "document_number",
    "sex": "sex",
    "faculty": "faculty",
    "career": "career",
    "careerCode": "career_code",
    "enrollmentPeriod": "enrollment_period",
    "email": "email",
    "personalEmail": "personal_email",
    "password": "password",
    "confirmPassword": "confirm_password",
    "acceptTerms": "accept_terms",
}

ALLOWED_UPLOAD_TYPES = frozenset({"application/pdf", "image/jpeg", "image/png", "image/jpg"})
MAX_UPLOAD_BYTES = 5 * 1024 * 1024


def _text(value: object) -> str:
    return "" if value is None else str(value)


def validate_document_number(document_type: IdentityDocumentType | str | None, number: str | None) -> bool:
    try:
        doc_type = IdentityDocumentType(document_type)
    except ValueError:
        return False
    return bool(DOCUMENT_NUMBER_PATTERNS[doc_type].fullmatch(_text(number)))


def validate_dni(value: str | None) -> bool:
    return bool(DNI_RE.fullmatch(_text(value)))


def validate_student_code(value: str | None) -> bool:
    return bool(STUDENT_CODE_RE.fullmatch(_text(value)))


def validate_email(value: str | None) -> bool:
    return bool(EMAIL_RE.fullmatch(_text(value).strip()))


def validate_institutional_email(value: str | None) -> bool:
    return bool(INSTITUTIONAL_EMAIL_RE.fullmatch(_text(value).strip()))


def validate_slug(value: str | None) -> bool:
    return bool(SLUG_RE.fullmatch(_text(value)))


# Registration steps. Each helper returns {field: message}; an empty dict
# means the step is valid. Keys follow the snake_case draft field names.


def step1_errors(data: Mapping[str, object]) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not validate_student_code(_text(data.get("student_code"))):
        errors["student_code"] = "El código de estudiante debe tener entre 6 y 10 dígitos"
    if len(_text(data.get("name")).strip()) < 3:
        errors["name"] = "El nombre debe tener al menos 3 caracteres"
    if not validate_document_number(data.get("document_type"), _text(data.get("document_number"))):
        errors["document_number"] = "Número de documento inválido para el tipo seleccionado"
    if not _text(data.get("sex")).strip():
        errors["sex"] = "Selecciona el sexo"
    return errors


def step2_errors(data: Mapping[str, object]) -> dict[str, str]:
    labels = {
        "faculty": "Selecciona la facultad",
        "career": "Selecciona la carrera",
        "career_code": "La carrera seleccionada no tiene código",
        "enrollment_period": "Indica el periodo de ingreso",
    }
    return {field: message for field, message in labels.items() if not _text(data.get(field)).strip()}


def step3_errors(data: Mapping[str, object]) -> dict[str, str]:
    errors: dict[str, str] = {}
    password = _text(data.get("password"))
    if not validate_institutional_email(_text(data.get("email"))):
        errors["email"] = "Debe ser un correo institucional @unamad.edu.pe"
    if not validate_email(_text(data.get("personal_email"))):
        errors["personal_email"] = "Correo personal inválido"
    if len(password) < REGISTRATION_PASSWORD_MIN_LENGTH:
        errors["password"] = "La contraseña debe tener al menos 8 caracteres"
    if _text(data.get("confirm_password")) != password:
        errors["confirm_password"] = "Las contraseñas no coinciden"
    if not data.get("accept_terms"):
        errors["accept_terms"] = "Debes aceptar los términos y condiciones"
    return errors


def is_step1_valid(data: Mapping[str, object]) -> bool:
    return not step1_errors(data)


def is_step2_valid(data: Mapping[str, object]) -> bool:
    return not step2_errors(data)


def is_step3_valid(data: Mapping[str, object]) -> bool:
    return not step3_errors(data)


@dataclass(frozen=True)
class PasswordStrength:
    score: int
    label: str


PASSWORD_STRENGTH_LABELS = ("Muy débil", "Débil", "Regular", "Buena", "Fuerte", "Muy fuerte")

PASSWORD_RULES: tuple[tuple[str, re.Pattern[str] | None], ...] = (
    ("min_length", None),
    ("has_uppercase", re.compile(r"[A-Z]")),
    ("has_lowercase", re.compile(r"[a-z]")),
    ("has_number", re.compile(r"[0-9]")),
)


def password_rule_checks(password: str) -> dict[str, bool]:
    checks: dict[str, bool] = {}
    for key, pattern in PASSWORD_RULES:
        if pattern is None:
            checks[key] = len(password) >= REGISTRATION_PASSWORD_MIN_LENGTH
        else:
            checks[key] = bool(pattern.search(password))
    return checks


def password_strength(password: str | None) -> PasswordStrength:
    password = password or ""
    score = sum(password_rule_checks(password).values())
    if len(password) >= REGISTRATION_PASSWORD_MIN_LENGTH:
        score += 1
    score = min(score, len(PASSWORD_STRENGTH_LABELS) - 1)
    return PasswordStrength(score=score, label=PASSWORD_STRENGTH_LABELS[score])


def upload_error(name: str, mime_type: str | None, size: int, max_bytes: int = MAX_UPLOAD_BYTES) -> str | None:
    if (mime_type or "").lower() not in ALLOWED_UPLOAD_TYPES:
        return f"El archivo {name} no es un tipo permitido. Solo PDF, JPG, JPEG o PNG"
    if size > max_bytes:
        return f"El archivo {name} supera los {max_bytes // (1024 * 1024)}MB"
    return None


def validate_upload(files: Iterable[object], max_bytes: int = MAX_UPLOAD_BYTES) -> dict[str, str]:
    """Check every file before submission.

    Files only need ``name``, ``mime_type`` and ``size`` attributes. The
    result is keyed ``files.<index>`` so two uploads sharing a name keep
    their own messages.
    """
    errors: dict[str, str] = {}
    for index, item in enumerate(files):
        name = getattr(item, "name")
        message = upload_error(name, getattr(item, "mime_type", None), int(getattr(item, "size", 0)), max_bytes)
        if message:
            errors[f"files.{index}"] = message
    return errors
