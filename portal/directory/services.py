from __future__ import annotations

import re

from flask import current_app

from portal.core.catalog import DIRECTORY_CAREER_NAMES, DIRECTORY_FACULTY_NAMES, career_code
from portal.core.permissions import NotFoundError
from portal.core.validation import validate_dni, validate_student_code
from portal.directory.client import DirectoryClient

ADMISSION_PERIOD_RE = re.compile(r"^\d{4}-[12]$")


def directory_client() -> DirectoryClient:
    return current_app.extensions["directory"]


def _text(value: object) -> str:
    return "" if value is None else str(value).strip()


def _join(*parts: object) -> str:
    return " ".join(p for p in (_text(part) for part in parts) if p)


def names_first(full_name: str) -> str:
    """Turn "SURNAMES, NAMES" into "NAMES SURNAMES"."""
    if "," not in full_name:
        return full_name.strip()
    surnames, names = full_name.split(",", 1)
    return _join(names, surnames)


def admission_period(value: object) -> str:
    text = _text(value)
    return text if ADMISSION_PERIOD_RE.fullmatch(text) else ""


def _faculty_name(raw: object) -> str:
    name = _text(raw)
    if not name:
        return ""
    return DIRECTORY_FACULTY_NAMES.get(name.upper(), name if name.lower().startswith("facultad") else f"Facultad de {name}")


def _career_name(raw: object) -> str:
    name = _text(raw)
    return DIRECTORY_CAREER_NAMES.get(name.upper(), name)


def _sex(raw: object) -> str:
    if raw in (1, "1"):
        return "M"
    if raw in (0, "0"):
        return "F"
    return ""


def _require_dni(dni: str) -> str:
    dni = _text(dni)
    if not dni:
        raise ValueError("DNI es requerido")
    if not validate_dni(dni):
        raise ValueError("DNI inválido. Debe tener 8 dígitos")
    return dni


def student_by_dni(dni: str) -> dict[str, str]:
    dni = _require_dni(dni)
    data = directory_client().student_by_dni(dni)
    if not data:
        raise NotFoundError("No se encontraron datos para este DNI")
    career = _career_name(data.get("carrerName"))
    return {
        "studentCode": _text(data.get("userName")),
        "name": _join(data.get("name"), data.get("paternalSurname"), data.get("maternalSurname")),
        "documentType": "DNI",
        "documentNumber": _text(data.get("dni")) or dni,
        "email": _text(data.get("email")),
        "personalEmail": _text(data.get("personalEmail")),
        "career": career,
        "faculty": _faculty_name(data.get("facultyName")),
        "sex": "",
        "careerCode": career_code(career),
        "enrollmentPeriod": "",
    }


def student_by_code(code: str) -> dict[str, str]:
    code = _text(code)
    if not validate_student_code(code):
        raise ValueError("Código de estudiante inválido. Debe tener entre 6 y 10 dígitos")
    data = directory_client().student_by_code(code)
    if not data:
        raise NotFoundError("No se encontraron datos para este código de estudiante")
    career = _career_name(data.get("carrerName"))
    return {
        "studentCode": _text(data.get("userName")) or code,
        "name": names_first(_text(data.get("fullName"))),
        "sex": _sex(data.get("sex")),
        "career": career,
        "faculty": _faculty_name(data.get("facultyName")),
        "careerCode": _text(data.get("carrerCode")) or career_code(career),
        "enrollmentPeriod": admission_period(data.get("admisionDate")),
        "documentType": "DNI",
        "documentNumber": "",
        "email": "",
        "personalEmail": "",
    }


def _student_info(data: dict) -> dict:
    # The consult payload nests the record as data[0].info.
    rows = data.get("data")
    if isinstance(rows, list):
        first = rows[0] if rows else {}
        return first.get("info") or {}
    return data


def student_consult(dni: str) -> dict[str, str]:
    dni = _require_dni(dni)
    data = directory_client().student_by_dni(dni)
    info = _student_info(data) if data else {}
    if not info:
        raise NotFoundError("Estudiante no encontrado")
    return {
        "codigo": _text(info.get("username") or info.get("userName")),
        "dni": _text(info.get("dni")) or dni,
        "nombres": _text(info.get("name")),
        "apellidos": _join(info.get("paternalSurname"), info.get("maternalSurname")),
    }


def student_consult_by_code(code: str) -> dict[str, object]:
    code = _text(code)
    if not code:
        raise ValueError("Código de estudiante es requerido")
    if not validate_student_code(code):
        raise ValueError("Código de estudiante inválido. Debe tener entre 6 y 10 dígitos")
    data = directory_client().student_profile_by_code(code)
    if not data:
        raise NotFoundError("Estudiante no encontrado")
    info = data["infoStudent"]
    apellidos = _join(info.get("paternalSurname"), info.get("maternalSurname"))
    period = data.get("lastAcademicPeriodEnrolled")
    last_period = _text(period.get("text")) if isinstance(period, dict) else ""
    return {
        "codigo": _text(info.get("userName")) or code,
        "dni": _text(info.get("dni")),
        "nombres": _text(info.get("name")),
        "apellidoPaterno": _text(info.get("paternalSurname")),
        "apellidoMaterno": _text(info.get("maternalSurname")),
        "apellidos": apellidos,
        "nombreCompleto": _join(apellidos, info.get("name")),
        "email": _text(info.get("email")),
        "emailPersonal": _text(info.get("personalEmail")),
        "carrera": _career_name(info.get("carrerName")),
        "facultad": _faculty_name(info.get("facultyName")),
        "ultimoPeriodo": last_period or None,
    }


def teacher_consult(dni: str) -> dict[str, str]:
    dni = _require_dni(dni)
    data = directory_client().teacher_by_dni(dni)
    if not data:
        raise NotFoundError("Docente no encontrado")
    apellidos = _join(data.get("paternalSurname"), data.get("maternalSurname"))
    return {
        "codigo": _text(data.get("userName")),
        "dni": _text(data.get("dni")) or dni,
        "nombres": _text(data.get("name")),
        "apellidos": apellidos,
        "nombreCompleto": _join(apellidos, data.get("name")),
        "email": _text(data.get("email")),
        "emailPersonal": _text(data.get("personalEmail")),
        "departamento": _text(data.get("academicDepartament")),
        "facultad": _faculty_name(data.get("facultyName")),
    }
