from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path

from flask import current_app
from sqlalchemy import and_, or_
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from portal.core.extensions import db
from portal.core.lifecycle import EntityKind, Operation, can_mutate, denial_reason, next_status
from portal.core.models import (
    ArchivoResolucion,
    AuditLog,
    Constancia,
    Departamento,
    DocumentStatus,
    Facultad,
    ModalidadResolucion,
    PermissionAction,
    Resolucion,
    ResolucionDocente,
    ResolucionEstudiante,
    TipoFinanciamiento,
    TipoResolucion,
    User,
    utcnow,
)
from portal.core.permissions import NotFoundError, has_permission
from portal.core.validation import upload_error, validate_dni, validate_student_code

logger = logging.getLogger(__name__)

STORAGE_KINDS = ("constancias", "resoluciones")
PUBLIC_SEARCH_MIN_LENGTH = 3
PUBLIC_SEARCH_LIMIT = 50

PERMISSION_CODES: dict[EntityKind, str] = {
    EntityKind.CONSTANCIA: "constancias.access",
    EntityKind.RESOLUCION: "resoluciones.access",
}


@dataclass
class StoredUpload:
    file_name: str
    file_url: str
    file_size: int
    file_mime_type: str
    path: Path


# Storage


def storage_root(kind: str) -> Path:
    folder = Path(current_app.config.get("UPLOAD_FOLDER", "uploads"))
    if not folder.is_absolute():
        folder = Path(current_app.instance_path) / folder
    return folder / kind


def stored_file_path(kind: str, name: str) -> Path:
    if kind not in STORAGE_KINDS:
        raise ValueError("Ruta no permitida")
    safe_name = secure_filename(name)
    if not safe_name or safe_name != name:
        raise NotFoundError("Archivo no encontrado")
    path = storage_root(kind) / safe_name
    if not path.is_file():
        raise NotFoundError("Archivo no encontrado")
    return path


def _incoming_files(files: list[FileStorage] | None) -> list[tuple[FileStorage, bytes]]:
    """Read and validate a batch before anything is written to disk."""
    max_bytes = int(current_app.config.get("MAX_UPLOAD_BYTES", 5 * 1024 * 1024))
    accepted: list[tuple[FileStorage, bytes]] = []
    for file_obj in files or []:
        if not file_obj or not file_obj.filename:
            continue
        content = file_obj.read()
        if not content:
            continue
        message = upload_error(file_obj.filename, file_obj.mimetype, len(content), max_bytes)
        if message:
            raise ValueError(message)
        accepted.append((file_obj, content))
    return accepted


def _store(kind: str, incoming: list[tuple[FileStorage, bytes]]) -> list[StoredUpload]:
    root = storage_root(kind)
    root.mkdir(parents=True, exist_ok=True)
    stored: list[StoredUpload] = []
    for file_obj, content in incoming:
        extension = Path(secure_filename(file_obj.filename) or "").suffix.lower()
        saved_name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}{extension}"
        absolute = root / saved_name
        absolute.write_bytes(content)
        stored.append(
            StoredUpload(
                file_name=file_obj.filename,
                file_url=f"/api/documents/files/{kind}/{saved_name}",
                file_size=len(content),
                file_mime_type=file_obj.mimetype,
                path=absolute,
            )
        )
    return stored


def _remove_stored(kind: str, file_url: str | None) -> None:
    if not file_url:
        return
    (storage_root(kind) / file_url.rsplit("/", 1)[-1]).unlink(missing_ok=True)


# Shared helpers


def _log_document_event(actor: User, action: str, entity: str, entity_id: int, details: dict | None = None) -> None:
    db.session.add(
        AuditLog(
            user_id=actor.id,
            action=action,
            entity=entity,
            entity_id=str(entity_id),
            details=details or {},
        )
    )


def _ensure_allowed(record: Constancia | Resolucion, kind: EntityKind, operation: Operation, actor: User) -> None:
    allowed = can_mutate(
        record.status,
        actor.role,
        operation,
        kind,
        has_update_permission=has_permission(actor, PERMISSION_CODES[kind], PermissionAction.UPDATE),
    )
    if not allowed:
        raise ValueError(denial_reason(record.status, operation, kind))


def _transition(record: Constancia | Resolucion, kind: EntityKind, operation: Operation, actor: User) -> None:
    _ensure_allowed(record, kind, operation, actor)
    record.status = next_status(record.status, operation)
    if record.status == DocumentStatus.APROBADO:
        record.approved_by_id = actor.id
        record.approved_at = utcnow()
    db.session.add(record)


def _required(payload: dict[str, object], key: str, label: str) -> str:
    value = str(payload.get(key) or "").strip()
    if not value:
        raise ValueError(f"Falta {label}")
    return value


def _optional_text(payload: dict[str, object], key: str) -> str | None:
    value = str(payload.get(key) or "").strip()
    return value or None


def _parse_year(value: str) -> int:
    try:
        year = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("Año inválido") from exc
    if year < 1900 or year > 2100:
        raise ValueError("Año inválido")
    return year


def _parse_enum(enum_cls, value: str, message: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise ValueError(message) from exc


def _parse_iso_date(value: str, label: str) -> date:
    try:
        return date.fromisoformat(value[:10])
    except ValueError as exc:
        raise ValueError(f"Formato de fecha invalido para {label}") from exc


def _parse_amount(value: str | None) -> Decimal | None:
    if value in (None, ""):
        return None
    try:
        amount = Decimal(str(value).replace(",", "."))
    except InvalidOperation as exc:
        raise ValueError("Monto inválido") from exc
    if amount < 0:
        raise ValueError("Monto inválido")
    return amount.quantize(Decimal("0.01"))


def _parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"true", "1", "on", "si", "sí"}


def _parse_json_list(raw: object, label: str) -> list[dict[str, object]]:
    if raw in (None, ""):
        return []
    if isinstance(raw, list):
        items = raw
    else:
        try:
            items = json.loads(str(raw))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Formato inválido de {label}") from exc
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        raise ValueError(f"Formato inválido de {label}")
    return items


# Constancias


def list_constancias() -> list[Constancia]:
    return Constancia.query.order_by(Constancia.created_at.desc(), Constancia.id.desc()).all()


def get_constancia(constancia_id: int) -> Constancia:
    constancia = db.session.get(Constancia, constancia_id)
    if not constancia:
        raise NotFoundError("Constancia no encontrada")
    return constancia


def _ensure_unique_constancia_number(number: str, year: int, exclude_id: int | None = None) -> None:
    query = Constancia.query.filter_by(constancia_number=number, year=year)
    if exclude_id is not None:
        query = query.filter(Constancia.id != exclude_id)
    if query.first():
        raise ValueError("El número de constancia ya existe")


def _validate_constancia_identity(student_code: str | None, dni: str | None) -> None:
    if student_code is not None and not validate_student_code(student_code):
        raise ValueError("El código de estudiante debe tener entre 6 y 10 dígitos")
    if dni is not None and not validate_dni(dni):
        raise ValueError("El DNI debe tener 8 dígitos")


def _attach_constancia_file(constancia: Constancia, upload: StoredUpload) -> None:
    constancia.file_name = upload.file_name
    constancia.file_url = upload.file_url
    constancia.file_size = upload.file_size
    constancia.file_mime_type = upload.file_mime_type


def create_constancia(payload: dict[str, object], file_obj: FileStorage | None, actor: User) -> Constancia:
    student_code = _required(payload, "studentCode", "código de estudiante")
    full_name = _required(payload, "fullName", "nombre completo")
    dni = _required(payload, "dni", "DNI")
    number = _required(payload, "constanciaNumber", "número de constancia")
    year = _parse_year(_required(payload, "year", "año"))
    _validate_constancia_identity(student_code, dni)
    _ensure_unique_constancia_number(number, year)
    incoming = _incoming_files([file_obj] if file_obj else [])

    constancia = Constancia(
        student_code=student_code,
        full_name=full_name,
        dni=dni,
        constancia_number=number,
        year=year,
        observation=_optional_text(payload, "observation"),
        status=DocumentStatus.PENDIENTE,
        created_by_id=actor.id,
    )
    for upload in _store("constancias", incoming):
        _attach_constancia_file(constancia, upload)
    db.session.add(constancia)
    db.session.flush()
    _log_document_event(actor, "CREATE", "Constancia", constancia.id, {"number": number, "year": year})
    db.session.commit()
    logger.info("Constancia %s/%s created by %s", number, year, actor.email)
    return constancia


def update_constancia(
    constancia_id: int,
    payload: dict[str, object],
    file_obj: FileStorage | None,
    actor: User,
) -> Constancia:
    constancia = get_constancia(constancia_id)
    _ensure_allowed(constancia, EntityKind.CONSTANCIA, Operation.EDIT, actor)

    changes: dict[str, object] = {}
    for key, attr, label in (
        ("studentCode", "student_code", "código de estudiante"),
        ("fullName", "full_name", "nombre completo"),
        ("dni", "dni", "DNI"),
        ("constanciaNumber", "constancia_number", "número de constancia"),
    ):
        if key in payload:
            changes[attr] = _required(payload, key, label)
    if "year" in payload:
        changes["year"] = _parse_year(_required(payload, "year", "año"))
    if "observation" in payload:
        changes["observation"] = _optional_text(payload, "observation")

    _validate_constancia_identity(changes.get("student_code"), changes.get("dni"))
    number = changes.get("constancia_number", constancia.constancia_number)
    year = changes.get("year", constancia.year)
    if (number, year) != (constancia.constancia_number, constancia.year):
        _ensure_unique_constancia_number(number, year, exclude_id=constancia.id)
    incoming = _incoming_files([file_obj] if file_obj else [])

    # Status is never written here; approve/reject own the transitions.
    for attr, value in changes.items():
        setattr(constancia, attr, value)
    replaced_url = None
    for upload in _store("constancias", incoming):
        replaced_url = replaced_url or constancia.file_url
        _attach_constancia_file(constancia, upload)
    db.session.add(constancia)
    _log_document_event(actor, "UPDATE", "Constancia", constancia.id, {"fields": sorted(changes)})
    db.session.commit()
    # The old file goes only once the row no longer points at it.
    if replaced_url and replaced_url != constancia.file_url:
        _remove_stored("constancias", replaced_url)
    return constancia


def delete_constancia(constancia_id: int, actor: User) -> None:
    constancia = get_constancia(constancia_id)
    _ensure_allowed(constancia, EntityKind.CONSTANCIA, Operation.DELETE, actor)
    file_url = constancia.file_url
    _log_document_event(actor, "DELETE", "Constancia", constancia.id, {"number": constancia.constancia_number})
    db.session.delete(constancia)
    db.session.commit()
    _remove_stored("constancias", file_url)
    logger.info("Constancia %s deleted by %s", constancia_id, actor.email)


def approve_constancia(constancia_id: int, actor: User) -> Constancia:
    constancia = get_constancia(constancia_id)
    _transition(constancia, EntityKind.CONSTANCIA, Operation.APPROVE, actor)
    _log_document_event(actor, "APPROVE", "Constancia", constancia.id)
    db.session.commit()
    logger.info("Constancia %s approved by %s", constancia.id, actor.email)
    return constancia


def reject_constancia(constancia_id: int, actor: User) -> Constancia:
    constancia = get_constancia(constancia_id)
    _transition(constancia, EntityKind.CONSTANCIA, Operation.REJECT, actor)
    _log_document_event(actor, "REJECT", "Constancia", constancia.id)
    db.session.commit()
    logger.info("Constancia %s rejected by %s", constancia.id, actor.email)
    return constancia


# Resoluciones


def list_resoluciones() -> list[Resolucion]:
    return Resolucion.query.order_by(Resolucion.created_at.desc(), Resolucion.id.desc()).all()


def get_resolucion(resolucion_id: int) -> Resolucion:
    resolucion = db.session.get(Resolucion, resolucion_id)
    if not resolucion:
        raise NotFoundError("Resolución no encontrada")
    return resolucion


def list_facultades() -> list[Facultad]:
    return Facultad.query.order_by(Facultad.nombre.asc()).all()


def _docentes_from(raw: object) -> list[ResolucionDocente]:
    docentes: list[ResolucionDocente] = []
    seen: set[str] = set()
    for item in _parse_json_list(raw, "docentes"):
        dni = str(item.get("dni") or "").strip()
        nombres = str(item.get("nombres") or "").strip()
        apellidos = str(item.get("apellidos") or "").strip()
        if not dni or not nombres or not apellidos:
            raise ValueError("Cada docente necesita DNI, nombres y apellidos")
        if dni in seen:
            raise ValueError(f"El docente con DNI {dni} está repetido")
        seen.add(dni)
        docentes.append(
            ResolucionDocente(
                dni=dni,
                nombres=nombres,
                apellidos=apellidos,
                email=str(item.get("email") or "").strip() or None,
                facultad=str(item.get("facultad") or "").strip() or None,
            )
        )
    return docentes


def _estudiantes_from(raw: object) -> list[ResolucionEstudiante]:
    estudiantes: list[ResolucionEstudiante] = []
    seen: set[str] = set()
    for item in _parse_json_list(raw, "estudiantes"):
        dni = str(item.get("dni") or "").strip()
        codigo = str(item.get("codigo") or "").strip()
        nombres = str(item.get("nombres") or "").strip()
        apellidos = str(item.get("apellidos") or "").strip()
        if not dni or not codigo or not nombres or not apellidos:
            raise ValueError("Cada estudiante necesita DNI, código, nombres y apellidos")
        if dni in seen:
            raise ValueError(f"El estudiante con DNI {dni} está repetido")
        seen.add(dni)
        estudiantes.append(ResolucionEstudiante(dni=dni, codigo=codigo, nombres=nombres, apellidos=apellidos))
    return estudiantes


def _resolucion_fields(payload: dict[str, object], current: Resolucion | None = None) -> dict[str, object]:
    """Parse the scalar fields of a resolución form.

    On update only the submitted keys are parsed; the rest keep their values.
    """

    def wanted(key: str) -> bool:
        return current is None or key in payload

    fields: dict[str, object] = {}
    if wanted("tipoResolucion"):
        fields["tipo_resolucion"] = _parse_enum(
            TipoResolucion,
            _required(payload, "tipoResolucion", "tipo de resolución"),
            "Tipo de resolución inválido",
        )
    if wanted("numeroResolucion"):
        fields["numero_resolucion"] = _required(payload, "numeroResolucion", "número de resolución")
    if wanted("fechaResolucion"):
        fields["fecha_resolucion"] = _parse_iso_date(
            _required(payload, "fechaResolucion", "fecha de resolución"),
            "fecha de resolución",
        )
    if wanted("modalidad"):
        fields["modalidad"] = _parse_enum(
            ModalidadResolucion,
            _required(payload, "modalidad", "modalidad"),
            "Modalidad inválida",
        )
    if wanted("dniAsesor"):
        dni_asesor = _required(payload, "dniAsesor", "DNI del asesor")
        if not validate_dni(dni_asesor):
            raise ValueError("El DNI del asesor debe tener 8 dígitos")
        fields["dni_asesor"] = dni_asesor
    if wanted("nombreAsesor"):
        fields["nombre_asesor"] = _required(payload, "nombreAsesor", "nombre del asesor")
    if wanted("tituloProyecto"):
        fields["titulo_proyecto"] = _required(payload, "tituloProyecto", "título del proyecto")
    if wanted("facultadId"):
        fields["facultad_id"] = _parse_reference(payload, "facultadId", "facultad")
    if wanted("departamentoId"):
        fields["departamento_id"] = _parse_reference(payload, "departamentoId", "departamento")

    if wanted("esFinanciado"):
        es_financiado = _parse_bool(payload.get("esFinanciado"))
        fields["es_financiado"] = es_financiado
        if es_financiado:
            tipo = _optional_text(payload, "tipoFinanciamiento")
            fields["tipo_financiamiento"] = (
                _parse_enum(TipoFinanciamiento, tipo, "Tipo de financiamiento inválido") if tipo else None
            )
            fields["monto"] = _parse_amount(_optional_text(payload, "monto"))
        else:
            fields["tipo_financiamiento"] = None
            fields["monto"] = None
    return fields


def _parse_reference(payload: dict[str, object], key: str, label: str) -> int:
    raw = _required(payload, key, label)
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Selecciona una {label} válida") from exc


def _check_academic_unit(facultad_id: int, departamento_id: int) -> None:
    facultad = db.session.get(Facultad, facultad_id)
    if not facultad:
        raise ValueError("Facultad no encontrada")
    departamento = db.session.get(Departamento, departamento_id)
    if not departamento:
        raise ValueError("Departamento no encontrado")
    if departamento.facultad_id != facultad.id:
        raise ValueError("El departamento no pertenece a la facultad seleccionada")


def _ensure_unique_resolucion_number(
    tipo: TipoResolucion,
    numero: str,
    exclude_id: int | None = None,
) -> None:
    query = Resolucion.query.filter_by(tipo_resolucion=tipo, numero_resolucion=numero)
    if exclude_id is not None:
        query = query.filter(Resolucion.id != exclude_id)
    if query.first():
        raise ValueError("El número de resolución ya existe")


def _archivo_from(upload: StoredUpload) -> ArchivoResolucion:
    return ArchivoResolucion(
        file_name=upload.file_name,
        file_url=upload.file_url,
        file_size=upload.file_size,
        file_mime_type=upload.file_mime_type,
        tipo="resolucion" if "pdf" in upload.file_mime_type else "anexo",
    )


def create_resolucion(payload: dict[str, object], files: list[FileStorage], actor: User) -> Resolucion:
    fields = _resolucion_fields(payload)
    _check_academic_unit(fields["facultad_id"], fields["departamento_id"])
    _ensure_unique_resolucion_number(fields["tipo_resolucion"], fields["numero_resolucion"])
    docentes = _docentes_from(payload.get("docentes"))
    estudiantes = _estudiantes_from(payload.get("estudiantes"))
    incoming = _incoming_files(files)

    resolucion = Resolucion(status=DocumentStatus.PENDIENTE, created_by_id=actor.id, **fields)
    resolucion.docentes = docentes
    resolucion.estudiantes = estudiantes
    resolucion.archivos = [_archivo_from(upload) for upload in _store("resoluciones", incoming)]
    db.session.add(resolucion)
    db.session.flush()
    _log_document_event(
        actor,
        "CREATE",
        "Resolucion",
        resolucion.id,
        {"numero": resolucion.numero_resolucion, "archivos": len(resolucion.archivos)},
    )
    db.session.commit()
    logger.info("Resolucion %s created by %s", resolucion.numero_resolucion, actor.email)
    return resolucion


def update_resolucion(
    resolucion_id: int,
    payload: dict[str, object],
    files: list[FileStorage],
    actor: User,
) -> Resolucion:
    resolucion = get_resolucion(resolucion_id)
    _ensure_allowed(resolucion, EntityKind.RESOLUCION, Operation.EDIT, actor)

    fields = _resolucion_fields(payload, current=resolucion)
    facultad_id = fields.get("facultad_id", resolucion.facultad_id)
    departamento_id = fields.get("departamento_id", resolucion.departamento_id)
    if "facultad_id" in fields or "departamento_id" in fields:
        _check_academic_unit(facultad_id, departamento_id)
    tipo = fields.get("tipo_resolucion", resolucion.tipo_resolucion)
    numero = fields.get("numero_resolucion", resolucion.numero_resolucion)
    if (tipo, numero) != (resolucion.tipo_resolucion, resolucion.numero_resolucion):
        _ensure_unique_resolucion_number(tipo, numero, exclude_id=resolucion.id)

    docentes = _docentes_from(payload.get("docentes")) if "docentes" in payload else None
    estudiantes = _estudiantes_from(payload.get("estudiantes")) if "estudiantes" in payload else None
    delete_ids = {int(value) for value in _parse_id_list(payload.get("filesToDelete"))}
    incoming = _incoming_files(files)

    for attr, value in fields.items():
        setattr(resolucion, attr, value)
    if docentes is not None or estudiantes is not None:
        # Old participant rows must be gone before rows with the same DNI are inserted.
        if docentes is not None:
            resolucion.docentes = []
        if estudiantes is not None:
            resolucion.estudiantes = []
        db.session.flush()
    if docentes is not None:
        resolucion.docentes = docentes
    if estudiantes is not None:
        resolucion.estudiantes = estudiantes

    removed_urls: list[str] = []
    if delete_ids:
        kept = []
        for archivo in resolucion.archivos:
            if archivo.id in delete_ids:
                removed_urls.append(archivo.file_url)
            else:
                kept.append(archivo)
        resolucion.archivos = kept
    for upload in _store("resoluciones", incoming):
        resolucion.archivos.append(_archivo_from(upload))

    db.session.add(resolucion)
    _log_document_event(
        actor,
        "UPDATE",
        "Resolucion",
        resolucion.id,
        {"fields": sorted(fields), "archivosEliminados": len(removed_urls), "archivosNuevos": len(incoming)},
    )
    db.session.commit()
    for url in removed_urls:
        _remove_stored("resoluciones", url)
    return resolucion


def _parse_id_list(raw: object) -> list[int]:
    if raw in (None, ""):
        return []
    if isinstance(raw, list):
        items = raw
    else:
        try:
            items = json.loads(str(raw))
        except json.JSONDecodeError as exc:
            raise ValueError("Formato inválido de archivos a eliminar") from exc
    try:
        return [int(item) for item in items]
    except (TypeError, ValueError) as exc:
        raise ValueError("Formato inválido de archivos a eliminar") from exc


def delete_resolucion(resolucion_id: int, actor: User) -> None:
    resolucion = get_resolucion(resolucion_id)
    _ensure_allowed(resolucion, EntityKind.RESOLUCION, Operation.DELETE, actor)
    urls = [archivo.file_url for archivo in resolucion.archivos]
    _log_document_event(actor, "DELETE", "Resolucion", resolucion.id, {"numero": resolucion.numero_resolucion})
    db.session.delete(resolucion)
    db.session.commit()
    for url in urls:
        _remove_stored("resoluciones", url)
    logger.info("Resolucion %s deleted by %s", resolucion_id, actor.email)


def approve_resolucion(resolucion_id: int, actor: User) -> Resolucion:
    resolucion = get_resolucion(resolucion_id)
    _transition(resolucion, EntityKind.RESOLUCION, Operation.APPROVE, actor)
    _log_document_event(actor, "APPROVE", "Resolucion", resolucion.id)
    db.session.commit()
    logger.info("Resolucion %s approved by %s", resolucion.id, actor.email)
    return resolucion


def reject_resolucion(resolucion_id: int, actor: User) -> Resolucion:
    resolucion = get_resolucion(resolucion_id)
    _transition(resolucion, EntityKind.RESOLUCION, Operation.REJECT, actor)
    _log_document_event(actor, "REJECT", "Resolucion", resolucion.id)
    db.session.commit()
    logger.info("Resolucion %s rejected by %s", resolucion.id, actor.email)
    return resolucion


# Public search


def _public_constancia(constancia: Constancia) -> dict[str, object]:
    data = constancia.to_dict()
    return {
        key: data[key]
        for key in (
            "id",
            "type",
            "constanciaNumber",
            "studentCode",
            "fullName",
            "dni",
            "year",
            "observation",
            "fileName",
            "fileUrl",
            "status",
            "createdAt",
        )
    }


def _public_resolucion(resolucion: Resolucion) -> dict[str, object]:
    data = resolucion.to_dict()
    public = {
        key: data[key]
        for key in (
            "id",
            "numeroResolucion",
            "tipoResolucion",
            "modalidad",
            "tituloProyecto",
            "fechaResolucion",
            "nombreAsesor",
            "esFinanciado",
            "monto",
            "status",
            "facultad",
            "departamento",
        )
    }
    public["estudiantes"] = [
        {"nombres": e.nombres, "apellidos": e.apellidos, "codigo": e.codigo, "dni": e.dni}
        for e in resolucion.estudiantes
    ]
    public["archivos"] = [
        {"id": a.id, "fileName": a.file_name, "fileUrl": a.file_url, "tipo": a.tipo} for a in resolucion.archivos
    ]
    return public


def search_approved_documents(query: str) -> dict[str, object]:
    term = (query or "").strip().lower()
    if len(term) < PUBLIC_SEARCH_MIN_LENGTH:
        raise ValueError("El término de búsqueda debe tener al menos 3 caracteres")
    like = f"%{term}%"

    constancia_match = or_(
        Constancia.full_name.ilike(like),
        Constancia.student_code.ilike(like),
        Constancia.dni.ilike(like),
        Constancia.constancia_number.ilike(like),
    )
    parts = [part for part in term.split() if part]
    if len(parts) > 1:
        # "juan perez" also finds "Perez Garcia, Juan"
        constancia_match = or_(constancia_match, and_(*[Constancia.full_name.ilike(f"%{p}%") for p in parts]))
    constancias = (
        Constancia.query.filter(Constancia.status == DocumentStatus.APROBADO)
        .filter(constancia_match)
        .order_by(Constancia.created_at.desc())
        .limit(PUBLIC_SEARCH_LIMIT)
        .all()
    )

    estudiante_match = Resolucion.estudiantes.any(
        or_(
            ResolucionEstudiante.nombres.ilike(like),
            ResolucionEstudiante.apellidos.ilike(like),
            ResolucionEstudiante.codigo.ilike(like),
            ResolucionEstudiante.dni.ilike(like),
        )
    )
    resoluciones = (
        Resolucion.query.filter(Resolucion.status == DocumentStatus.APROBADO)
        .filter(
            or_(
                Resolucion.numero_resolucion.ilike(like),
                Resolucion.nombre_asesor.ilike(like),
                Resolucion.dni_asesor.ilike(like),
                Resolucion.titulo_proyecto.ilike(like),
                estudiante_match,
            )
        )
        .order_by(Resolucion.fecha_resolucion.desc())
        .limit(PUBLIC_SEARCH_LIMIT)
        .all()
    )
    return {
        "constancias": [_public_constancia(c) for c in constancias],
        "resoluciones": [_public_resolucion(r) for r in resoluciones],
        "total": len(constancias) + len(resoluciones),
    }
