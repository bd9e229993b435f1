from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum

from flask_login import UserMixin
from sqlalchemy import Enum as SAEnum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from werkzeug.security import generate_password_hash

from portal.core.extensions import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value else None


class UserRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"
    USER = "USER"


class DocumentStatus(str, Enum):
    PENDIENTE = "PENDIENTE"
    APROBADO = "APROBADO"
    RECHAZADO = "RECHAZADO"
    # Terminal; no operation of the portal moves a document here.
    ANULADO = "ANULADO"


class PermissionAction(str, Enum):
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    EXECUTE = "EXECUTE"


class IdentityDocumentType(str, Enum):
    DNI = "DNI"
    CE = "CE"
    PTP = "PTP"
    CPP = "CPP"
    PASAPORTE = "PASAPORTE"


class TipoResolucion(str, Enum):
    APROBACION_PROYECTO = "APROBACION_PROYECTO"
    APROBACION_INFORME_FINAL = "APROBACION_INFORME_FINAL"


class ModalidadResolucion(str, Enum):
    DOCENTES = "DOCENTES"
    ESTUDIANTES = "ESTUDIANTES"
    VOLUNTARIADO = "VOLUNTARIADO"
    ACTIVIDAD = "ACTIVIDAD"


class TipoFinanciamiento(str, Enum):
    INTERNO = "INTERNO"
    EXTERNO = "EXTERNO"


class User(UserMixin, db.Model):
    __tablename__ = "user_account"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(db.String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(db.String(120), nullable=False)
    password_hash: Mapped[str] = mapped_column(db.String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole, name="user_role"),
        nullable=False,
        default=UserRole.USER,
    )
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    student_code: Mapped[str | None] = mapped_column(db.String(10), unique=True, nullable=True)
    document_type: Mapped[IdentityDocumentType | None] = mapped_column(
        SAEnum(IdentityDocumentType, name="identity_document_type"),
        nullable=True,
    )
    document_number: Mapped[str | None] = mapped_column(db.String(12), unique=True, nullable=True)
    sex: Mapped[str | None] = mapped_column(db.String(1), nullable=True)
    faculty: Mapped[str | None] = mapped_column(db.String(120), nullable=True)
    career: Mapped[str | None] = mapped_column(db.String(120), nullable=True)
    career_code: Mapped[str | None] = mapped_column(db.String(10), nullable=True)
    enrollment_period: Mapped[str | None] = mapped_column(db.String(10), nullable=True)
    personal_email: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    permissions = relationship(
        "UserPermission",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="UserPermission.user_id",
    )

    @validates("email")
    def normalize_email(self, _key, value: str) -> str:
        return (value or "").strip().lower()

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN

    def summary(self) -> dict[str, object]:
        return {"id": self.id, "name": self.name, "email": self.email}

    def to_dict(self) -> dict[str, object]:
        return {
            **self.summary(),
            "role": self.role.value,
            "isActive": self.is_active,
            "studentCode": self.student_code,
            "documentType": self.document_type.value if self.document_type else None,
            "documentNumber": self.document_number,
            "sex": self.sex,
            "faculty": self.faculty,
            "career": self.career,
            "careerCode": self.career_code,
            "enrollmentPeriod": self.enrollment_period,
            "personalEmail": self.personal_email,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class Module(db.Model):
    __tablename__ = "module"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(db.String(120), nullable=False)
    slug: Mapped[str] = mapped_column(db.String(80), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(db.String(255), nullable=False, default="")
    icon: Mapped[str] = mapped_column(db.String(60), nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    order: Mapped[int] = mapped_column(nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    submodules = relationship(
        "Submodule",
        back_populates="module",
        cascade="all, delete-orphan",
        order_by="Submodule.order",
    )
    permissions = relationship("Permission", back_populates="module", cascade="all, delete-orphan")

    def to_dict(self, include_submodules: bool = True) -> dict[str, object]:
        data: dict[str, object] = {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "icon": self.icon,
            "isActive": self.is_active,
            "order": self.order,
        }
        if include_submodules:
            data["submodules"] = [sub.to_dict() for sub in self.submodules]
        return data


class Submodule(db.Model):
    __tablename__ = "submodule"
    __table_args__ = (UniqueConstraint("module_id", "slug", name="uq_submodule_module_slug"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    module_id: Mapped[int] = mapped_column(ForeignKey("module.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(db.String(120), nullable=False)
    slug: Mapped[str] = mapped_column(db.String(80), nullable=False)
    description: Mapped[str] = mapped_column(db.String(255), nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    order: Mapped[int] = mapped_column(nullable=False, default=0)

    module = relationship("Module", back_populates="submodules")
    permissions = relationship("Permission", back_populates="submodule")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "moduleId": self.module_id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "isActive": self.is_active,
            "order": self.order,
        }


class Permission(db.Model):
    __tablename__ = "permission"

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(db.String(80), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(db.String(120), nullable=False)
    description: Mapped[str] = mapped_column(db.String(255), nullable=False, default="")
    module_id: Mapped[int | None] = mapped_column(ForeignKey("module.id"), nullable=True, index=True)
    submodule_id: Mapped[int | None] = mapped_column(ForeignKey("submodule.id"), nullable=True)
    actions: Mapped[list[str]] = mapped_column(db.JSON, nullable=False, default=list)

    module = relationship("Module", back_populates="permissions")
    submodule = relationship("Submodule", back_populates="permissions")

    def allows(self, action: PermissionAction) -> bool:
        return action.value in (self.actions or [])

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "moduleId": self.module_id,
            "submoduleId": self.submodule_id,
            "actions": list(self.actions or []),
        }


class UserPermission(db.Model):
    __tablename__ = "user_permission"
    __table_args__ = (UniqueConstraint("user_id", "permission_id", name="uq_user_permission"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user_account.id"), nullable=False, index=True)
    permission_id: Mapped[int] = mapped_column(ForeignKey("permission.id"), nullable=False)
    granted_by_id: Mapped[int | None] = mapped_column(ForeignKey("user_account.id"), nullable=True)
    granted_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(nullable=True)

    user = relationship("User", back_populates="permissions", foreign_keys=[user_id])
    permission = relationship("Permission")

    def is_current(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return True
        now = now or utcnow()
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at > now


class AuditLog(db.Model):
    __tablename__ = "audit_log"
    __table_args__ = (Index("ix_audit_log_entity", "entity", "entity_id"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("user_account.id"), nullable=True)
    action: Mapped[str] = mapped_column(db.String(60), nullable=False)
    entity: Mapped[str] = mapped_column(db.String(60), nullable=False)
    entity_id: Mapped[str] = mapped_column(db.String(40), nullable=False)
    details: Mapped[dict] = mapped_column(db.JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    user = relationship("User")


class Facultad(db.Model):
    __tablename__ = "facultad"

    id: Mapped[int] = mapped_column(primary_key=True)
    nombre: Mapped[str] = mapped_column(db.String(160), unique=True, nullable=False)
    codigo: Mapped[str | None] = mapped_column(db.String(20), nullable=True)

    departamentos = relationship("Departamento", back_populates="facultad", order_by="Departamento.nombre")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "nombre": self.nombre,
            "codigo": self.codigo,
            "departamentos": [d.to_dict() for d in self.departamentos],
        }


class Departamento(db.Model):
    __tablename__ = "departamento"

    id: Mapped[int] = mapped_column(primary_key=True)
    facultad_id: Mapped[int] = mapped_column(ForeignKey("facultad.id"), nullable=False, index=True)
    nombre: Mapped[str] = mapped_column(db.String(160), nullable=False)
    codigo: Mapped[str | None] = mapped_column(db.String(20), nullable=True)

    facultad = relationship("Facultad", back_populates="departamentos")

    def to_dict(self) -> dict[str, object]:
        return {"id": self.id, "nombre": self.nombre, "codigo": self.codigo}


class Constancia(db.Model):
    __tablename__ = "constancia"
    __table_args__ = (
        UniqueConstraint("year", "constancia_number", name="uq_constancia_year_number"),
        Index("ix_constancia_status_created", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    type: Mapped[str] = mapped_column(db.String(30), nullable=False, default="CONSTANCIA")
    constancia_number: Mapped[str] = mapped_column(db.String(40), nullable=False)
    year: Mapped[int] = mapped_column(nullable=False)
    student_code: Mapped[str] = mapped_column(db.String(10), nullable=False, index=True)
    dni: Mapped[str] = mapped_column(db.String(12), nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(db.String(160), nullable=False)
    observation: Mapped[str | None] = mapped_column(db.String(1000), nullable=True)
    status: Mapped[DocumentStatus] = mapped_column(
        SAEnum(DocumentStatus, name="document_status"),
        nullable=False,
        default=DocumentStatus.PENDIENTE,
    )
    file_name: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    file_url: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    file_size: Mapped[int | None] = mapped_column(nullable=True)
    file_mime_type: Mapped[str | None] = mapped_column(db.String(60), nullable=True)
    created_by_id: Mapped[int] = mapped_column(ForeignKey("user_account.id"), nullable=False)
    approved_by_id: Mapped[int | None] = mapped_column(ForeignKey("user_account.id"), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    created_by = relationship("User", foreign_keys=[created_by_id])
    approved_by = relationship("User", foreign_keys=[approved_by_id])

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "type": self.type,
            "constanciaNumber": self.constancia_number,
            "year": self.year,
            "studentCode": self.student_code,
            "dni": self.dni,
            "fullName": self.full_name,
            "observation": self.observation,
            "status": self.status.value,
            "fileName": self.file_name,
            "fileUrl": self.file_url,
            "fileSize": self.file_size,
            "fileMimeType": self.file_mime_type,
            "createdBy": self.created_by.summary() if self.created_by else None,
            "approvedBy": self.approved_by.summary() if self.approved_by else None,
            "approvedAt": _iso(self.approved_at),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class Resolucion(db.Model):
    __tablename__ = "resolucion"
    __table_args__ = (
        UniqueConstraint("tipo_resolucion", "numero_resolucion", name="uq_resolucion_tipo_numero"),
        Index("ix_resolucion_status_created", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    tipo_resolucion: Mapped[TipoResolucion] = mapped_column(
        SAEnum(TipoResolucion, name="tipo_resolucion"),
        nullable=False,
    )
    numero_resolucion: Mapped[str] = mapped_column(db.String(60), nullable=False)
    fecha_resolucion: Mapped[date] = mapped_column(nullable=False)
    modalidad: Mapped[ModalidadResolucion] = mapped_column(
        SAEnum(ModalidadResolucion, name="modalidad_resolucion"),
        nullable=False,
    )
    es_financiado: Mapped[bool] = mapped_column(nullable=False, default=False)
    tipo_financiamiento: Mapped[TipoFinanciamiento | None] = mapped_column(
        SAEnum(TipoFinanciamiento, name="tipo_financiamiento"),
        nullable=True,
    )
    monto: Mapped[Decimal | None] = mapped_column(db.Numeric(12, 2), nullable=True)
    dni_asesor: Mapped[str] = mapped_column(db.String(12), nullable=False)
    nombre_asesor: Mapped[str] = mapped_column(db.String(160), nullable=False)
    titulo_proyecto: Mapped[str] = mapped_column(db.String(500), nullable=False)
    facultad_id: Mapped[int] = mapped_column(ForeignKey("facultad.id"), nullable=False)
    departamento_id: Mapped[int] = mapped_column(ForeignKey("departamento.id"), nullable=False)
    status: Mapped[DocumentStatus] = mapped_column(
        SAEnum(DocumentStatus, name="document_status"),
        nullable=False,
        default=DocumentStatus.PENDIENTE,
    )
    created_by_id: Mapped[int] = mapped_column(ForeignKey("user_account.id"), nullable=False)
    approved_by_id: Mapped[int | None] = mapped_column(ForeignKey("user_account.id"), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    facultad = relationship("Facultad")
    departamento = relationship("Departamento")
    created_by = relationship("User", foreign_keys=[created_by_id])
    approved_by = relationship("User", foreign_keys=[approved_by_id])
    docentes = relationship("ResolucionDocente", back_populates="resolucion", cascade="all, delete-orphan")
    estudiantes = relationship("ResolucionEstudiante", back_populates="resolucion", cascade="all, delete-orphan")
    archivos = relationship(
        "ArchivoResolucion",
        back_populates="resolucion",
        cascade="all, delete-orphan",
        order_by="ArchivoResolucion.id",
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "tipoResolucion": self.tipo_resolucion.value,
            "numeroResolucion": self.numero_resolucion,
            "fechaResolucion": _iso(self.fecha_resolucion),
            "modalidad": self.modalidad.value,
            "esFinanciado": self.es_financiado,
            "tipoFinanciamiento": self.tipo_financiamiento.value if self.tipo_financiamiento else None,
            "monto": str(self.monto) if self.monto is not None else None,
            "dniAsesor": self.dni_asesor,
            "nombreAsesor": self.nombre_asesor,
            "tituloProyecto": self.titulo_proyecto,
            "facultad": {"id": self.facultad.id, "nombre": self.facultad.nombre} if self.facultad else None,
            "departamento": (
                {"id": self.departamento.id, "nombre": self.departamento.nombre} if self.departamento else None
            ),
            "status": self.status.value,
            "docentes": [d.to_dict() for d in self.docentes],
            "estudiantes": [e.to_dict() for e in self.estudiantes],
            "archivos": [a.to_dict() for a in self.archivos],
            "createdBy": self.created_by.summary() if self.created_by else None,
            "approvedBy": self.approved_by.summary() if self.approved_by else None,
            "approvedAt": _iso(self.approved_at),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class ResolucionDocente(db.Model):
    __tablename__ = "resolucion_docente"
    __table_args__ = (UniqueConstraint("resolucion_id", "dni", name="uq_resolucion_docente_dni"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    resolucion_id: Mapped[int] = mapped_column(ForeignKey("resolucion.id"), nullable=False, index=True)
    dni: Mapped[str] = mapped_column(db.String(12), nullable=False)
    nombres: Mapped[str] = mapped_column(db.String(120), nullable=False)
    apellidos: Mapped[str] = mapped_column(db.String(120), nullable=False)
    email: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    facultad: Mapped[str | None] = mapped_column(db.String(160), nullable=True)

    resolucion = relationship("Resolucion", back_populates="docentes")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "dni": self.dni,
            "nombres": self.nombres,
            "apellidos": self.apellidos,
            "email": self.email,
            "facultad": self.facultad,
        }


class ResolucionEstudiante(db.Model):
    __tablename__ = "resolucion_estudiante"
    __table_args__ = (UniqueConstraint("resolucion_id", "dni", name="uq_resolucion_estudiante_dni"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    resolucion_id: Mapped[int] = mapped_column(ForeignKey("resolucion.id"), nullable=False, index=True)
    dni: Mapped[str] = mapped_column(db.String(12), nullable=False)
    codigo: Mapped[str] = mapped_column(db.String(10), nullable=False)
    nombres: Mapped[str] = mapped_column(db.String(120), nullable=False)
    apellidos: Mapped[str] = mapped_column(db.String(120), nullable=False)

    resolucion = relationship("Resolucion", back_populates="estudiantes")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "dni": self.dni,
            "codigo": self.codigo,
            "nombres": self.nombres,
            "apellidos": self.apellidos,
        }


class ArchivoResolucion(db.Model):
    __tablename__ = "archivo_resolucion"

    id: Mapped[int] = mapped_column(primary_key=True)
    resolucion_id: Mapped[int] = mapped_column(ForeignKey("resolucion.id"), nullable=False, index=True)
    file_name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    file_url: Mapped[str] = mapped_column(db.String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(nullable=False)
    file_mime_type: Mapped[str] = mapped_column(db.String(60), nullable=False)
    tipo: Mapped[str] = mapped_column(db.String(20), nullable=False, default="anexo")
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    resolucion = relationship("Resolucion", back_populates="archivos")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "fileName": self.file_name,
            "fileUrl": self.file_url,
            "fileSize": self.file_size,
            "fileMimeType": self.file_mime_type,
            "tipo": self.tipo,
        }


DOCUMENT_PERMISSIONS: tuple[tuple[str, str, str, list[PermissionAction]], ...] = (
    ("dashboard.view", "Ver Dashboard", "dashboard", [PermissionAction.READ]),
    (
        "constancias.access",
        "Gestionar Constancias",
        "documents",
        [PermissionAction.CREATE, PermissionAction.READ, PermissionAction.UPDATE, PermissionAction.DELETE],
    ),
    (
        "resoluciones.access",
        "Gestionar Resoluciones",
        "documents",
        [PermissionAction.CREATE, PermissionAction.READ, PermissionAction.UPDATE, PermissionAction.DELETE],
    ),
    (
        "users.access",
        "Gestionar Usuarios",
        "users",
        [PermissionAction.CREATE, PermissionAction.READ, PermissionAction.UPDATE, PermissionAction.DELETE],
    ),
    (
        "roles.access",
        "Gestionar Roles y Permisos",
        "users",
        [PermissionAction.CREATE, PermissionAction.READ, PermissionAction.UPDATE, PermissionAction.DELETE],
    ),
)


def seed_demo_data(session) -> None:
    dashboard = Module(name="Dashboard", slug="dashboard", icon="layout-dashboard", order=0)
    documents = Module(name="Documentos", slug="documents", icon="file-text", order=1)
    users = Module(name="Gestión de Usuarios", slug="users", icon="users", order=2)
    settings = Module(name="Configuración", slug="settings", icon="settings", order=3)
    documents.submodules = [
        Submodule(name="Constancias", slug="constancias", order=0),
        Submodule(name="Resoluciones", slug="resoluciones", order=1),
    ]
    users.submodules = [
        Submodule(name="Lista de Usuarios", slug="users-list", order=0),
        Submodule(name="Roles y Permisos", slug="roles-permissions", order=1),
        Submodule(name="Módulos", slug="modules-management", order=2),
    ]
    settings.submodules = [
        Submodule(name="Cuenta", slug="account", order=0),
        Submodule(name="Apariencia", slug="appearance", order=1),
    ]
    session.add_all([dashboard, documents, users, settings])
    session.flush()

    modules_by_slug = {m.slug: m for m in (dashboard, documents, users, settings)}
    permissions: dict[str, Permission] = {}
    for code, name, module_slug, actions in DOCUMENT_PERMISSIONS:
        permission = Permission(
            code=code,
            name=name,
            module_id=modules_by_slug[module_slug].id,
            actions=[a.value for a in actions],
        )
        permissions[code] = permission
        session.add(permission)

    super_admin = User(email="superadmin@unamad.edu.pe", name="Super Admin", role=UserRole.SUPER_ADMIN)
    super_admin.set_password("SuperAdmin123")
    admin = User(email="admin@unamad.edu.pe", name="Admin User", role=UserRole.ADMIN)
    admin.set_password("Admin123")
    moderator = User(email="operador@unamad.edu.pe", name="Operador Documentos", role=UserRole.MODERATOR)
    moderator.set_password("Operador123")
    reader = User(email="usuario@unamad.edu.pe", name="Normal User", role=UserRole.USER)
    reader.set_password("Usuario123")
    session.add_all([super_admin, admin, moderator, reader])
    session.flush()

    for code in permissions:
        session.add(UserPermission(user_id=admin.id, permission_id=permissions[code].id, granted_by_id=super_admin.id))
    for code in ("dashboard.view", "constancias.access", "resoluciones.access"):
        session.add(
            UserPermission(user_id=moderator.id, permission_id=permissions[code].id, granted_by_id=super_admin.id)
        )
    session.add(
        UserPermission(user_id=reader.id, permission_id=permissions["dashboard.view"].id, granted_by_id=admin.id)
    )

    ingenieria = Facultad(nombre="Facultad de Ingeniería", codigo="FI")
    ingenieria.departamentos = [
        Departamento(nombre="Ingeniería de Sistemas e Informática", codigo="DASI"),
        Departamento(nombre="Ingeniería Forestal y Medio Ambiente", codigo="DAFMA"),
        Departamento(nombre="Ingeniería Agroindustrial", codigo="DAIA"),
    ]
    educacion = Facultad(nombre="Facultad de Educación", codigo="FE")
    educacion.departamentos = [
        Departamento(nombre="Educación y Humanidades", codigo="DAEH"),
        Departamento(nombre="Ciencias Básicas", codigo="DACB"),
    ]
    ecoempresa = Facultad(nombre="Facultad de Ecoturismo", codigo="FECO")
    ecoempresa.departamentos = [
        Departamento(nombre="Contabilidad y Administración", codigo="DACA"),
        Departamento(nombre="Derecho y Ciencias Políticas", codigo="DADCP"),
    ]
    session.add_all([ingenieria, educacion, ecoempresa])
    session.flush()

    session.add_all(
        [
            Constancia(
                constancia_number="CONST-2024-100",
                year=2024,
                student_code="20181001",
                dni="70112233",
                full_name="Lucia Huaman Quispe",
                created_by_id=moderator.id,
            ),
            Constancia(
                constancia_number="CONST-2024-101",
                year=2024,
                student_code="20181002",
                dni="70112244",
                full_name="Jorge Mamani Condori",
                status=DocumentStatus.APROBADO,
                created_by_id=moderator.id,
                approved_by_id=admin.id,
                approved_at=utcnow(),
            ),
        ]
    )
    resolucion = Resolucion(
        tipo_resolucion=TipoResolucion.APROBACION_PROYECTO,
        numero_resolucion="RES-2024-001",
        fecha_resolucion=date(2024, 3, 15),
        modalidad=ModalidadResolucion.ESTUDIANTES,
        dni_asesor="40123456",
        nombre_asesor="Rosa Flores Tapia",
        titulo_proyecto="Reforestación participativa en Tambopata",
        facultad_id=ingenieria.id,
        departamento_id=ingenieria.departamentos[1].id,
        created_by_id=moderator.id,
    )
    resolucion.estudiantes = [
        ResolucionEstudiante(dni="70112233", codigo="20181001", nombres="Lucia", apellidos="Huaman Quispe"),
    ]
    session.add(resolucion)
    session.commit()
