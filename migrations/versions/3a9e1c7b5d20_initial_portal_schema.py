"""initial portal schema: accounts, permissions, constancias and resoluciones

Revision ID: 3a9e1c7b5d20
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "3a9e1c7b5d20"
down_revision = None
branch_labels = None
depends_on = None


USER_ROLE = sa.Enum("SUPER_ADMIN", "ADMIN", "MODERATOR", "USER", name="user_role")
DOCUMENT_TYPE = sa.Enum("DNI", "CE", "PTP", "CPP", "PASAPORTE", name="identity_document_type")
TIPO_RESOLUCION = sa.Enum("APROBACION_PROYECTO", "APROBACION_INFORME_FINAL", name="tipo_resolucion")
MODALIDAD = sa.Enum("DOCENTES", "ESTUDIANTES", "VOLUNTARIADO", "ACTIVIDAD", name="modalidad_resolucion")
FINANCIAMIENTO = sa.Enum("INTERNO", "EXTERNO", name="tipo_financiamiento")


def _document_status():
    # Shared by constancia and resolucion.
    return sa.Enum("PENDIENTE", "APROBADO", "RECHAZADO", "ANULADO", name="document_status")


def upgrade():
    op.create_table(
        "user_account",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", USER_ROLE, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("student_code", sa.String(length=10), nullable=True),
        sa.Column("document_type", DOCUMENT_TYPE, nullable=True),
        sa.Column("document_number", sa.String(length=12), nullable=True),
        sa.Column("sex", sa.String(length=1), nullable=True),
        sa.Column("faculty", sa.String(length=120), nullable=True),
        sa.Column("career", sa.String(length=120), nullable=True),
        sa.Column("career_code", sa.String(length=10), nullable=True),
        sa.Column("enrollment_period", sa.String(length=10), nullable=True),
        sa.Column("personal_email", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("student_code"),
        sa.UniqueConstraint("document_number"),
    )

    op.create_table(
        "module",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("slug", sa.String(length=80), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("icon", sa.String(length=60), nullable=False, server_default=""),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )

    op.create_table(
        "submodule",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("module_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("slug", sa.String(length=80), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["module_id"], ["module.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("module_id", "slug", name="uq_submodule_module_slug"),
    )
    with op.batch_alter_table("submodule", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_submodule_module_id"), ["module_id"], unique=False)

    op.create_table(
        "permission",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=80), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("module_id", sa.Integer(), nullable=True),
        sa.Column("submodule_id", sa.Integer(), nullable=True),
        sa.Column("actions", sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(["module_id"], ["module.id"]),
        sa.ForeignKeyConstraint(["submodule_id"], ["submodule.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )
    with op.batch_alter_table("permission", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_permission_module_id"), ["module_id"], unique=False)

    op.create_table(
        "user_permission",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("permission_id", sa.Integer(), nullable=False),
        sa.Column("granted_by_id", sa.Integer(), nullable=True),
        sa.Column("granted_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["granted_by_id"], ["user_account.id"]),
        sa.ForeignKeyConstraint(["permission_id"], ["permission.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "permission_id", name="uq_user_permission"),
    )
    with op.batch_alter_table("user_permission", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_user_permission_user_id"), ["user_id"], unique=False)

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(length=60), nullable=False),
        sa.Column("entity", sa.String(length=60), nullable=False),
        sa.Column("entity_id", sa.String(length=40), nullable=False),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("audit_log", schema=None) as batch_op:
        batch_op.create_index("ix_audit_log_entity", ["entity", "entity_id"], unique=False)

    op.create_table(
        "facultad",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("nombre", sa.String(length=160), nullable=False),
        sa.Column("codigo", sa.String(length=20), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("nombre"),
    )

    op.create_table(
        "departamento",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("facultad_id", sa.Integer(), nullable=False),
        sa.Column("nombre", sa.String(length=160), nullable=False),
        sa.Column("codigo", sa.String(length=20), nullable=True),
        sa.ForeignKeyConstraint(["facultad_id"], ["facultad.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("departamento", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_departamento_facultad_id"), ["facultad_id"], unique=False)

    op.create_table(
        "constancia",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=30), nullable=False, server_default="CONSTANCIA"),
        sa.Column("constancia_number", sa.String(length=40), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("student_code", sa.String(length=10), nullable=False),
        sa.Column("dni", sa.String(length=12), nullable=False),
        sa.Column("full_name", sa.String(length=160), nullable=False),
        sa.Column("observation", sa.String(length=1000), nullable=True),
        sa.Column("status", _document_status(), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=True),
        sa.Column("file_url", sa.String(length=255), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("file_mime_type", sa.String(length=60), nullable=True),
        sa.Column("created_by_id", sa.Integer(), nullable=False),
        sa.Column("approved_by_id", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["approved_by_id"], ["user_account.id"]),
        sa.ForeignKeyConstraint(["created_by_id"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("year", "constancia_number", name="uq_constancia_year_number"),
    )
    with op.batch_alter_table("constancia", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_constancia_student_code"), ["student_code"], unique=False)
        batch_op.create_index(batch_op.f("ix_constancia_dni"), ["dni"], unique=False)
        batch_op.create_index("ix_constancia_status_created", ["status", "created_at"], unique=False)

    document_status = _document_status()
    if op.get_bind().dialect.name == "postgresql":
        document_status = postgresql.ENUM(
            "PENDIENTE", "APROBADO", "RECHAZADO", "ANULADO", name="document_status", create_type=False
        )

    op.create_table(
        "resolucion",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tipo_resolucion", TIPO_RESOLUCION, nullable=False),
        sa.Column("numero_resolucion", sa.String(length=60), nullable=False),
        sa.Column("fecha_resolucion", sa.Date(), nullable=False),
        sa.Column("modalidad", MODALIDAD, nullable=False),
        sa.Column("es_financiado", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("tipo_financiamiento", FINANCIAMIENTO, nullable=True),
        sa.Column("monto", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("dni_asesor", sa.String(length=12), nullable=False),
        sa.Column("nombre_asesor", sa.String(length=160), nullable=False),
        sa.Column("titulo_proyecto", sa.String(length=500), nullable=False),
        sa.Column("facultad_id", sa.Integer(), nullable=False),
        sa.Column("departamento_id", sa.Integer(), nullable=False),
        sa.Column("status", document_status, nullable=False),
        sa.Column("created_by_id", sa.Integer(), nullable=False),
        sa.Column("approved_by_id", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["approved_by_id"], ["user_account.id"]),
        sa.ForeignKeyConstraint(["created_by_id"], ["user_account.id"]),
        sa.ForeignKeyConstraint(["departamento_id"], ["departamento.id"]),
        sa.ForeignKeyConstraint(["facultad_id"], ["facultad.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tipo_resolucion", "numero_resolucion", name="uq_resolucion_tipo_numero"),
    )
    with op.batch_alter_table("resolucion", schema=None) as batch_op:
        batch_op.create_index("ix_resolucion_status_created", ["status", "created_at"], unique=False)

    op.create_table(
        "resolucion_docente",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("resolucion_id", sa.Integer(), nullable=False),
        sa.Column("dni", sa.String(length=12), nullable=False),
        sa.Column("nombres", sa.String(length=120), nullable=False),
        sa.Column("apellidos", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("facultad", sa.String(length=160), nullable=True),
        sa.ForeignKeyConstraint(["resolucion_id"], ["resolucion.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("resolucion_id", "dni", name="uq_resolucion_docente_dni"),
    )
    op.create_table(
        "resolucion_estudiante",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("resolucion_id", sa.Integer(), nullable=False),
        sa.Column("dni", sa.String(length=12), nullable=False),
        sa.Column("codigo", sa.String(length=10), nullable=False),
        sa.Column("nombres", sa.String(length=120), nullable=False),
        sa.Column("apellidos", sa.String(length=120), nullable=False),
        sa.ForeignKeyConstraint(["resolucion_id"], ["resolucion.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("resolucion_id", "dni", name="uq_resolucion_estudiante_dni"),
    )
    op.create_table(
        "archivo_resolucion",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("resolucion_id", sa.Integer(), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_url", sa.String(length=255), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("file_mime_type", sa.String(length=60), nullable=False),
        sa.Column("tipo", sa.String(length=20), nullable=False, server_default="anexo"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["resolucion_id"], ["resolucion.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    for table in ("resolucion_docente", "resolucion_estudiante", "archivo_resolucion"):
        with op.batch_alter_table(table, schema=None) as batch_op:
            batch_op.create_index(batch_op.f(f"ix_{table}_resolucion_id"), ["resolucion_id"], unique=False)


def downgrade():
    for table in ("archivo_resolucion", "resolucion_estudiante", "resolucion_docente"):
        with op.batch_alter_table(table, schema=None) as batch_op:
            batch_op.drop_index(batch_op.f(f"ix_{table}_resolucion_id"))
        op.drop_table(table)

    with op.batch_alter_table("resolucion", schema=None) as batch_op:
        batch_op.drop_index("ix_resolucion_status_created")
    op.drop_table("resolucion")

    with op.batch_alter_table("constancia", schema=None) as batch_op:
        batch_op.drop_index("ix_constancia_status_created")
        batch_op.drop_index(batch_op.f("ix_constancia_dni"))
        batch_op.drop_index(batch_op.f("ix_constancia_student_code"))
    op.drop_table("constancia")

    with op.batch_alter_table("departamento", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_departamento_facultad_id"))
    op.drop_table("departamento")
    op.drop_table("facultad")

    with op.batch_alter_table("audit_log", schema=None) as batch_op:
        batch_op.drop_index("ix_audit_log_entity")
    op.drop_table("audit_log")

    with op.batch_alter_table("user_permission", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_user_permission_user_id"))
    op.drop_table("user_permission")

    with op.batch_alter_table("permission", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_permission_module_id"))
    op.drop_table("permission")

    with op.batch_alter_table("submodule", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_submodule_module_id"))
    op.drop_table("submodule")
    op.drop_table("module")
    op.drop_table("user_account")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for enum in (FINANCIAMIENTO, MODALIDAD, TIPO_RESOLUCION, _document_status(), DOCUMENT_TYPE, USER_ROLE):
            enum.drop(bind, checkfirst=True)
