from __future__ import annotations

from conftest import ScriptedHttpClient

from portal.client.gateway import (
    BUSY_MESSAGE,
    CONSTANCIAS,
    FORBIDDEN_MESSAGE,
    RESOLUCIONES,
    Actor,
    MutationGateway,
    form_fields,
)
from portal.client.http import HttpResponse, UploadFile
from portal.client.notices import NoticeLevel
from portal.client.results import Failure, NotFound, Ok, Skipped
from portal.core.lifecycle import Operation
from portal.core.models import Facultad, PermissionAction, UserRole

PENDING = {"id": 1, "constanciaNumber": "CONST-2024-100", "status": "PENDIENTE"}
APPROVED = {"id": 2, "constanciaNumber": "CONST-2024-101", "status": "APROBADO"}
MODERATOR = Actor(UserRole.MODERATOR, {"constancias.access": frozenset({"CREATE", "READ", "UPDATE", "DELETE"})})


def _gateway(http, actor=MODERATOR, records=(PENDING, APPROVED)):
    gateway = MutationGateway(http, CONSTANCIAS, actor)
    gateway.table.replace_all(records)
    return gateway


def test_constancia_lifecycle_end_to_end(http, login_as):
    session = login_as("operador@unamad.edu.pe").get_json()
    gateway = MutationGateway(http, CONSTANCIAS, Actor.from_session(session))
    assert isinstance(gateway.load(), Ok)
    assert len(gateway.table) == 2

    created = gateway.create(
        {
            "studentCode": "20230001",
            "fullName": "Juan Perez",
            "dni": "12345678",
            "constanciaNumber": "CONST-2024-001",
            "year": 2024,
        },
        files=[UploadFile("constancia.pdf", b"%PDF-1.4", "application/pdf")],
    )

    assert isinstance(created, Ok)
    new_id = created.value["id"]
    assert gateway.table.get(new_id)["status"] == "PENDIENTE"
    assert gateway.notices.latest.message == "Constancia creada exitosamente"

    approved = gateway.approve(new_id)
    assert isinstance(approved, Ok)
    row = gateway.table.get(new_id)
    assert row["status"] == "APROBADO"
    assert row["approvedBy"]["email"] == "operador@unamad.edu.pe"
    assert row["approvedAt"]

    sent = len(http.requests)
    blocked = gateway.update(new_id, {"fullName": "Juan P."})
    assert blocked == Failure("No se pueden editar constancias aprobadas")
    assert len(http.requests) == sent
    assert gateway.notices.latest.level == NoticeLevel.WARNING
    assert not gateway.can(new_id, Operation.EDIT)
    assert not gateway.can(new_id, Operation.DELETE)


def test_server_refusal_keeps_table_and_surfaces_message(http, login_as):
    login_as("operador@unamad.edu.pe")
    # Client believes it may edit approved rows; the API knows better.
    gateway = MutationGateway(http, CONSTANCIAS, Actor(UserRole.SUPER_ADMIN))
    gateway.load()
    approved = next(r for r in gateway.table.records if r["status"] == "APROBADO")

    result = gateway.update(approved["id"], {"fullName": "Cambio"})

    assert isinstance(result, Failure)
    assert result.status == 400
    assert result.message == "No se pueden editar constancias aprobadas"
    assert gateway.table.get(approved["id"])["fullName"] == approved["fullName"]
    assert gateway.notices.latest.level == NoticeLevel.ERROR


def test_transport_error_uses_generic_message(http):
    http.offline = True
    gateway = _gateway(http)

    result = gateway.approve(1)

    assert result == Failure("Error al aprobar la constancia")
    assert gateway.table.get(1)["status"] == "PENDIENTE"
    assert not gateway.is_busy(1)


def test_missing_row_is_not_found_without_request():
    http = ScriptedHttpClient()
    gateway = _gateway(http)
    assert isinstance(gateway.delete(99), NotFound)
    assert http.requests == []


def test_second_call_while_in_flight_is_skipped():
    inner = []

    class ReentrantHttp:
        def request(self, method, path, **kwargs):
            inner.append(gateway.reject(1))
            return HttpResponse(200, {**PENDING, "status": "RECHAZADO"})

    gateway = _gateway(ReentrantHttp())
    outer = gateway.approve(1)

    assert isinstance(outer, Ok)
    assert inner == [Skipped(BUSY_MESSAGE)]
    assert gateway.table.get(1)["status"] == "RECHAZADO"


def test_response_after_close_is_dropped():
    class ClosingHttp:
        def request(self, method, path, **kwargs):
            gateway.close()
            return HttpResponse(200, None)

    gateway = _gateway(ClosingHttp())
    result = gateway.delete(1)

    assert isinstance(result, Ok)
    assert gateway.table.get(1) is not None
    assert gateway.notices.items == []


def test_delete_removes_row_and_reports():
    http = ScriptedHttpClient(HttpResponse(200, {"message": "Constancia eliminada correctamente"}))
    gateway = _gateway(http)

    assert gateway.delete(1) == Ok(1)
    assert gateway.table.get(1) is None
    assert http.requests[0][:2] == ("DELETE", "/api/documents/constancias/1")
    assert gateway.notices.latest.message == "Constancia eliminada exitosamente"


def test_approve_needs_update_permission():
    reader = Actor(UserRole.USER, {"constancias.access": frozenset({"READ"})})
    http = ScriptedHttpClient()
    gateway = _gateway(http, actor=reader)
    assert not gateway.can(1, Operation.APPROVE)
    assert gateway.approve(1) == Failure(FORBIDDEN_MESSAGE, status=403)
    assert http.requests == []


def test_invalid_upload_is_rejected_before_sending():
    http = ScriptedHttpClient()
    gateway = _gateway(http)
    draft = {"fullName": "Juan"}

    result = gateway.create(draft, files=[UploadFile("notas.txt", b"x", "text/plain")], draft=draft)

    assert isinstance(result, Failure)
    assert result.field_errors == {"files.0": result.message}
    assert "notas.txt" in result.message
    assert http.requests == []
    assert draft == {"fullName": "Juan"}


def test_create_with_malformed_body_keeps_table_and_draft():
    http = ScriptedHttpClient(HttpResponse(201, "Created"), HttpResponse(201, None))
    gateway = _gateway(http)
    draft = {"constanciaNumber": "CONST-2024-008"}

    for _ in range(2):
        result = gateway.create(dict(draft), draft=draft)
        assert result == Failure("Error al crear la constancia", status=201)

    assert len(gateway.table) == 2
    assert draft == {"constanciaNumber": "CONST-2024-008"}
    assert gateway.notices.latest.level == NoticeLevel.ERROR
    assert not gateway.is_busy()


def test_load_with_malformed_body_keeps_table():
    http = ScriptedHttpClient(HttpResponse(200, "<html>proxy</html>"))
    gateway = _gateway(http)

    result = gateway.load()

    assert result == Failure("Error al obtener constancias", status=200)
    assert [r["id"] for r in gateway.table.records] == [1, 2]
    assert gateway.notices.latest.message == "Error al obtener constancias"


def test_create_without_file_end_to_end(http, login_as):
    session = login_as("operador@unamad.edu.pe").get_json()
    gateway = MutationGateway(http, CONSTANCIAS, Actor.from_session(session))
    gateway.load()
    draft = {
        "studentCode": "20230001",
        "fullName": "Juan Perez",
        "dni": "12345678",
        "constanciaNumber": "CONST-2024-001",
        "year": 2024,
    }

    created = gateway.create(dict(draft), draft=draft)

    assert isinstance(created, Ok)
    row = gateway.table.get(created.value["id"])
    assert row["status"] == "PENDIENTE"
    assert row["constanciaNumber"] == "CONST-2024-001"
    assert row["fileUrl"] is None
    assert draft == {}
    assert http.requests[-1] == ("POST", "/api/documents/constancias")
    assert gateway.notices.latest.message == "Constancia creada exitosamente"


def test_create_clears_draft_only_on_success():
    created = {"id": 7, "constanciaNumber": "CONST-2024-007", "status": "PENDIENTE"}
    http = ScriptedHttpClient(HttpResponse(400, {"error": "El número de constancia ya existe"}), HttpResponse(201, created))
    gateway = _gateway(http)
    draft = {"constanciaNumber": "CONST-2024-007"}

    first = gateway.create(dict(draft), draft=draft)
    assert first == Failure("El número de constancia ya existe", status=400)
    assert draft

    second = gateway.create(dict(draft), draft=draft)
    assert second == Ok(created)
    assert draft == {}
    assert gateway.table.get(7) == created


def test_update_never_sends_status():
    http = ScriptedHttpClient(HttpResponse(200, {**PENDING, "observation": "ok"}))
    gateway = _gateway(http)
    gateway.update(1, {"status": "APROBADO", "observation": "ok"})
    method, path, sent = http.requests[0]
    assert (method, path) == ("PATCH", "/api/documents/constancias/1")
    assert sent["data"] == {"observation": "ok"}


def test_form_fields_encoding():
    assert form_fields({"esFinanciado": False, "monto": None, "docentes": [{"dni": "1"}], "year": 2024}) == {
        "esFinanciado": "false",
        "docentes": '[{"dni": "1"}]',
        "year": "2024",
    }


def test_resolucion_gateway_uses_put_and_multiple_files(app, http, login_as):
    session = login_as("operador@unamad.edu.pe").get_json()
    with app.app_context():
        facultad = Facultad.query.filter_by(nombre="Facultad de Ingeniería").first()
        facultad_id, departamento_id = facultad.id, facultad.departamentos[0].id
    gateway = MutationGateway(http, RESOLUCIONES, Actor.from_session(session))

    created = gateway.create(
        {
            "tipoResolucion": "APROBACION_INFORME_FINAL",
            "numeroResolucion": "RES-2024-077",
            "fechaResolucion": "2024-07-01",
            "modalidad": "ESTUDIANTES",
            "esFinanciado": False,
            "dniAsesor": "40123456",
            "nombreAsesor": "Rosa Flores",
            "tituloProyecto": "Calidad del agua en Tambopata",
            "facultadId": facultad_id,
            "departamentoId": departamento_id,
            "estudiantes": [{"dni": "72345678", "codigo": "20201234", "nombres": "Ana", "apellidos": "Quispe"}],
        },
        files=[
            UploadFile("resolucion.pdf", b"%PDF-1.4", "application/pdf"),
            UploadFile("foto.jpg", b"\xff\xd8\xff", "image/jpeg"),
        ],
    )
    assert isinstance(created, Ok), created
    record = created.value
    assert len(record["archivos"]) == 2
    assert gateway.notices.latest.message == "Resolución creada exitosamente"

    photo = next(a["id"] for a in record["archivos"] if a["tipo"] == "anexo")
    updated = gateway.update(record["id"], {"tituloProyecto": "Calidad del agua"}, files_to_delete=[photo])

    assert isinstance(updated, Ok)
    assert http.requests[-1] == ("PUT", f"/api/documents/resoluciones/{record['id']}")
    row = gateway.table.get(record["id"])
    assert row["tituloProyecto"] == "Calidad del agua"
    assert [a["tipo"] for a in row["archivos"]] == ["resolucion"]


def test_actor_from_session_merges_grants():
    actor = Actor.from_session(
        {
            "role": "MODERATOR",
            "permissions": [
                {"code": "constancias.access", "actions": ["READ"]},
                {"code": "constancias.access", "actions": ["UPDATE"]},
            ],
        }
    )
    assert actor.permissions["constancias.access"] == frozenset({"READ", "UPDATE"})
    assert actor.can("constancias.access", PermissionAction.UPDATE)
    assert not actor.can("constancias.access", PermissionAction.DELETE)
    assert Actor(UserRole.SUPER_ADMIN).can("roles.access", PermissionAction.DELETE)
