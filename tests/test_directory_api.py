from __future__ import annotations

import pytest
import requests

from portal.directory.client import DirectoryClient, DirectoryError


def test_student_by_dni_maps_directory_fields(client):
    response = client.get("/api/student/by-dni/72345678")

    assert response.status_code == 200
    assert response.get_json() == {
        "studentCode": "20201234",
        "name": "ANA MARIA QUISPE HUAMAN",
        "documentType": "DNI",
        "documentNumber": "72345678",
        "email": "20201234@unamad.edu.pe",
        "personalEmail": "ana@gmail.com",
        "career": "Ingeniería de Sistemas e Informática",
        "faculty": "Facultad de Ingeniería",
        "sex": "",
        "careerCode": "ISI",
        "enrollmentPeriod": "",
    }


def test_student_by_code_fills_academic_fields(client):
    body = client.get("/api/student/by-code/20201234").get_json()
    assert body["name"] == "ANA MARIA QUISPE HUAMAN"
    assert body["sex"] == "F"
    assert body["enrollmentPeriod"] == "2020-1"
    assert body["careerCode"] == "ISI"


def test_lookup_status_codes(client, directory):
    assert client.get("/api/student/by-dni/1234").status_code == 400
    missing = client.get("/api/student/by-dni/11111111")
    assert missing.status_code == 404
    assert missing.get_json()["error"] == "No se encontraron datos para este DNI"

    directory.fail = True
    failed = client.get("/api/student/by-dni/72345678")
    assert failed.status_code == 500
    assert failed.get_json()["error"] == "Error al obtener datos del estudiante"


def test_consult_endpoints_require_login(client, login_as, directory):
    assert client.post("/api/teacher/consult", json={"dni": "40123456"}).status_code == 401

    directory.teachers["40123456"] = {
        "userName": "D0042",
        "dni": "40123456",
        "name": "ROSA",
        "paternalSurname": "FLORES",
        "maternalSurname": "TAPIA",
        "email": "rflores@unamad.edu.pe",
        "academicDepartament": "Ciencias Básicas",
        "facultyName": "EDUCACION",
    }
    login_as("operador@unamad.edu.pe")
    teacher = client.post("/api/teacher/consult", json={"dni": "40123456"}).get_json()
    assert teacher["nombreCompleto"] == "FLORES TAPIA ROSA"
    assert teacher["facultad"] == "Facultad de Educación"

    student = client.post("/api/student/consult", json={"dni": "72345678"}).get_json()
    assert student == {"codigo": "20201234", "dni": "72345678", "nombres": "ANA MARIA", "apellidos": "QUISPE HUAMAN"}

    missing = client.post("/api/student/consult", json={"dni": ""})
    assert missing.status_code == 400
    assert missing.get_json()["error"] == "DNI es requerido"



def test_student_consult_by_code(client, login_as, directory):
    assert client.post("/api/student/consult-by-code", json={"codigo": "20201234"}).status_code == 401
    login_as("operador@unamad.edu.pe")

    body = client.post("/api/student/consult-by-code", json={"codigo": "20201234"}).get_json()

    assert body["dni"] == "72345678"
    assert body["apellidos"] == "QUISPE HUAMAN"
    assert body["nombreCompleto"] == "QUISPE HUAMAN ANA MARIA"
    assert body["emailPersonal"] == "ana@gmail.com"
    assert body["carrera"] == "Ingeniería de Sistemas e Informática"
    assert body["facultad"] == "Facultad de Ingeniería"
    assert body["ultimoPeriodo"] == "2024-2"

    missing = client.post("/api/student/consult-by-code", json={})
    assert missing.status_code == 400
    assert missing.get_json()["error"] == "Código de estudiante es requerido"

    unknown = client.post("/api/student/consult-by-code", json={"codigo": "20209999"})
    assert unknown.status_code == 404
    assert unknown.get_json()["error"] == "Estudiante no encontrado"

    directory.fail = True
    failed = client.post("/api/student/consult-by-code", json={"codigo": "20201234"})
    assert failed.status_code == 500

class _Response:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}")


class _Session:
    def __init__(self, response):
        self.response = response
        self.headers = {}
        self.urls = []

    def get(self, url, timeout):
        self.urls.append(url)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def test_directory_client_sends_token_and_unwraps_lists():
    session = _Session(_Response(200, [{"userName": "20201234"}]))
    client = DirectoryClient("https://directorio.test/api/", token="abc", session=session)

    assert client.student_by_code("20201234") == {"userName": "20201234"}
    assert session.urls == ["https://directorio.test/api/getStudentInfo/20201234"]
    assert session.headers["Authorization"] == "Bearer abc"


def test_directory_client_reads_v2_profile():
    payload = {"infoStudent": {"userName": "20201234"}, "lastAcademicPeriodEnrolled": {"text": "2024-2"}}
    session = _Session(_Response(200, payload))
    client = DirectoryClient("https://directorio.test/api", session=session)

    assert client.student_profile_by_code("20201234") == payload
    assert session.urls == ["https://directorio.test/api/data/student/v2/20201234"]
    assert DirectoryClient("https://d.test", session=_Session(_Response(200, {}))).student_profile_by_code("1") is None


def test_directory_client_error_mapping():
    assert DirectoryClient("https://d.test", session=_Session(_Response(404))).student_by_dni("1") is None
    with pytest.raises(DirectoryError, match="autenticación"):
        DirectoryClient("https://d.test", session=_Session(_Response(401))).student_by_dni("1")
    with pytest.raises(DirectoryError):
        DirectoryClient("https://d.test", session=_Session(_Response(502))).teacher_by_dni("1")
    with pytest.raises(DirectoryError, match="No se pudo conectar"):
        DirectoryClient("https://d.test", session=_Session(requests.ConnectionError("down"))).student_by_dni("1")
