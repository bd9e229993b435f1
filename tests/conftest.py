from __future__ import annotations

import io
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from portal import create_app
from portal.client.http import HttpResponse, TransportError
from portal.core.config import Config
from portal.core.extensions import db
from portal.core.models import seed_demo_data
from portal.directory.client import DirectoryError

PASSWORDS = {
    "superadmin@unamad.edu.pe": "SuperAdmin123",
    "admin@unamad.edu.pe": "Admin123",
    "operador@unamad.edu.pe": "Operador123",
    "usuario@unamad.edu.pe": "Usuario123",
}


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SECRET_KEY = "test-secret"
    LOG_LEVEL = "WARNING"


class FakeDirectory:
    """Stands in for the external directory inside the app."""

    def __init__(self) -> None:
        self.students_by_dni: dict[str, dict] = {
            "72345678": {
                "userName": "20201234",
                "name": "ANA MARIA",
                "paternalSurname": "QUISPE",
                "maternalSurname": "HUAMAN",
                "dni": "72345678",
                "email": "20201234@unamad.edu.pe",
                "personalEmail": "ana@gmail.com",
                "carrerName": "INGENIERÍA DE SISTEMAS E INFORMÁTICA",
                "facultyName": "INGENIERIA",
            }
        }
        self.students_by_code: dict[str, dict] = {
            "20201234": {
                "userName": "20201234",
                "fullName": "QUISPE HUAMAN, ANA MARIA",
                "sex": 0,
                "carrerName": "INGENIERÍA DE SISTEMAS E INFORMÁTICA",
                "facultyName": "INGENIERIA",
                "carrerCode": "ISI",
                "admisionDate": "2020-1",
            }
        }
        self.teachers: dict[str, dict] = {}
        self.fail = False
        self.calls: list[tuple[str, str]] = []

    def _check(self, kind: str, key: str) -> None:
        self.calls.append((kind, key))
        if self.fail:
            raise DirectoryError("No se pudo conectar con el servicio de consulta")

    def student_by_dni(self, dni: str):
        self._check("student_by_dni", dni)
        return self.students_by_dni.get(dni)

    def student_by_code(self, code: str):
        self._check("student_by_code", code)
        return self.students_by_code.get(code)

    def student_profile_by_code(self, code: str):
        self._check("student_profile_by_code", code)
        dni = next((d for d, s in self.students_by_dni.items() if s.get("userName") == code), None)
        if dni is None:
            return None
        return {"infoStudent": self.students_by_dni[dni], "lastAcademicPeriodEnrolled": {"text": "2024-2"}}

    def teacher_by_dni(self, dni: str):
        self._check("teacher_by_dni", dni)
        return self.teachers.get(dni)

    def close(self) -> None:
        pass


class FlaskTestHttpClient:
    """``HttpClient`` over the Flask test client, so the front-end layer hits the real API."""

    def __init__(self, client) -> None:
        self.client = client
        self.requests: list[tuple[str, str]] = []
        self.offline = False

    def request(self, method, path, *, json=None, data=None, files=None):
        self.requests.append((method.upper(), path))
        if self.offline:
            raise TransportError("connection refused")
        kwargs: dict[str, object] = {}
        if json is not None:
            kwargs["json"] = json
        if data is not None or files:
            form: dict[str, object] = dict(data or {})
            for field, upload in files or []:
                form.setdefault(field, []).append((io.BytesIO(upload.content), upload.name, upload.mime_type))
            kwargs["data"] = form
            kwargs["content_type"] = "multipart/form-data"
        response = self.client.open(path, method=method.upper(), **kwargs)
        body = response.get_json(silent=True) if response.is_json else (response.get_data(as_text=True) or None)
        return HttpResponse(response.status_code, body)


class ScriptedHttpClient:
    """Answers from a queue of canned responses and records every request."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.requests: list[tuple[str, str, dict]] = []

    def request(self, method, path, *, json=None, data=None, files=None):
        self.requests.append((method.upper(), path, {"json": json, "data": data, "files": files}))
        if not self.responses:
            raise AssertionError(f"Unexpected request {method} {path}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class ManualTimer:
    def __init__(self, delay, callback) -> None:
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """Timer factory whose timers only fire when the test says so."""

    def __init__(self) -> None:
        self.timers: list[ManualTimer] = []

    def __call__(self, delay, callback) -> ManualTimer:
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def live(self) -> list[ManualTimer]:
        return [t for t in self.timers if t.started and not t.cancelled]

    def fire_all(self) -> None:
        for timer in list(self.timers):
            if timer.started and not timer.cancelled:
                timer.callback()


@pytest.fixture
def app(tmp_path):
    app = create_app(TestConfig)
    app.config["UPLOAD_FOLDER"] = str(tmp_path / "uploads")
    app.extensions["directory"] = FakeDirectory()
    with app.app_context():
        db.create_all()
        seed_demo_data(db.session)
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def directory(app):
    return app.extensions["directory"]


@pytest.fixture
def login_as(client):
    def _login(email: str, password: str | None = None):
        return client.post(
            "/api/auth/login",
            json={"email": email, "password": password or PASSWORDS[email]},
        )

    return _login


@pytest.fixture
def http(client):
    return FlaskTestHttpClient(client)


@pytest.fixture
def clock():
    return ManualClock()
