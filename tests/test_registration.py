from __future__ import annotations

import pytest
from conftest import ScriptedHttpClient

from portal.client.http import TransportError
from portal.client.lookup import LookupHelper
from portal.client.notices import NoticeLevel
from portal.client.registration import (
    RegistrationDraft,
    RegistrationWizard,
    classify_server_error,
    is_step1_valid,
    is_step2_valid,
    is_step3_valid,
    password_strength,
)
from portal.client.results import Failure, Ok, Skipped
from portal.core.models import User


def _complete_draft(**overrides) -> RegistrationDraft:
    draft = RegistrationDraft(
        student_code="20201234",
        name="Ana Maria Quispe Huaman",
        document_number="72345678",
        sex="F",
        enrollment_period="2020-1",
        email="20201234@unamad.edu.pe",
        personal_email="ana@gmail.com",
        password="Secreta123",
        confirm_password="Secreta123",
        accept_terms=True,
    )
    draft.select_career("Ingeniería de Sistemas e Informática")
    for key, value in overrides.items():
        setattr(draft, key, value)
    return draft


def test_steps_gate_navigation():
    wizard = RegistrationWizard()
    assert not wizard.next_step()
    assert wizard.step == 1
    assert set(wizard.errors_for_step()) == {"student_code", "name", "document_number", "sex"}

    wizard.draft = _complete_draft()
    assert wizard.next_step()
    assert wizard.next_step()
    assert wizard.step == 3
    assert not wizard.next_step()
    assert wizard.previous_step()
    assert wizard.step == 2


def test_step_predicates():
    draft = _complete_draft()
    assert is_step1_valid(draft) and is_step2_valid(draft) and is_step3_valid(draft)
    assert not is_step1_valid(_complete_draft(document_type="CE", document_number="12"))
    assert not is_step2_valid(_complete_draft(enrollment_period=""))
    assert not is_step3_valid(_complete_draft(confirm_password="Otra1234"))
    assert not is_step3_valid(_complete_draft(email="ana@gmail.com"))


def test_select_career_sets_code_and_faculty():
    draft = RegistrationDraft()
    draft.select_career("Ingeniería de Sistemas e Informática")
    assert draft.career_code == "ISI"
    assert draft.faculty == "Facultad de Ingeniería"

    draft.select_career("Carrera inventada")
    assert draft.career_code == ""
    assert draft.faculty == "Facultad de Ingeniería"


def test_payload_uses_wire_names():
    payload = _complete_draft().to_payload()
    assert payload["studentCode"] == "20201234"
    assert payload["confirmPassword"] == "Secreta123"
    assert payload["acceptTerms"] is True
    assert "student_code" not in payload


def test_password_strength_labels():
    assert password_strength("").label == "Muy débil"
    assert password_strength("abc").label == "Débil"
    assert password_strength("Secreta123").label == "Muy fuerte"
    wizard = RegistrationWizard(_complete_draft())
    assert wizard.strength.score == 5


def test_set_field_rejects_unknown_names():
    wizard = RegistrationWizard()
    with pytest.raises(AttributeError):
        wizard.set_field("favorite_color", "verde")


def test_invalid_submit_sends_nothing():
    http = ScriptedHttpClient()
    wizard = RegistrationWizard(_complete_draft(accept_terms=False, personal_email=""))

    result = wizard.submit(http)

    assert isinstance(result, Failure)
    assert set(result.field_errors) == {"accept_terms", "personal_email"}
    assert wizard.field_errors == result.field_errors
    assert http.requests == []


def test_submit_registers_against_api(app, http):
    wizard = RegistrationWizard(_complete_draft())

    result = wizard.submit(http)

    assert isinstance(result, Ok)
    assert result.value["user"]["email"] == "20201234@unamad.edu.pe"
    assert wizard.notices.latest.message == "Usuario creado exitosamente"
    assert User.query.filter_by(email="20201234@unamad.edu.pe").count() == 1


def test_duplicate_is_attributed_to_its_field(client, http):
    assert client.post("/api/auth/register", json=_complete_draft().to_payload()).status_code == 201
    wizard = RegistrationWizard(_complete_draft(student_code="20209999", document_number="79999999"))

    result = wizard.submit(http)

    assert result.status == 400
    assert result.field_errors == {"email": "El correo institucional ya está registrado"}
    assert wizard.notices.latest.level == NoticeLevel.ERROR

    wizard.set_field("email", "otro@unamad.edu.pe")
    assert wizard.field_errors == {}


def test_transport_error_uses_generic_message():
    wizard = RegistrationWizard(_complete_draft())
    result = wizard.submit(ScriptedHttpClient(TransportError("down")))
    assert result == Failure("Error al registrar el usuario")


def test_second_submit_while_pending_is_skipped():
    nested = []
    wizard = RegistrationWizard(_complete_draft())

    class ReentrantHttp:
        def request(self, method, path, **kwargs):
            nested.append(wizard.submit(self))
            raise TransportError("down")

    wizard.submit(ReentrantHttp())
    assert nested == [Skipped("Registro en curso")]
    assert not wizard.submitting


def test_classify_server_error():
    assert classify_server_error("El número de documento ya está registrado") == {
        "document_number": "El número de documento ya está registrado"
    }
    assert classify_server_error("Error interno del servidor") == {}


def test_typing_a_dni_autofills_the_draft(http, clock):
    lookup = LookupHelper(http, timer_factory=clock)
    wizard = RegistrationWizard(lookup=lookup)
    wizard.set_field("name", "Ana")

    wizard.set_field("document_number", "7234567")
    assert clock.live == []
    wizard.set_field("document_number", "72345678")
    assert lookup.is_pending("document_number")

    clock.fire_all()

    draft = wizard.draft
    assert draft.student_code == "20201234"
    assert draft.name == "Ana"
    assert draft.career_code == "ISI"
    assert draft.faculty == "Facultad de Ingeniería"
    assert draft.sex == "F"
    assert draft.enrollment_period == "2020-1"
    assert draft.password == ""
    assert wizard.is_step_valid(1)
    assert wizard.is_step_valid(2)

    draft.password = draft.confirm_password = "Secreta123"
    draft.accept_terms = True
    assert isinstance(wizard.submit(http), Ok)
    assert lookup.closed
