from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass, fields

from portal.client.http import HttpClient, TransportError
from portal.client.lookup import LookupHelper, LookupKind
from portal.client.notices import NoticeBoard
from portal.client.results import Failure, Ok, Result, Skipped
from portal.core import validation
from portal.core.catalog import CAREERS_BY_NAME
from portal.core.validation import PasswordStrength, password_strength

logger = logging.getLogger(__name__)

__all__ = [
    "REGISTRATION_FIELD_MAP",
    "RegistrationDraft",
    "RegistrationWizard",
    "PasswordStrength",
    "is_step1_valid",
    "is_step2_valid",
    "is_step3_valid",
    "password_strength",
]

REGISTER_PATH = "/api/auth/register"
GENERIC_REGISTER_ERROR = "Error al registrar el usuario"

REGISTRATION_FIELD_MAP = validation.REGISTRATION_FIELDS

# Server message fragment -> field that caused it.
SERVER_ERROR_FIELDS: tuple[tuple[str, str], ...] = (
    ("correo institucional", "email"),
    ("código de estudiante", "student_code"),
    ("documento", "document_number"),
)

STEP_COUNT = 3


@dataclass
class RegistrationDraft:
    student_code: str = ""
    name: str = ""
    document_type: str = "DNI"
    document_number: str = ""
    sex: str = ""
    faculty: str = ""
    career: str = ""
    career_code: str = ""
    enrollment_period: str = ""
    email: str = ""
    personal_email: str = ""
    password: str = ""
    confirm_password: str = ""
    accept_terms: bool = False

    def select_career(self, name: str) -> None:
        career = CAREERS_BY_NAME.get(name)
        self.career = name
        self.career_code = career.code if career else ""
        if career:
            self.faculty = career.faculty

    def as_dict(self) -> dict[str, object]:
        return asdict(self)

    def to_payload(self) -> dict[str, object]:
        data = self.as_dict()
        return {wire: data[attr] for wire, attr in REGISTRATION_FIELD_MAP.items()}


def is_step1_valid(draft: RegistrationDraft) -> bool:
    return validation.is_step1_valid(draft.as_dict())


def is_step2_valid(draft: RegistrationDraft) -> bool:
    return validation.is_step2_valid(draft.as_dict())


def is_step3_valid(draft: RegistrationDraft) -> bool:
    return validation.is_step3_valid(draft.as_dict())


_STEP_ERRORS = {
    1: validation.step1_errors,
    2: validation.step2_errors,
    3: validation.step3_errors,
}

_FIELD_NAMES = frozenset(f.name for f in fields(RegistrationDraft))


def classify_server_error(message: str) -> dict[str, str]:
    lowered = message.lower()
    for fragment, field_name in SERVER_ERROR_FIELDS:
        if fragment in lowered:
            return {field_name: message}
    return {}


class RegistrationWizard:
    """Three-step student registration over a ``RegistrationDraft``.

    Moving forward requires the current step to be valid; submitting
    requires all three.
    """

    def __init__(
        self,
        draft: RegistrationDraft | None = None,
        notices: NoticeBoard | None = None,
        lookup: LookupHelper | None = None,
    ) -> None:
        self.draft = draft or RegistrationDraft()
        self.notices = notices if notices is not None else NoticeBoard()
        self.lookup = lookup
        self.step = 1
        self.field_errors: dict[str, str] = {}
        self._submitting = threading.Lock()

    def errors_for_step(self, step: int | None = None) -> dict[str, str]:
        return _STEP_ERRORS[step or self.step](self.draft.as_dict())

    def is_step_valid(self, step: int | None = None) -> bool:
        return not self.errors_for_step(step)

    def next_step(self) -> bool:
        if self.step >= STEP_COUNT or not self.is_step_valid():
            return False
        self.step += 1
        return True

    def previous_step(self) -> bool:
        if self.step <= 1:
            return False
        self.step -= 1
        return True

    def can_submit(self) -> bool:
        return is_step1_valid(self.draft) and is_step2_valid(self.draft) and is_step3_valid(self.draft)

    @property
    def submitting(self) -> bool:
        return self._submitting.locked()

    @property
    def strength(self) -> PasswordStrength:
        return password_strength(self.draft.password)

    def set_field(self, name: str, value: object) -> None:
        if name not in _FIELD_NAMES:
            raise AttributeError(name)
        if name == "career":
            self.draft.select_career(str(value))
        else:
            setattr(self.draft, name, value)
        self.field_errors.pop(name, None)

        if self.lookup is None:
            return
        if name == "document_number" and self.draft.document_type == "DNI":
            self.lookup.schedule(
                "document_number",
                LookupKind.STUDENT_BY_DNI,
                str(value),
                target=self.draft,
                field_map=REGISTRATION_FIELD_MAP,
            )
        elif name == "student_code":
            self.lookup.schedule(
                "student_code",
                LookupKind.STUDENT_BY_CODE,
                str(value),
                target=self.draft,
                field_map=REGISTRATION_FIELD_MAP,
            )

    def submit(self, http: HttpClient) -> Result:
        if not self._submitting.acquire(blocking=False):
            return Skipped("Registro en curso")
        try:
            if not self.can_submit():
                errors = {
                    **self.errors_for_step(1),
                    **self.errors_for_step(2),
                    **self.errors_for_step(3),
                }
                self.field_errors = errors
                return Failure("Revisa los datos del formulario", field_errors=errors)

            try:
                response = http.request("POST", REGISTER_PATH, json=self.draft.to_payload())
            except TransportError as exc:
                logger.warning("Registration request failed: %s", exc)
                self.notices.error(GENERIC_REGISTER_ERROR)
                return Failure(GENERIC_REGISTER_ERROR)

            if not response.ok:
                message = response.error_message(GENERIC_REGISTER_ERROR)
                self.field_errors = classify_server_error(message)
                self.notices.error(message)
                return Failure(message, status=response.status_code, field_errors=dict(self.field_errors))

            self.field_errors = {}
            body = response.body if isinstance(response.body, dict) else {}
            self.notices.success(str(body.get("message") or "Registro exitoso"))
            if self.lookup is not None:
                self.lookup.close()
            return Ok(body)
        finally:
            self._submitting.release()
