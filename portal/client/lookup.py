from __future__ import annotations

import logging
import re
import threading
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from portal.client.http import HttpClient, TransportError
from portal.client.notices import NoticeBoard
from portal.client.results import Failure, NotFound, Ok, Result, Skipped
from portal.client.timers import Debouncer, TimerFactory
from portal.core.validation import DNI_RE, STUDENT_CODE_RE

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 0.5
SECRET_FIELDS = frozenset({"password", "confirm_password", "confirmPassword"})


class LookupKind(str, Enum):
    STUDENT_BY_DNI = "student_by_dni"
    STUDENT_BY_CODE = "student_by_code"
    STUDENT_CONSULT = "student_consult"
    TEACHER_CONSULT = "teacher_consult"


@dataclass(frozen=True)
class LookupSpec:
    method: str
    path: str
    pattern: re.Pattern[str]
    identifier_field: str
    error_message: str
    success_message: str
    follow_up: tuple[str, LookupKind] | None = None

    def accepts(self, identifier: str) -> bool:
        return bool(self.pattern.fullmatch(identifier))

    def request_kwargs(self, identifier: str) -> tuple[str, dict[str, Any]]:
        if self.method == "GET":
            return self.path.format(identifier=identifier), {}
        return self.path, {"json": {"dni": identifier}}


LOOKUP_SPECS: dict[LookupKind, LookupSpec] = {
    LookupKind.STUDENT_BY_DNI: LookupSpec(
        method="GET",
        path="/api/student/by-dni/{identifier}",
        pattern=DNI_RE,
        identifier_field="documentNumber",
        error_message="Error al obtener datos del estudiante",
        success_message="Datos del estudiante cargados",
        follow_up=("studentCode", LookupKind.STUDENT_BY_CODE),
    ),
    LookupKind.STUDENT_BY_CODE: LookupSpec(
        method="GET",
        path="/api/student/by-code/{identifier}",
        pattern=STUDENT_CODE_RE,
        identifier_field="studentCode",
        error_message="Error al obtener datos del estudiante",
        success_message="Datos del estudiante cargados",
    ),
    LookupKind.STUDENT_CONSULT: LookupSpec(
        method="POST",
        path="/api/student/consult",
        pattern=DNI_RE,
        identifier_field="dni",
        error_message="Error al consultar la información del estudiante",
        success_message="Datos del estudiante cargados",
    ),
    LookupKind.TEACHER_CONSULT: LookupSpec(
        method="POST",
        path="/api/teacher/consult",
        pattern=DNI_RE,
        identifier_field="dni",
        error_message="Error al consultar la información del docente",
        success_message="Datos del docente cargados",
    ),
}


def _is_empty(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def merge_into_draft(
    draft: MutableMapping[str, Any] | object,
    fetched: Mapping[str, Any],
    identifier_field: str,
    field_map: Mapping[str, str] | None = None,
) -> list[str]:
    """Copy fetched values into ``draft`` without clobbering user input.

    Only empty draft fields are filled, except the identifier which is always
    written. Secret fields are never written. With ``field_map`` (fetched key
    to draft key) only mapped keys are copied. ``draft`` may be a mapping or
    an object with attributes; objects only receive attributes they already
    have. Returns the draft keys that changed.
    """
    is_mapping = isinstance(draft, MutableMapping)
    written: list[str] = []
    for key, value in fetched.items():
        if field_map is not None:
            if key not in field_map:
                continue
            target = field_map[key]
        else:
            target = key
        if key in SECRET_FIELDS or target in SECRET_FIELDS or _is_empty(value):
            continue
        if is_mapping:
            current = draft.get(target)
        elif hasattr(draft, target):
            current = getattr(draft, target)
        else:
            continue
        if key != identifier_field and not _is_empty(current):
            continue
        if current == value:
            continue
        if is_mapping:
            draft[target] = value
        else:
            setattr(draft, target, value)
        written.append(target)
    return written


class LookupCache:
    """Last identifier searched per field key."""

    def __init__(self) -> None:
        self._last: dict[str, str] = {}
        self._lock = threading.Lock()

    def matches(self, field_key: str, identifier: str) -> bool:
        with self._lock:
            return self._last.get(field_key) == identifier

    def remember(self, field_key: str, identifier: str) -> bool:
        """Store ``identifier``; False when it was already the last one."""
        with self._lock:
            if self._last.get(field_key) == identifier:
                return False
            self._last[field_key] = identifier
            return True

    def forget(self, field_key: str) -> None:
        with self._lock:
            self._last.pop(field_key, None)

    def clear(self) -> None:
        with self._lock:
            self._last.clear()


class LookupHelper:
    """Debounced identifier lookups that autofill a draft.

    Results never raise: every call ends in ``Ok``, ``NotFound``, ``Failure``
    or ``Skipped`` and the user sees a notice. Once closed, pending timers are
    cancelled and late responses are dropped.
    """

    def __init__(
        self,
        http: HttpClient,
        notices: NoticeBoard | None = None,
        draft: MutableMapping[str, Any] | object | None = None,
        delay: float = DEFAULT_DELAY,
        timer_factory: TimerFactory | None = None,
        field_map: Mapping[str, str] | None = None,
    ) -> None:
        self.http = http
        self.notices = notices if notices is not None else NoticeBoard()
        self.draft = draft
        self.field_map = field_map
        self.cache = LookupCache()
        self._debouncer = Debouncer(delay, timer_factory)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True
        self._debouncer.close()

    def __enter__(self) -> LookupHelper:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def is_pending(self, field_key: str) -> bool:
        return self._debouncer.is_pending(field_key)

    def schedule(
        self,
        field_key: str,
        kind: LookupKind | str,
        identifier: str | None,
        target: MutableMapping[str, Any] | object | None = None,
        field_map: Mapping[str, str] | None = None,
    ) -> bool:
        """Start (or restart) the debounce timer for ``field_key``.

        Incomplete identifiers cancel any pending lookup for the key.
        """
        spec = LOOKUP_SPECS[LookupKind(kind)]
        identifier = (identifier or "").strip()
        if self._closed:
            return False
        if not spec.accepts(identifier):
            self._debouncer.cancel(field_key)
            return False
        return self._debouncer.schedule(field_key, self.lookup, field_key, kind, identifier, target, field_map)

    def lookup(
        self,
        field_key: str,
        kind: LookupKind | str,
        identifier: str | None,
        target: MutableMapping[str, Any] | object | None = None,
        field_map: Mapping[str, str] | None = None,
    ) -> Result:
        return self._lookup(field_key, LookupKind(kind), (identifier or "").strip(), target, field_map, chained=False)

    def _lookup(
        self,
        field_key: str,
        kind: LookupKind,
        identifier: str,
        target: MutableMapping[str, Any] | object | None,
        field_map: Mapping[str, str] | None,
        chained: bool,
    ) -> Result:
        spec = LOOKUP_SPECS[kind]
        if self._closed:
            return Skipped("Consulta cancelada")
        if not spec.accepts(identifier):
            return Skipped("Identificador incompleto")
        if not self.cache.remember(field_key, identifier):
            logger.debug("Lookup %s for %s suppressed, same identifier", kind.value, field_key)
            return Skipped("Consulta repetida")

        path, kwargs = spec.request_kwargs(identifier)
        try:
            response = self.http.request(spec.method, path, **kwargs)
        except TransportError as exc:
            logger.warning("Lookup %s failed: %s", kind.value, exc)
            self.cache.forget(field_key)
            result: Result = Failure(spec.error_message)
        else:
            if response.status_code == 404:
                result = NotFound(response.error_message(NotFound().message))
            elif not response.ok:
                self.cache.forget(field_key)
                result = Failure(response.error_message(spec.error_message), status=response.status_code)
            elif isinstance(response.body, dict):
                result = Ok(response.body)
            else:
                self.cache.forget(field_key)
                result = Failure(spec.error_message, status=response.status_code)

        if self._closed:
            logger.debug("Dropping late %s result for %s", kind.value, field_key)
            return result

        if not isinstance(result, Ok):
            if chained:
                logger.debug("Follow-up lookup %s ended with %s", kind.value, type(result).__name__)
            elif isinstance(result, NotFound):
                self.notices.info(result.message)
            else:
                self.notices.error(result.message)
            return result

        draft = target if target is not None else self.draft
        mapping = field_map if field_map is not None else self.field_map
        if draft is not None:
            merge_into_draft(draft, result.value, spec.identifier_field, mapping)
        if not chained:
            self.notices.success(spec.success_message)
            self._follow_up(field_key, spec, result.value, draft, mapping)
        return result

    def _follow_up(
        self,
        field_key: str,
        spec: LookupSpec,
        fetched: Mapping[str, Any],
        draft: MutableMapping[str, Any] | object | None,
        field_map: Mapping[str, str] | None,
    ) -> None:
        if spec.follow_up is None:
            return
        source_field, next_kind = spec.follow_up
        secondary = str(fetched.get(source_field) or "").strip()
        if not secondary or not LOOKUP_SPECS[next_kind].accepts(secondary):
            return
        self._lookup(f"{field_key}:{next_kind.value}", next_kind, secondary, draft, field_map, chained=True)
