from __future__ import annotations

import json
import logging
import threading
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from portal.client.http import HttpClient, HttpResponse, TransportError, UploadFile
from portal.client.notices import NoticeBoard
from portal.client.results import Failure, NotFound, Ok, Result, Skipped
from portal.client.table import CONSTANCIA_SEARCH_COLUMNS, RESOLUCION_SEARCH_COLUMNS, DocumentTable
from portal.core.lifecycle import EntityKind, Operation, can_mutate, denial_reason
from portal.core.models import PermissionAction, UserRole
from portal.core.validation import validate_upload

logger = logging.getLogger(__name__)

BUSY_MESSAGE = "Operación en curso"
FORBIDDEN_MESSAGE = "No tienes permisos para realizar esta acción"
CREATE_SLOT = "__create__"


@dataclass(frozen=True)
class ResourceSpec:
    kind: EntityKind
    collection_path: str
    update_method: str
    file_field: str
    multiple_files: bool
    permission_code: str
    noun: str
    plural: str
    article: str
    search_columns: tuple[str, ...]

    def item_path(self, entity_id: object) -> str:
        return f"{self.collection_path}/{entity_id}"

    def failure_message(self, verb: str) -> str:
        return f"Error al {verb} {self.article} {self.noun.lower()}"

    def success_message(self, participle: str) -> str:
        suffix = "a" if self.article == "la" else "o"
        return f"{self.noun} {participle}{suffix} exitosamente"


CONSTANCIAS = ResourceSpec(
    kind=EntityKind.CONSTANCIA,
    collection_path="/api/documents/constancias",
    update_method="PATCH",
    file_field="file",
    multiple_files=False,
    permission_code="constancias.access",
    noun="Constancia",
    plural="constancias",
    article="la",
    search_columns=CONSTANCIA_SEARCH_COLUMNS,
)

RESOLUCIONES = ResourceSpec(
    kind=EntityKind.RESOLUCION,
    collection_path="/api/documents/resoluciones",
    update_method="PUT",
    file_field="files",
    multiple_files=True,
    permission_code="resoluciones.access",
    noun="Resolución",
    plural="resoluciones",
    article="la",
    search_columns=RESOLUCION_SEARCH_COLUMNS,
)

_VERBS: dict[Operation | None, tuple[str, str]] = {
    None: ("crear", "cread"),
    Operation.EDIT: ("actualizar", "actualizad"),
    Operation.DELETE: ("eliminar", "eliminad"),
    Operation.APPROVE: ("aprobar", "aprobad"),
    Operation.REJECT: ("rechazar", "rechazad"),
}


@dataclass(frozen=True)
class Actor:
    role: UserRole
    permissions: Mapping[str, frozenset[str]] = field(default_factory=dict)

    @classmethod
    def from_session(cls, payload: Mapping[str, Any]) -> Actor:
        """Build from the body of ``GET /api/auth/me`` or a login response."""
        grants: dict[str, set[str]] = {}
        for item in payload.get("permissions") or []:
            grants.setdefault(item["code"], set()).update(item.get("actions") or [])
        return cls(
            role=UserRole(payload["role"]),
            permissions={code: frozenset(actions) for code, actions in grants.items()},
        )

    def can(self, code: str, action: PermissionAction) -> bool:
        if self.role == UserRole.SUPER_ADMIN:
            return True
        return action.value in self.permissions.get(code, frozenset())


def _form_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return str(value)


def form_fields(fields: Mapping[str, object]) -> dict[str, str]:
    return {key: _form_value(value) for key, value in fields.items() if value is not None}


class MutationGateway:
    """Issues document mutations and reconciles the table afterwards.

    The table only changes once the API answered 2xx. Each entity has one
    in-flight slot (creates share a single slot); a second call while the
    slot is taken is refused without touching the network.
    """

    def __init__(
        self,
        http: HttpClient,
        resource: ResourceSpec,
        actor: Actor,
        table: DocumentTable | None = None,
        notices: NoticeBoard | None = None,
    ) -> None:
        self.http = http
        self.resource = resource
        self.actor = actor
        self.table = table if table is not None else DocumentTable(resource.search_columns)
        self.notices = notices if notices is not None else NoticeBoard()
        self._in_flight: set[object] = set()
        self._lock = threading.Lock()
        self._closed = False

    # State

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    def is_busy(self, entity_id: object | None = None) -> bool:
        key = CREATE_SLOT if entity_id is None else entity_id
        with self._lock:
            return key in self._in_flight

    def can(self, entity_id: object, operation: Operation) -> bool:
        """Whether the control for ``operation`` on this row should be enabled."""
        record = self.table.get(entity_id)
        if record is None or self.is_busy(entity_id):
            return False
        return self._gate_allows(record, operation)

    def _gate_allows(self, record: Mapping[str, Any], operation: Operation) -> bool:
        return can_mutate(
            record.get("status"),
            self.actor.role,
            operation,
            self.resource.kind,
            has_update_permission=self.actor.can(self.resource.permission_code, PermissionAction.UPDATE),
        )

    def _claim(self, key: object) -> bool:
        with self._lock:
            if key in self._in_flight:
                return False
            self._in_flight.add(key)
            return True

    def _release(self, key: object) -> None:
        with self._lock:
            self._in_flight.discard(key)

    # Plumbing

    def _send(self, method: str, path: str, generic: str, **kwargs) -> HttpResponse | Failure:
        try:
            response = self.http.request(method, path, **kwargs)
        except TransportError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            return Failure(generic)
        if not response.ok:
            message = response.error_message(generic)
            logger.debug("%s %s answered %s: %s", method, path, response.status_code, message)
            return Failure(message, status=response.status_code)
        return response

    def _report(self, result: Result, success: str | None = None) -> Result:
        if self._closed:
            return result
        if isinstance(result, Failure):
            self.notices.error(result.message)
        elif isinstance(result, NotFound):
            self.notices.error(result.message)
        elif isinstance(result, Ok) and success:
            self.notices.success(success)
        return result

    def _check_files(self, files: Sequence[UploadFile]) -> Failure | None:
        if len(files) > 1 and not self.resource.multiple_files:
            return Failure("Solo se permite adjuntar un archivo")
        errors = validate_upload(files)
        if errors:
            for message in errors.values():
                self.notices.error(message)
            return Failure(next(iter(errors.values())), field_errors=errors)
        return None

    def _multipart(self, fields: Mapping[str, object], files: Sequence[UploadFile]) -> dict[str, Any]:
        return {
            "data": form_fields(fields),
            "files": [(self.resource.file_field, f) for f in files] or None,
        }

    def _locked_record(self, entity_id: object, operation: Operation) -> Mapping[str, Any] | Result:
        record = self.table.get(entity_id)
        if record is None:
            return NotFound(f"{self.resource.noun} no encontrada en la tabla")
        if operation in (Operation.APPROVE, Operation.REJECT) and not self.actor.can(
            self.resource.permission_code, PermissionAction.UPDATE
        ):
            return Failure(FORBIDDEN_MESSAGE, status=403)
        if not self._gate_allows(record, operation):
            return Failure(denial_reason(record.get("status"), operation, self.resource.kind))
        return record

    # Operations

    def load(self) -> Result:
        generic = f"Error al obtener {self.resource.plural}"
        outcome = self._send("GET", self.resource.collection_path, generic)
        if isinstance(outcome, Failure):
            return self._report(outcome)
        records = outcome.body
        if not isinstance(records, list):
            logger.warning("GET %s answered a non-list body", self.resource.collection_path)
            return self._report(Failure(generic, status=outcome.status_code))
        if not self._closed:
            self.table.replace_all(records)
        return Ok(records)

    def create(
        self,
        fields: Mapping[str, object],
        files: Sequence[UploadFile] = (),
        draft: MutableMapping[str, object] | None = None,
    ) -> Result:
        if not self._claim(CREATE_SLOT):
            return Skipped(BUSY_MESSAGE)
        try:
            verb, participle = _VERBS[None]
            generic = self.resource.failure_message(verb)
            rejected = self._check_files(files)
            if rejected:
                return rejected
            outcome = self._send(
                "POST",
                self.resource.collection_path,
                generic,
                **self._multipart(fields, files),
            )
            if isinstance(outcome, Failure):
                return self._report(outcome)
            record = outcome.body
            if not isinstance(record, dict):
                logger.warning("POST %s answered a non-object body", self.resource.collection_path)
                return self._report(Failure(generic, status=outcome.status_code))
            if not self._closed:
                self.table.append(record)
                if draft is not None:
                    draft.clear()
            return self._report(Ok(record), self.resource.success_message(participle))
        finally:
            self._release(CREATE_SLOT)

    def update(
        self,
        entity_id: object,
        fields: Mapping[str, object],
        files: Sequence[UploadFile] = (),
        files_to_delete: Sequence[object] = (),
    ) -> Result:
        return self._guarded(entity_id, Operation.EDIT, fields=fields, files=files, files_to_delete=files_to_delete)

    def delete(self, entity_id: object) -> Result:
        return self._guarded(entity_id, Operation.DELETE)

    def approve(self, entity_id: object) -> Result:
        return self._guarded(entity_id, Operation.APPROVE)

    def reject(self, entity_id: object) -> Result:
        return self._guarded(entity_id, Operation.REJECT)

    def _guarded(self, entity_id: object, operation: Operation, **kwargs) -> Result:
        if not self._claim(entity_id):
            return Skipped(BUSY_MESSAGE)
        try:
            record = self._locked_record(entity_id, operation)
            if isinstance(record, (Failure, NotFound)):
                if not self._closed:
                    self.notices.warning(record.message)
                return record
            return self._mutate(entity_id, operation, **kwargs)
        finally:
            self._release(entity_id)

    def _mutate(
        self,
        entity_id: object,
        operation: Operation,
        fields: Mapping[str, object] | None = None,
        files: Sequence[UploadFile] = (),
        files_to_delete: Sequence[object] = (),
    ) -> Result:
        verb, participle = _VERBS[operation]
        generic = self.resource.failure_message(verb)
        path = self.resource.item_path(entity_id)

        if operation == Operation.EDIT:
            rejected = self._check_files(files)
            if rejected:
                return rejected
            payload = dict(fields or {})
            payload.pop("status", None)
            if files_to_delete:
                payload["filesToDelete"] = list(files_to_delete)
            outcome = self._send(self.resource.update_method, path, generic, **self._multipart(payload, files))
        elif operation == Operation.DELETE:
            outcome = self._send("DELETE", path, generic)
        else:
            outcome = self._send("POST", f"{path}/{operation.value}", generic)

        if isinstance(outcome, Failure):
            return self._report(outcome)
        if not self._closed:
            if operation == Operation.DELETE:
                self.table.remove(entity_id)
            elif isinstance(outcome.body, dict):
                self.table.replace(outcome.body)
        value = entity_id if operation == Operation.DELETE else outcome.body
        return self._report(Ok(value), self.resource.success_message(participle))
