from __future__ import annotations

from enum import Enum

from portal.core.models import DocumentStatus, UserRole


class Operation(str, Enum):
    EDIT = "edit"
    DELETE = "delete"
    APPROVE = "approve"
    REJECT = "reject"


class EntityKind(str, Enum):
    CONSTANCIA = "constancia"
    RESOLUCION = "resolucion"


STATUS_TRANSITIONS: dict[DocumentStatus, set[DocumentStatus]] = {
    DocumentStatus.PENDIENTE: {DocumentStatus.APROBADO, DocumentStatus.RECHAZADO},
    DocumentStatus.APROBADO: set(),
    DocumentStatus.RECHAZADO: set(),
    DocumentStatus.ANULADO: set(),
}

OPERATION_TARGET: dict[Operation, DocumentStatus] = {
    Operation.APPROVE: DocumentStatus.APROBADO,
    Operation.REJECT: DocumentStatus.RECHAZADO,
}

# Kinds whose approved records a SUPER_ADMIN may still delete.
PRIVILEGED_DELETE_KINDS: frozenset[EntityKind] = frozenset({EntityKind.RESOLUCION})

_KIND_LABELS: dict[EntityKind, str] = {
    EntityKind.CONSTANCIA: "constancias",
    EntityKind.RESOLUCION: "resoluciones",
}


def _coerce_status(status: DocumentStatus | str) -> DocumentStatus:
    return status if isinstance(status, DocumentStatus) else DocumentStatus(status)


def _coerce_role(role: UserRole | str | None) -> UserRole | None:
    if role is None or isinstance(role, UserRole):
        return role
    return UserRole(role)


def can_mutate(
    status: DocumentStatus | str,
    role: UserRole | str | None,
    operation: Operation | str,
    kind: EntityKind | str = EntityKind.CONSTANCIA,
    has_update_permission: bool = True,
) -> bool:
    """Decide whether ``role`` may run ``operation`` on a document in ``status``.

    Pure predicate shared by the API services and the client gateway.
    """
    status = _coerce_status(status)
    role = _coerce_role(role)
    operation = Operation(operation)
    kind = EntityKind(kind)

    if status == DocumentStatus.ANULADO:
        return False

    if operation in OPERATION_TARGET:
        target = OPERATION_TARGET[operation]
        return has_update_permission and target in STATUS_TRANSITIONS[status]

    if status != DocumentStatus.APROBADO:
        return True
    if role != UserRole.SUPER_ADMIN:
        return False
    if operation == Operation.EDIT:
        return True
    return kind in PRIVILEGED_DELETE_KINDS


def denial_reason(
    status: DocumentStatus | str,
    operation: Operation | str,
    kind: EntityKind | str = EntityKind.CONSTANCIA,
) -> str:
    status = _coerce_status(status)
    operation = Operation(operation)
    label = _KIND_LABELS[EntityKind(kind)]

    if status == DocumentStatus.ANULADO:
        return f"No se pueden modificar {label} anuladas"
    if operation == Operation.APPROVE:
        return f"Solo se pueden aprobar {label} pendientes"
    if operation == Operation.REJECT:
        return f"Solo se pueden rechazar {label} pendientes"
    if operation == Operation.EDIT:
        return f"No se pueden editar {label} aprobadas"
    return f"No se pueden eliminar {label} aprobadas"


def next_status(current: DocumentStatus | str, operation: Operation | str) -> DocumentStatus:
    current = _coerce_status(current)
    target = OPERATION_TARGET.get(Operation(operation))
    if target is None or target not in STATUS_TRANSITIONS[current]:
        label = target.value if target else Operation(operation).value
        raise ValueError(f"Transicion invalida: {current.value} -> {label}")
    return target
