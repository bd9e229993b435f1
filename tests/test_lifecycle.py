from __future__ import annotations

import pytest

from portal.core.lifecycle import (
    EntityKind,
    Operation,
    STATUS_TRANSITIONS,
    can_mutate,
    denial_reason,
    next_status,
)
from portal.core.models import DocumentStatus, UserRole


def test_pending_documents_can_be_approved_or_rejected():
    assert next_status(DocumentStatus.PENDIENTE, Operation.APPROVE) == DocumentStatus.APROBADO
    assert next_status("PENDIENTE", "reject") == DocumentStatus.RECHAZADO


@pytest.mark.parametrize("status", [DocumentStatus.APROBADO, DocumentStatus.RECHAZADO, DocumentStatus.ANULADO])
def test_only_pending_has_outgoing_transitions(status):
    assert STATUS_TRANSITIONS[status] == set()
    with pytest.raises(ValueError, match="Transicion invalida"):
        next_status(status, Operation.APPROVE)


def test_edit_and_delete_are_open_before_approval():
    for status in (DocumentStatus.PENDIENTE, DocumentStatus.RECHAZADO):
        for role in UserRole:
            assert can_mutate(status, role, Operation.EDIT)
            assert can_mutate(status, role, Operation.DELETE)


def test_approved_constancia_is_locked_for_non_super_admins():
    for role in (UserRole.ADMIN, UserRole.MODERATOR, UserRole.USER, None):
        assert not can_mutate(DocumentStatus.APROBADO, role, Operation.EDIT)
        assert not can_mutate(DocumentStatus.APROBADO, role, Operation.DELETE)


def test_super_admin_edits_approved_but_deletes_only_resoluciones():
    assert can_mutate(DocumentStatus.APROBADO, UserRole.SUPER_ADMIN, Operation.EDIT, EntityKind.CONSTANCIA)
    assert not can_mutate(DocumentStatus.APROBADO, UserRole.SUPER_ADMIN, Operation.DELETE, EntityKind.CONSTANCIA)
    assert can_mutate(DocumentStatus.APROBADO, UserRole.SUPER_ADMIN, Operation.DELETE, EntityKind.RESOLUCION)


def test_annulled_documents_refuse_everything():
    for role in UserRole:
        for operation in Operation:
            for kind in EntityKind:
                assert not can_mutate(DocumentStatus.ANULADO, role, operation, kind)


def test_approve_and_reject_need_update_permission_and_pending_status():
    assert can_mutate("PENDIENTE", "MODERATOR", "approve")
    assert not can_mutate("PENDIENTE", "MODERATOR", "approve", has_update_permission=False)
    assert not can_mutate("APROBADO", "SUPER_ADMIN", "approve")
    assert not can_mutate("RECHAZADO", "SUPER_ADMIN", "reject")


def test_denial_reasons_name_the_document_kind():
    assert denial_reason("APROBADO", "edit") == "No se pueden editar constancias aprobadas"
    assert denial_reason("APROBADO", "delete", "resolucion") == "No se pueden eliminar resoluciones aprobadas"
    assert denial_reason("RECHAZADO", "approve") == "Solo se pueden aprobar constancias pendientes"
    assert denial_reason("ANULADO", "edit", "resolucion") == "No se pueden modificar resoluciones anuladas"
