from __future__ import annotations

from portal.core.extensions import db
from portal.core.models import AuditLog, Module, Permission, User, UserPermission, UserRole


def _user_id(email: str) -> int:
    return User.query.filter_by(email=email).first().id


def _permission_ids(*codes: str) -> list[int]:
    return [Permission.query.filter_by(code=code).first().id for code in codes]


def test_admin_lists_and_filters_users(client, login_as):
    login_as("admin@unamad.edu.pe")
    response = client.get("/api/users?role=MODERATOR")
    assert response.status_code == 200
    assert [u["email"] for u in response.get_json()] == ["operador@unamad.edu.pe"]

    search = client.get("/api/users?search=super")
    assert [u["email"] for u in search.get_json()] == ["superadmin@unamad.edu.pe"]


def test_create_user_with_permissions(app, client, login_as):
    login_as("admin@unamad.edu.pe")
    with app.app_context():
        permission_ids = _permission_ids("dashboard.view", "constancias.access")

    response = client.post(
        "/api/users",
        json={
            "email": "Nuevo@unamad.edu.pe",
            "name": "Nuevo Operador",
            "password": "clave1",
            "role": "MODERATOR",
            "permissions": permission_ids,
        },
    )

    assert response.status_code == 201
    user = response.get_json()["user"]
    assert user["email"] == "nuevo@unamad.edu.pe"
    assert sorted(p["code"] for p in user["permissions"]) == ["constancias.access", "dashboard.view"]

    duplicate = client.post(
        "/api/users",
        json={"email": "nuevo@unamad.edu.pe", "name": "Otro", "password": "clave1"},
    )
    assert duplicate.status_code == 400
    assert duplicate.get_json()["error"] == "El email ya está registrado"


def test_create_user_validations(client, login_as):
    login_as("admin@unamad.edu.pe")
    short = client.post("/api/users", json={"email": "a@unamad.edu.pe", "name": "A", "password": "123"})
    assert short.get_json()["error"] == "La contraseña debe tener al menos 6 caracteres"

    unknown = client.post(
        "/api/users",
        json={"email": "b@unamad.edu.pe", "name": "B", "password": "123456", "permissions": [9999]},
    )
    assert unknown.status_code == 400
    assert unknown.get_json()["error"] == "Algunos permisos no existen"


def test_only_super_admin_grants_super_admin_role(client, login_as):
    login_as("admin@unamad.edu.pe")
    response = client.post(
        "/api/users",
        json={"email": "jefe@unamad.edu.pe", "name": "Jefe", "password": "123456", "role": "SUPER_ADMIN"},
    )
    assert response.status_code == 403


def test_update_user_replaces_permissions(app, client, login_as):
    login_as("admin@unamad.edu.pe")
    with app.app_context():
        operador = _user_id("operador@unamad.edu.pe")
        new_grants = _permission_ids("dashboard.view", "users.access")

    response = client.patch(f"/api/users/{operador}", json={"name": "Operadora", "permissions": new_grants})

    assert response.status_code == 200
    user = response.get_json()["user"]
    assert user["name"] == "Operadora"
    assert sorted(p["code"] for p in user["permissions"]) == ["dashboard.view", "users.access"]


def test_delete_rules(app, client, login_as):
    login_as("superadmin@unamad.edu.pe")
    with app.app_context():
        me = _user_id("superadmin@unamad.edu.pe")
        operador = _user_id("operador@unamad.edu.pe")
        reader = _user_id("usuario@unamad.edu.pe")

    own = client.delete(f"/api/users/{me}")
    assert own.get_json()["error"] == "No puedes eliminar tu propio usuario"

    with_documents = client.delete(f"/api/users/{operador}")
    assert with_documents.status_code == 400

    removed = client.delete(f"/api/users/{reader}")
    assert removed.status_code == 200
    with app.app_context():
        assert db.session.get(User, reader) is None


def test_toggle_status_blocks_login(app, client, login_as):
    login_as("admin@unamad.edu.pe")
    with app.app_context():
        reader = _user_id("usuario@unamad.edu.pe")

    response = client.post(f"/api/users/{reader}/toggle-status")
    assert response.get_json() == {"success": True, "isActive": False, "message": "Usuario desactivado"}

    client.post("/api/auth/logout")
    blocked = login_as("usuario@unamad.edu.pe")
    assert blocked.status_code == 403
    assert blocked.get_json()["error"] == "Usuario inactivo"


def test_reset_password_self_or_manager(app, client, login_as):
    login_as("usuario@unamad.edu.pe")
    with app.app_context():
        me = _user_id("usuario@unamad.edu.pe")
        other = _user_id("operador@unamad.edu.pe")

    assert client.post(f"/api/users/{other}/reset-password", json={"newPassword": "nueva123"}).status_code == 403
    assert client.post(f"/api/users/{me}/reset-password", json={"newPassword": "nueva123"}).status_code == 200

    client.post("/api/auth/logout")
    assert login_as("usuario@unamad.edu.pe", "nueva123").status_code == 200


def test_module_and_submodule_crud(app, client, login_as):
    login_as("admin@unamad.edu.pe")
    created = client.post("/api/modules", json={"name": "Reportes", "slug": "reportes", "order": 5})
    assert created.status_code == 201
    module_id = created.get_json()["id"]

    bad_slug = client.post("/api/modules", json={"name": "Malo", "slug": "Con Espacios"})
    assert bad_slug.status_code == 400

    taken = client.post("/api/modules", json={"name": "Otro", "slug": "reportes"})
    assert taken.get_json()["error"] == "El slug ya está en uso"

    sub = client.post("/api/submodules", json={"moduleId": module_id, "name": "Mensual", "slug": "mensual"})
    assert sub.status_code == 201
    sub_dup = client.post("/api/submodules", json={"moduleId": module_id, "name": "Otra", "slug": "mensual"})
    assert sub_dup.get_json()["error"] == "El slug ya está en uso en este módulo"

    blocked = client.delete(f"/api/modules/{module_id}")
    assert blocked.status_code == 400

    assert client.delete(f"/api/submodules/{sub.get_json()['id']}").status_code == 200
    assert client.delete(f"/api/modules/{module_id}").status_code == 200
    with app.app_context():
        assert Module.query.filter_by(slug="reportes").first() is None


def test_assign_permissions_by_role(app, client, login_as):
    login_as("admin@unamad.edu.pe")
    with app.app_context():
        users_access = _permission_ids("users.access")

    response = client.post(
        "/api/permissions/assign",
        json={"role": "USER", "permissions": users_access, "action": "add"},
    )

    assert response.status_code == 200
    assert response.get_json() == {
        "success": True,
        "message": "Permisos agregados correctamente",
        "affectedUsers": 1,
    }
    with app.app_context():
        reader = User.query.filter_by(email="usuario@unamad.edu.pe").first()
        codes = {grant.permission.code for grant in UserPermission.query.filter_by(user_id=reader.id)}
        assert codes == {"dashboard.view", "users.access"}


def test_assign_permissions_set_and_remove(app, client, login_as):
    login_as("superadmin@unamad.edu.pe")
    with app.app_context():
        operador = _user_id("operador@unamad.edu.pe")
        dashboard = _permission_ids("dashboard.view")

    replaced = client.post(
        "/api/permissions/assign",
        json={"userId": operador, "permissions": dashboard, "action": "set"},
    )
    assert replaced.get_json()["message"] == "Permisos actualizados correctamente"

    removed = client.post(
        "/api/permissions/assign",
        json={"userId": operador, "permissions": dashboard, "action": "remove"},
    )
    assert removed.get_json()["message"] == "Permisos eliminados correctamente"
    with app.app_context():
        assert UserPermission.query.filter_by(user_id=operador).count() == 0

    invalid = client.post("/api/permissions/assign", json={"userId": operador, "permissions": [], "action": "swap"})
    assert invalid.get_json()["error"] == "Acción inválida"


def test_permission_check_and_current_grants(client, login_as):
    login_as("operador@unamad.edu.pe")
    allowed = client.post("/api/permissions/check", json={"permissionCode": "constancias.access", "action": "DELETE"})
    assert allowed.get_json() == {"hasPermission": True}

    denied = client.post("/api/permissions/check", json={"permissionCode": "users.access"})
    assert denied.get_json() == {"hasPermission": False}

    missing = client.post("/api/permissions/check", json={})
    assert missing.status_code == 400

    grants = client.get("/api/permissions/user").get_json()
    assert sorted(p["code"] for p in grants) == ["constancias.access", "dashboard.view", "resoluciones.access"]


def test_super_admin_holds_every_permission(client, login_as):
    login_as("superadmin@unamad.edu.pe")
    response = client.post("/api/permissions/check", json={"permissionCode": "roles.access", "action": "DELETE"})
    assert response.get_json() == {"hasPermission": True}
    assert len(client.get("/api/permissions/user").get_json()) == 5


def test_expired_grant_is_ignored(app, client, login_as):
    from datetime import timedelta

    from portal.core.models import utcnow

    with app.app_context():
        reader = User.query.filter_by(email="usuario@unamad.edu.pe").first()
        grant = UserPermission.query.filter_by(user_id=reader.id).first()
        grant.expires_at = utcnow() - timedelta(days=1)
        db.session.commit()
        assert reader.role == UserRole.USER

    login_as("usuario@unamad.edu.pe")
    response = client.post("/api/permissions/check", json={"permissionCode": "dashboard.view"})
    assert response.get_json() == {"hasPermission": False}


def test_permissions_by_role_matrix(client, login_as):
    login_as("admin@unamad.edu.pe")

    body = client.get("/api/permissions/by-role").get_json()

    assert body["userCountByRole"] == {"SUPER_ADMIN": 1, "ADMIN": 1, "MODERATOR": 1, "USER": 1}
    by_role = {role: sorted(p["code"] for p in grants) for role, grants in body["permissionsByRole"].items()}
    assert by_role["USER"] == ["dashboard.view"]
    assert by_role["MODERATOR"] == ["constancias.access", "dashboard.view", "resoluciones.access"]
    assert len(by_role["SUPER_ADMIN"]) == len(body["allPermissions"])


def test_permissions_matrix_needs_roles_permission(client, login_as):
    login_as("operador@unamad.edu.pe")
    assert client.get("/api/permissions/by-role").status_code == 403
    assert client.post("/api/permissions/bulk-update", json={"changes": []}).status_code == 403


def test_bulk_update_grants_and_revokes_per_role(app, client, login_as):
    login_as("admin@unamad.edu.pe")
    with app.app_context():
        constancias, dashboard = _permission_ids("constancias.access", "dashboard.view")

    response = client.post(
        "/api/permissions/bulk-update",
        json={
            "changes": [
                {"roleId": "USER", "permissionId": constancias, "actions": ["READ"]},
                {"roleId": "USER", "permissionId": dashboard, "actions": []},
                {"roleId": "MODERATOR", "permissionId": dashboard, "actions": []},
            ]
        },
    )

    assert response.status_code == 200
    assert response.get_json() == {"success": True, "message": "3 permisos actualizados exitosamente"}
    with app.app_context():
        reader = _user_id("usuario@unamad.edu.pe")
        operador = _user_id("operador@unamad.edu.pe")
        reader_codes = {g.permission.code for g in UserPermission.query.filter_by(user_id=reader)}
        operador_codes = {g.permission.code for g in UserPermission.query.filter_by(user_id=operador)}
        assert reader_codes == {"constancias.access"}
        assert operador_codes == {"constancias.access", "resoluciones.access"}
        assert AuditLog.query.filter_by(action="permissions.bulk_update").count() == 1


def test_bulk_update_rejects_bad_changes_without_writing(app, client, login_as):
    login_as("admin@unamad.edu.pe")
    with app.app_context():
        dashboard = _permission_ids("dashboard.view")[0]

    unsupported = client.post(
        "/api/permissions/bulk-update",
        json={
            "changes": [
                {"roleId": "USER", "permissionId": dashboard, "actions": []},
                {"roleId": "USER", "permissionId": dashboard, "actions": ["DELETE"]},
            ]
        },
    )
    assert unsupported.status_code == 400
    assert unsupported.get_json()["error"] == "El permiso dashboard.view no admite esas acciones"

    bad_role = client.post(
        "/api/permissions/bulk-update",
        json={"changes": [{"roleId": "GUEST", "permissionId": dashboard, "actions": []}]},
    )
    assert bad_role.get_json()["error"] == "Rol inválido"

    super_admin = client.post(
        "/api/permissions/bulk-update",
        json={"changes": [{"roleId": "SUPER_ADMIN", "permissionId": dashboard, "actions": ["READ"]}]},
    )
    assert super_admin.status_code == 403

    with app.app_context():
        reader = _user_id("usuario@unamad.edu.pe")
        assert UserPermission.query.filter_by(user_id=reader).count() == 1
