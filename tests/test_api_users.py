"""API tests for signup and user administration."""
import pytest

from app.config import workflow
from app.config.workflow import AuthMode
from app.models.enums import AppRole

SIGNUP = {
    "name": "Kadiatou Condé",
    "email": "kadiatou@email.gn",
    "password": "Sinistre-2024!",
    "confirm_password": "Sinistre-2024!",
}


@pytest.mark.api
@pytest.mark.auth
class TestSignup:
    def test_signup_creates_insured_who_can_log_in(self, client):
        """Test that a new account gets the assure role and can log in right away."""
        response = client.post("/api/v1/auth/register", json=SIGNUP)

        assert response.status_code == 201
        assert response.json()["role"] == "assure"
        assert response.json()["role_label"] == "Assuré"

        login = client.post(
            "/api/v1/auth/login", json={"email": "KADIATOU@email.gn", "password": "Sinistre-2024!"}
        )
        assert login.status_code == 200
        assert "claims.create" in login.json()["user"]["permissions"]

    def test_duplicate_email(self, client, register_user):
        """Test that an email already in use is refused with 409."""
        register_user("kadiatou@email.gn")
        response = client.post("/api/v1/auth/register", json=SIGNUP)
        assert response.status_code == 409
        assert response.json()["error"] == "CONFLICT"

    @pytest.mark.parametrize(
        "override",
        [
            {"confirm_password": "Autre-mot-de-passe"},
            {"password": "court", "confirm_password": "court"},
            {"name": "Al"},
            {"email": "pas-un-email"},
        ],
    )
    def test_invalid_signup(self, client, override):
        """Test field validation of the signup form."""
        response = client.post("/api/v1/auth/register", json={**SIGNUP, **override})
        assert response.status_code == 422

    def test_disabled_in_demo_mode(self, client, monkeypatch):
        """Test that demo mode only knows the fixed demonstration accounts."""
        monkeypatch.setattr(workflow.settings, "auth_mode", AuthMode.DEMO)
        response = client.post("/api/v1/auth/register", json=SIGNUP)
        assert response.status_code == 403


@pytest.mark.api
class TestUserAdministration:
    def test_admin_lists_users(self, client, register_user, login):
        """Test the user list with its per-role counts."""
        register_user("admin@assurflow.gn", AppRole.ADMIN, name="Fatoumata Camara")
        register_user("expert@assurflow.gn", AppRole.EXPERT, name="Alpha Bah")

        response = client.get("/api/v1/users", headers=login("admin@assurflow.gn"))

        assert response.status_code == 200
        data = response.json()
        assert [u["name"] for u in data["items"]] == ["Alpha Bah", "Fatoumata Camara"]
        assert data["stats"]["total"] == 2
        assert data["stats"]["expert"] == 1
        assert data["stats"]["assure"] == 0

    def test_responsable_can_list(self, client, register_user, login):
        """Test that users.view grants the user list."""
        register_user("responsable@assurflow.gn", AppRole.RESPONSABLE)
        response = client.get("/api/v1/users", headers=login("responsable@assurflow.gn"))
        assert response.status_code == 200

    @pytest.mark.parametrize("role", [AppRole.GESTIONNAIRE, AppRole.ASSURE])
    def test_list_needs_user_access(self, client, register_user, login, role):
        """Test that roles without users.view are refused."""
        register_user("agent@assurflow.gn", role)
        response = client.get("/api/v1/users", headers=login("agent@assurflow.gn"))
        assert response.status_code == 403
        assert response.json()["details"]["required"] == ["users.view", "*"]

    def test_role_change_applies_to_open_session(self, client, register_user, login):
        """Test that a new role replaces the old ones and applies on the user's next request."""
        register_user("admin@assurflow.gn", AppRole.ADMIN)
        target = register_user("agent@assurflow.gn", AppRole.ASSURE)
        agent_headers = login("agent@assurflow.gn")

        response = client.put(
            f"/api/v1/users/{target.id}/role", json={"role": "gestionnaire"}, headers=login("admin@assurflow.gn")
        )

        assert response.status_code == 200
        assert response.json()["roles"] == ["gestionnaire"]
        me = client.get("/api/v1/auth/me", headers=agent_headers).json()
        assert me["role"] == "gestionnaire"
        assert "claims.edit" in me["permissions"]

    def test_responsable_cannot_change_roles(self, client, register_user, login):
        """Test that role changes need the wildcard permission."""
        register_user("responsable@assurflow.gn", AppRole.RESPONSABLE)
        target = register_user("agent@assurflow.gn", AppRole.ASSURE)
        response = client.put(
            f"/api/v1/users/{target.id}/role",
            json={"role": "admin"},
            headers=login("responsable@assurflow.gn"),
        )
        assert response.status_code == 403

    def test_admin_cannot_change_own_role(self, client, register_user, login):
        """Test that an administrator cannot demote themselves."""
        admin = register_user("admin@assurflow.gn", AppRole.ADMIN)
        response = client.put(
            f"/api/v1/users/{admin.id}/role", json={"role": "assure"}, headers=login("admin@assurflow.gn")
        )
        assert response.status_code == 400

    def test_unknown_user(self, client, register_user, login):
        """Test that an unknown user id is a 404."""
        register_user("admin@assurflow.gn", AppRole.ADMIN)
        response = client.put(
            "/api/v1/users/missing/role", json={"role": "expert"}, headers=login("admin@assurflow.gn")
        )
        assert response.status_code == 404

    def test_unknown_role(self, client, register_user, login):
        """Test that only the nine application roles are accepted."""
        admin = register_user("admin@assurflow.gn", AppRole.ADMIN)
        target = register_user("agent@assurflow.gn", AppRole.ASSURE)
        response = client.put(
            f"/api/v1/users/{target.id}/role", json={"role": "stagiaire"}, headers=login(admin.email)
        )
        assert response.status_code == 422

    def test_update_profile(self, client, register_user, login):
        """Test that name and phone are edited and omitted fields kept."""
        register_user("responsable@assurflow.gn", AppRole.RESPONSABLE)
        target = register_user("agent@assurflow.gn", AppRole.EXPERT, name="Alpha Bah")

        response = client.patch(
            f"/api/v1/users/{target.id}",
            json={"phone": "+224 620 00 00 00"},
            headers=login("responsable@assurflow.gn"),
        )

        assert response.status_code == 200
        assert response.json()["phone"] == "+224 620 00 00 00"
        assert response.json()["name"] == "Alpha Bah"

    def test_empty_profile_update(self, client, register_user, login):
        """Test that an update without any field is rejected."""
        admin = register_user("admin@assurflow.gn", AppRole.ADMIN)
        response = client.patch(f"/api/v1/users/{admin.id}", json={}, headers=login(admin.email))
        assert response.status_code == 422
