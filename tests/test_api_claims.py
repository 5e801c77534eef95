"""API tests for claims, process steps, expertise and the dashboard."""
import pytest

from app.models.enums import AppRole, ClaimStatus
from app.services.claims.repository import ClaimRepository, FetchResult
from tests.factories import ClaimFactory

DECLARATION = {
    "policy_number": "POL-AUTO-12345",
    "type": "auto",
    "incident_date": "2024-03-01",
    "declaration_date": "2024-03-03",
    "location": "Conakry, Kaloum",
    "description": "Collision au carrefour de Kaloum, pare-choc avant endommagé",
    "estimated_amount": "1500000.00",
}


@pytest.fixture
def actor(register_user, login):
    """Register a user with ``role`` and return (profile, auth headers)."""
    def _actor(role: AppRole, email: str = None):
        email = email or f"{role.value}@assurflow.gn"
        profile = register_user(email, role)
        return profile, login(email)

    return _actor


@pytest.mark.api
class TestCreateClaim:
    def test_insured_declares_claim(self, client, actor):
        """Test a policyholder declaring a claim."""
        profile, headers = actor(AppRole.ASSURE)

        response = client.post("/api/v1/claims", json=DECLARATION, headers=headers)

        assert response.status_code == 201
        claim = response.json()
        assert claim["id"].startswith("CLM-")
        assert claim["status"] == "ouvert"
        assert claim["declarant"]["id"] == profile.id
        assert claim["current_step_id"] == "declaration"
        assert [e["type"] for e in claim["events"]] == ["creation"]
        assert claim["estimated_amount"] == "1500000.00"
        assert response.headers["ETag"] == f'"{claim["version"]}"'

    def test_staff_must_name_declarant(self, client, actor):
        """Test that staff declarations need a declarant."""
        _, headers = actor(AppRole.GESTIONNAIRE)
        response = client.post("/api/v1/claims", json=DECLARATION, headers=headers)
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"
        assert "declarant_id" in response.json()["details"]["fields"]

    def test_invalid_payload(self, client, actor):
        """Test field-level errors for an invalid declaration."""
        _, headers = actor(AppRole.ASSURE)
        response = client.post(
            "/api/v1/claims", json={**DECLARATION, "description": "Trop court"}, headers=headers
        )
        assert response.status_code == 422
        assert response.json()["details"][0]["field"] == "description"

    def test_late_declaration(self, client, actor):
        """Test that a declaration past the legal delay is refused."""
        _, headers = actor(AppRole.ASSURE)
        response = client.post(
            "/api/v1/claims", json={**DECLARATION, "declaration_date": "2024-03-20"}, headers=headers
        )
        assert response.status_code == 422

    def test_expert_cannot_declare(self, client, actor):
        """Test that an expert cannot declare a claim."""
        _, headers = actor(AppRole.EXPERT)
        response = client.post("/api/v1/claims", json=DECLARATION, headers=headers)
        assert response.status_code == 403


@pytest.mark.api
class TestReadClaims:
    def test_insured_lists_only_own_claims(self, client, actor, db_session):
        """Test that a policyholder only lists their own claims."""
        profile, headers = actor(AppRole.ASSURE)
        own = ClaimFactory(declarant=profile)
        ClaimFactory()

        response = client.get("/api/v1/claims", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert [c["id"] for c in data["items"]] == [own.claim_number]
        assert data["stale"] is False

    def test_manager_filters(self, client, actor, db_session):
        """Test filtering the claim list by status."""
        _, headers = actor(AppRole.GESTIONNAIRE)
        ClaimFactory()
        analysed = ClaimFactory(domain_status=ClaimStatus.EN_ANALYSE, completed_steps=1)

        response = client.get("/api/v1/claims", params={"status": "en_analyse"}, headers=headers)

        assert [c["id"] for c in response.json()["items"]] == [analysed.claim_number]

    def test_search(self, client, actor, db_session):
        """Test free-text search on the claim list."""
        _, headers = actor(AppRole.GESTIONNAIRE)
        target = ClaimFactory(policy_number="POL-HAB-777")
        ClaimFactory()
        response = client.get("/api/v1/claims", params={"search": "hab-777"}, headers=headers)
        assert [c["id"] for c in response.json()["items"]] == [target.claim_number]

    def test_unknown_status_filter(self, client, actor):
        """Test the claim list with an unknown status filter."""
        _, headers = actor(AppRole.GESTIONNAIRE)
        response = client.get("/api/v1/claims", params={"status": "archive"}, headers=headers)
        assert response.status_code == 422

    def test_detail(self, client, actor, db_session):
        """Test claim detail with its ETag and available actions."""
        _, headers = actor(AppRole.GESTIONNAIRE)
        row = ClaimFactory()

        response = client.get(f"/api/v1/claims/{row.claim_number}", headers=headers)

        assert response.status_code == 200
        claim = response.json()
        assert response.headers["ETag"] == '"1"'
        assert len(claim["process_steps"]) == 5
        assert claim["participants"][0]["role_label"] == "Déclarant"
        assert claim["actions"]["complete_step"] is True
        assert claim["actions"]["start_step"] is False

    def test_other_insured_gets_not_found(self, client, actor, db_session):
        """Test that another policyholder's claim is reported as not found."""
        _, headers = actor(AppRole.ASSURE)
        row = ClaimFactory()
        response = client.get(f"/api/v1/claims/{row.claim_number}", headers=headers)
        assert response.status_code == 404

    def test_unknown_claim(self, client, actor):
        """Test claim detail for a missing claim."""
        _, headers = actor(AppRole.GESTIONNAIRE)
        assert client.get("/api/v1/claims/CLM-1999-001", headers=headers).status_code == 404

    def test_full_event_log(self, client, actor, db_session):
        """Test the full event log, newest first."""
        _, headers = actor(AppRole.GESTIONNAIRE)
        row = ClaimFactory()
        for text in ("un", "deux", "trois"):
            client.post(f"/api/v1/claims/{row.claim_number}/comments", json={"text": text}, headers=headers)

        response = client.get(f"/api/v1/claims/{row.claim_number}/events", headers=headers)

        assert response.status_code == 200
        assert response.json()["total"] == 3
        assert [e["description"] for e in response.json()["events"]][0] == "trois"

    def test_store_outage_without_snapshot(self, client, actor, mocker):
        """Test listing during a store outage with no earlier snapshot."""
        _, headers = actor(AppRole.GESTIONNAIRE)
        mocker.patch.object(ClaimRepository, "fetch_all", return_value=FetchResult(error="Claims store unavailable"))
        response = client.get("/api/v1/claims", headers=headers)
        assert response.status_code == 503
        assert response.json()["error"] == "SERVICE_UNAVAILABLE"

    def test_store_outage_serves_last_snapshot(self, client, actor, db_session, mocker):
        """Test that a store outage serves the last snapshot flagged as stale."""
        _, headers = actor(AppRole.GESTIONNAIRE)
        row = ClaimFactory()
        assert client.get("/api/v1/claims", headers=headers).status_code == 200

        mocker.patch.object(ClaimRepository, "fetch_all", return_value=FetchResult(error="Claims store unavailable"))
        response = client.get("/api/v1/claims", headers=headers)

        assert response.status_code == 200
        assert response.json()["stale"] is True
        assert [c["id"] for c in response.json()["items"]] == [row.claim_number]


@pytest.mark.api
class TestStepEndpoints:
    @pytest.mark.integration
    def test_complete_then_start(self, client, actor, db_session):
        """Test completing the declaration step then starting instruction."""
        _, headers = actor(AppRole.GESTIONNAIRE)
        row = ClaimFactory()
        base = f"/api/v1/claims/{row.claim_number}/steps"

        completed = client.post(f"{base}/declaration/complete", headers=headers)
        assert completed.status_code == 200
        assert completed.json()["current_step_id"] == "instruction"

        started = client.post(f"{base}/instruction/start", headers=headers)
        assert started.status_code == 200
        steps = {s["id"]: s["status"] for s in started.json()["process_steps"]}
        assert steps == {
            "declaration": "completed",
            "instruction": "in_progress",
            "expertise": "pending",
            "validation": "pending",
            "paiement": "pending",
        }

    def test_wrong_step_is_conflict(self, client, actor, db_session):
        """Test that starting a step out of order is a 409."""
        _, headers = actor(AppRole.GESTIONNAIRE)
        row = ClaimFactory()
        response = client.post(f"/api/v1/claims/{row.claim_number}/steps/validation/start", headers=headers)
        assert response.status_code == 409
        assert response.json()["error"] == "ILLEGAL_TRANSITION"

    def test_unknown_step(self, client, actor, db_session):
        """Test an unknown step id."""
        _, headers = actor(AppRole.GESTIONNAIRE)
        row = ClaimFactory()
        response = client.post(f"/api/v1/claims/{row.claim_number}/steps/archivage/start", headers=headers)
        assert response.status_code == 422

    def test_insured_is_forbidden(self, client, actor, db_session):
        """Test that the declarant cannot run process steps."""
        profile, headers = actor(AppRole.ASSURE)
        row = ClaimFactory(declarant=profile, completed_steps=1)
        response = client.post(f"/api/v1/claims/{row.claim_number}/steps/instruction/start", headers=headers)
        assert response.status_code == 403
        assert response.json()["error"] == "FORBIDDEN"

    def test_command_on_unreadable_claim_is_not_found(self, client, actor, db_session):
        """Test that commands on a claim the user cannot read answer like a missing claim."""
        _, headers = actor(AppRole.ASSURE)
        row = ClaimFactory(completed_steps=1)

        response = client.post(f"/api/v1/claims/{row.claim_number}/steps/instruction/start", headers=headers)
        missing = client.post("/api/v1/claims/CLM-1999-001/steps/instruction/start", headers=headers)

        assert response.status_code == missing.status_code == 404
        assert response.json()["error"] == missing.json()["error"]

    def test_stale_if_match(self, client, actor, db_session):
        """Test that a stale If-Match header is a conflict."""
        _, headers = actor(AppRole.GESTIONNAIRE)
        row = ClaimFactory()
        etag = client.get(f"/api/v1/claims/{row.claim_number}", headers=headers).headers["ETag"]

        first = client.post(
            f"/api/v1/claims/{row.claim_number}/comments",
            json={"text": "Pièces reçues"},
            headers={**headers, "If-Match": etag},
        )
        second = client.post(
            f"/api/v1/claims/{row.claim_number}/steps/declaration/complete",
            headers={**headers, "If-Match": etag},
        )

        assert first.status_code == 201
        assert first.headers["ETag"] != etag
        assert second.status_code == 409
        assert second.json()["error"] == "CONFLICT"

    def test_malformed_if_match(self, client, actor, db_session):
        """Test that a malformed If-Match header is a 400."""
        _, headers = actor(AppRole.GESTIONNAIRE)
        row = ClaimFactory()
        response = client.post(
            f"/api/v1/claims/{row.claim_number}/steps/declaration/complete",
            headers={**headers, "If-Match": "abc"},
        )
        assert response.status_code == 400


@pytest.mark.api
class TestClaimCommands:
    def test_status_change(self, client, actor, db_session):
        """Test a forward status change."""
        _, headers = actor(AppRole.GESTIONNAIRE)
        row = ClaimFactory(completed_steps=1)
        response = client.post(
            f"/api/v1/claims/{row.claim_number}/status", json={"status": "en_analyse"}, headers=headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "en_analyse"
        assert response.json()["events"][0]["type"] == "statut"

    def test_rejection(self, client, actor, db_session):
        """Test rejecting a claim with a reason."""
        _, headers = actor(AppRole.RESPONSABLE)
        row = ClaimFactory()
        response = client.post(
            f"/api/v1/claims/{row.claim_number}/status",
            json={"status": "rejete", "reason": "Police résiliée"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["rejection_reason"] == "Police résiliée"
        assert response.json()["actions"]["status_transitions"] == []

    def test_assignment(self, client, actor, db_session):
        """Test assigning a manager and an expert."""
        _, headers = actor(AppRole.GESTIONNAIRE)
        expert, _ = actor(AppRole.EXPERT)
        row = ClaimFactory()

        response = client.post(
            f"/api/v1/claims/{row.claim_number}/assignment", json={"expert_id": expert.id}, headers=headers
        )

        assert response.status_code == 200
        assert response.json()["expert"]["id"] == expert.id
        assert [p["role_label"] for p in response.json()["participants"]] == ["Déclarant", "Expert"]

    def test_empty_assignment(self, client, actor, db_session):
        """Test an assignment without any user."""
        _, headers = actor(AppRole.GESTIONNAIRE)
        row = ClaimFactory()
        response = client.post(f"/api/v1/claims/{row.claim_number}/assignment", json={}, headers=headers)
        assert response.status_code == 422

    def test_insured_adds_document(self, client, actor, db_session):
        """Test a policyholder adding a document to their claim."""
        profile, headers = actor(AppRole.ASSURE)
        row = ClaimFactory(declarant=profile)
        response = client.post(
            f"/api/v1/claims/{row.claim_number}/documents",
            json={"name": "constat.pdf", "type": "constat", "url": "s3://assurflow/constat.pdf"},
            headers=headers,
        )
        assert response.status_code == 201
        assert response.json()["documents"][0]["name"] == "constat.pdf"

    def test_expertise_by_assigned_expert(self, client, actor, db_session):
        """Test the assigned expert recording the expertise."""
        expert, headers = actor(AppRole.EXPERT)
        row = ClaimFactory(completed_steps=2, current_started=True, expert=expert)

        response = client.put(
            f"/api/v1/claims/{row.claim_number}/expertise",
            json={"status": "termine", "estimated_amount": "5000"},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["expertise"]["status"] == "termine"
        assert response.json()["actions"]["edit_expertise"] is True

    def test_expertise_by_other_expert(self, client, actor, db_session):
        """Test that another expert cannot see or write the expertise."""
        _, headers = actor(AppRole.EXPERT)
        row = ClaimFactory(completed_steps=2, current_started=True)
        response = client.put(
            f"/api/v1/claims/{row.claim_number}/expertise", json={"status": "planifie"}, headers=headers
        )
        assert response.status_code == 404


@pytest.mark.api
class TestDashboardEndpoint:
    @pytest.mark.parametrize(
        "role, view",
        [
            (AppRole.RESPONSABLE, "responsable"),
            (AppRole.DIRECTION, "direction"),
            (AppRole.AUDIT, "audit"),
            (AppRole.ASSURE, "assure"),
            (AppRole.EXPERT, "global"),
        ],
    )
    def test_view_by_role(self, client, actor, db_session, role, view):
        """Test that the dashboard view follows the user's role."""
        _, headers = actor(role)
        ClaimFactory()
        response = client.get("/api/v1/dashboard", headers=headers)
        assert response.status_code == 200
        assert response.json()["view"] == view
        assert response.json()["stale"] is False
