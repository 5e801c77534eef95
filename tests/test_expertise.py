"""Tests for the expertise sub-record manager."""
from datetime import date
from decimal import Decimal

import pytest

from app.models.enums import AppRole, ClaimEventType, ClaimStatus, ExpertiseStatus
from app.services.workflow.expertise import can_edit_expertise
from app.services.workflow.results import Outcome
from tests.factories import ClaimFactory


@pytest.fixture
def assigned_claim(db_session, make_actor):
    """A claim in expertise with an expert assigned; returns (row, expert session)."""
    expert, session = make_actor(AppRole.EXPERT)
    row = ClaimFactory(completed_steps=2, current_started=True, domain_status=ClaimStatus.EN_EXPERTISE, expert=expert)
    return row, session


@pytest.mark.unit
class TestExpertiseUpsert:
    def test_carry_forward(self, expertise_manager, assigned_claim):
        """Test that omitted expertise fields keep their stored values."""
        row, session = assigned_claim

        first = expertise_manager.upsert(
            row.claim_number, session, status=ExpertiseStatus.TERMINE, estimated_amount=5000
        )
        second = expertise_manager.upsert(row.claim_number, session, status=ExpertiseStatus.TERMINE)

        assert first.ok and second.ok
        expertise = second.value.expertise
        assert expertise.status == ExpertiseStatus.TERMINE
        assert expertise.estimated_amount == Decimal("5000.00")
        assert expertise.id == first.value.expertise.id
        expertise_events = [e for e in second.value.events if e.type == ClaimEventType.EXPERTISE]
        assert len(expertise_events) == 2

    def test_status_always_replaced(self, expertise_manager, assigned_claim):
        """Test that the expertise status is always replaced."""
        row, session = assigned_claim
        expertise_manager.upsert(
            row.claim_number, session, status="planifie", scheduled_date=date(2024, 3, 8)
        )
        claim = expertise_manager.upsert(
            row.claim_number, session, status="en_cours", report="Visite effectuée"
        ).value

        assert claim.expertise.status == ExpertiseStatus.EN_COURS
        assert claim.expertise.scheduled_date == date(2024, 3, 8)
        assert claim.expertise.report == "Visite effectuée"
        assert claim.expertise.expert_id == session.user.id

    def test_first_upsert_creates_record(self, expertise_manager, assigned_claim):
        """Test that the first write creates the expertise record."""
        row, session = assigned_claim
        claim = expertise_manager.upsert(row.claim_number, session, status="planifie").value
        assert claim.expertise is not None
        assert claim.expertise.claim_id == row.claim_number
        assert "créée" in claim.events[0].description

    def test_unassigned_expert_is_denied(self, expertise_manager, assigned_claim, make_actor):
        """Test that an expert not assigned to the claim is denied."""
        row, _ = assigned_claim
        _, other_session = make_actor(AppRole.EXPERT)

        result = expertise_manager.upsert(row.claim_number, other_session, status="termine")

        assert result.outcome == Outcome.DENIED
        claim = expertise_manager.repository.get_by_id(row.claim_number)
        assert claim.expertise is None
        assert claim.events == []

    def test_manager_cannot_record_expertise(self, expertise_manager, assigned_claim, manager_actor):
        """Test that a manager cannot record an expertise."""
        row, _ = assigned_claim
        _, session = manager_actor
        result = expertise_manager.upsert(row.claim_number, session, status="termine")
        assert result.outcome == Outcome.DENIED

    def test_unknown_claim(self, expertise_manager, assigned_claim):
        """Test an expertise on a missing claim."""
        _, session = assigned_claim
        result = expertise_manager.upsert("CLM-1999-001", session, status="termine")
        assert result.outcome == Outcome.NOT_FOUND


@pytest.mark.unit
class TestCanEditExpertise:
    def test_assigned_expert(self, expertise_manager, assigned_claim):
        """Test that the assigned expert can edit the expertise."""
        row, session = assigned_claim
        claim = expertise_manager.repository.get_by_id(row.claim_number)
        assert can_edit_expertise(session, claim)

    def test_no_expert_assigned(self, expertise_manager, db_session, make_actor):
        """Test editing when no expert is assigned."""
        _, session = make_actor(AppRole.EXPERT)
        row = ClaimFactory()
        claim = expertise_manager.repository.get_by_id(row.claim_number)
        assert not can_edit_expertise(session, claim)

    def test_admin_assigned_as_expert(self, expertise_manager, db_session, make_actor):
        """Test an administrator assigned as expert."""
        admin, session = make_actor(AppRole.ADMIN)
        row = ClaimFactory(expert=admin)
        claim = expertise_manager.repository.get_by_id(row.claim_number)
        assert can_edit_expertise(session, claim)
