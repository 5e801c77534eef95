"""Tests for the claim repository."""
from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from app.models.enums import ClaimEventType, ClaimStatus, ClaimType, ProcessStepId, StepStatus
from app.services.claims.repository import ClaimRepository
from tests.factories import ClaimFactory, ProfileFactory


def _create(repository, declarant, **overrides):
    values = dict(
        policy_number="POL-AUTO-12345",
        claim_type=ClaimType.AUTO,
        incident_date=date(2024, 3, 1),
        declaration_date=date(2024, 3, 3),
        location="Conakry",
        description="Choc arrière au feu rouge de Hamdallaye",
        declarant_id=declarant.id,
    )
    values.update(overrides)
    with repository.unit_of_work():
        return repository.create(**values).claim_number


@pytest.mark.unit
class TestClaimNumbers:
    def test_first_number_of_year(self, repository):
        """Test the first claim number of a year."""
        assert repository.next_claim_number(2024) == "CLM-2024-001"

    def test_follows_highest_sequence(self, repository, db_session):
        """Test that numbering continues after the highest sequence."""
        ClaimFactory(claim_number="CLM-2024-007")
        ClaimFactory(claim_number="CLM-2024-003")
        ClaimFactory(claim_number="CLM-2025-050")
        assert repository.next_claim_number(2024) == "CLM-2024-008"

    def test_uses_clock_year(self, repository, db_session):
        """Test that the claim number year comes from the clock."""
        declarant = ProfileFactory()
        assert _create(repository, declarant).startswith("CLM-2024-")


@pytest.mark.unit
class TestCreate:
    def test_new_claim_shape(self, repository, db_session, clock):
        """Test a newly created claim row."""
        declarant = ProfileFactory()
        number = _create(repository, declarant, estimated_amount=None)

        claim = repository.get_by_id(number)
        assert claim.status == ClaimStatus.OUVERT
        assert claim.current_step_id == ProcessStepId.DECLARATION
        assert claim.process_steps[0].status == StepStatus.IN_PROGRESS
        assert claim.process_steps[0].started_at == clock()
        assert all(s.status == StepStatus.PENDING for s in claim.process_steps[1:])
        assert claim.events == []
        assert claim.version == 1

    def test_get_unknown(self, repository):
        """Test reading an unknown claim."""
        assert repository.get_by_id("CLM-1999-001") is None


@pytest.mark.unit
class TestWrites:
    def test_every_write_bumps_version(self, repository, db_session):
        """Test that writes bump the claim version."""
        row = ClaimFactory()
        with repository.unit_of_work():
            repository.update_status(row.claim_number, ClaimStatus.EN_ANALYSE)
        assert repository.get_by_id(row.claim_number).version > 1

    def test_update_status_missing_claim(self, repository):
        """Test that updating a missing claim is a no-op."""
        assert repository.update_status("CLM-1999-001", ClaimStatus.EN_ANALYSE) is None

    def test_update_process_step_moves_pointer(self, repository, db_session):
        """Test that a step update moves the current step pointer."""
        row = ClaimFactory()
        with repository.unit_of_work():
            repository.update_process_step(
                row.claim_number,
                ProcessStepId.DECLARATION,
                status=StepStatus.COMPLETED,
                current_step_id=ProcessStepId.INSTRUCTION,
            )
        claim = repository.get_by_id(row.claim_number)
        assert claim.current_step_id == ProcessStepId.INSTRUCTION
        assert claim.process_steps[0].status == StepStatus.COMPLETED

    def test_events_newest_first(self, repository, db_session, clock):
        """Test that events are returned newest first."""
        row = ClaimFactory()
        with repository.unit_of_work():
            repository.append_event(row, ClaimEventType.COMMENT, "premier", None)
        clock.advance(minutes=1)
        with repository.unit_of_work():
            repository.append_event(row, ClaimEventType.COMMENT, "second", None)

        claim = repository.get_by_id(row.claim_number)
        assert [e.description for e in claim.events] == ["second", "premier"]

    def test_unit_of_work_rolls_back(self, repository, db_session):
        """Test that a failing unit of work rolls back."""
        row = ClaimFactory()
        with pytest.raises(RuntimeError):
            with repository.unit_of_work():
                repository.append_event(row, ClaimEventType.COMMENT, "perdu", None)
                raise RuntimeError("boom")
        assert repository.get_by_id(row.claim_number).events == []


@pytest.mark.unit
class TestFetchAll:
    def test_returns_all_claims_newest_first(self, repository, db_session):
        """Test fetching all claims newest first."""
        ClaimFactory(claim_number="CLM-2023-901")
        ClaimFactory(claim_number="CLM-2023-902")
        result = repository.fetch_all()
        assert result.ok
        assert [c.id for c in result.claims] == ["CLM-2023-902", "CLM-2023-901"]

    def test_store_error_is_returned_not_raised(self, db_session, mocker):
        """Test that a store error is returned as a failed fetch."""
        repository = ClaimRepository(db_session)
        mocker.patch.object(db_session, "scalars", side_effect=OperationalError("SELECT", {}, Exception("down")))
        result = repository.fetch_all()
        assert not result.ok
        assert result.claims == []
        assert result.error == "Claims store unavailable"

    def test_malformed_row_is_returned_not_raised(self, repository, db_session):
        """Test that a malformed row is returned as a failed fetch."""
        row = ClaimFactory()
        row.current_step_id = "archivage"
        db_session.commit()
        result = repository.fetch_all()
        assert not result.ok
        assert "malformed" in result.error
