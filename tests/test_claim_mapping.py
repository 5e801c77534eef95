"""Tests for store <-> domain translation."""
import pytest

from app.models.database import ClaimProcessStep
from app.models.enums import ClaimStatus, ClaimType, ProcessStepId, StepStatus, StoreClaimStatus, StoreClaimType
from app.services.claims.mapping import (
    StoreShapeError,
    claim_row_to_domain,
    to_domain_status,
    to_domain_type,
    to_store_status,
    to_store_type,
)
from tests.factories import ClaimFactory


@pytest.mark.unit
class TestStatusMapping:
    @pytest.mark.parametrize("store_status", list(StoreClaimStatus))
    def test_round_trip(self, store_status):
        """Test that every store status maps to a domain status and back."""
        assert to_store_status(to_domain_status(store_status)) == store_status

    def test_known_pairs(self):
        """Test the fixed status pairs."""
        assert to_domain_status("declaration") == ClaimStatus.OUVERT
        assert to_domain_status("offre") == ClaimStatus.EN_VALIDATION
        assert to_domain_status("acceptation") == ClaimStatus.APPROUVE
        assert to_store_status(ClaimStatus.CLOS) == StoreClaimStatus.CLOTURE

    def test_unknown_status(self):
        """Test an unknown store status."""
        with pytest.raises(StoreShapeError):
            to_domain_status("archive")


@pytest.mark.unit
class TestTypeMapping:
    @pytest.mark.parametrize(
        "store_type",
        [t for t in StoreClaimType if t != StoreClaimType.AUTRE],
    )
    def test_round_trip(self, store_type):
        """Test that every type except autre maps back to itself."""
        assert to_store_type(to_domain_type(store_type)) == store_type

    def test_autre_is_lossy(self):
        """Test that autre maps to auto."""
        assert to_domain_type(StoreClaimType.AUTRE) == ClaimType.AUTO
        assert to_store_type(ClaimType.AUTO) == StoreClaimType.AUTOMOBILE

    def test_unknown_type(self):
        """Test an unknown store type."""
        with pytest.raises(StoreShapeError):
            to_domain_type("maritime")


@pytest.mark.unit
class TestClaimRowMapping:
    def test_maps_fields(self, db_session):
        """Test mapping a stored claim to the domain model."""
        row = ClaimFactory(domain_status=ClaimStatus.EN_ANALYSE, completed_steps=1, current_started=True)
        claim = claim_row_to_domain(row)

        assert claim.id == row.claim_number
        assert claim.status == ClaimStatus.EN_ANALYSE
        assert claim.type == ClaimType.AUTO
        assert claim.declarant.id == row.declarant_id
        assert claim.current_step_id == ProcessStepId.INSTRUCTION
        assert [s.status for s in claim.process_steps] == [
            StepStatus.COMPLETED,
            StepStatus.IN_PROGRESS,
            StepStatus.PENDING,
            StepStatus.PENDING,
            StepStatus.PENDING,
        ]
        assert claim.process_steps[0].title == "1. Déclaration du sinistre"
        assert claim.version == 1

    def test_missing_step_is_shape_error(self, db_session):
        """Test that a claim missing a step is malformed."""
        row = ClaimFactory()
        row.process_steps = [s for s in row.process_steps if s.step_id != "expertise"]
        db_session.flush()
        with pytest.raises(StoreShapeError):
            claim_row_to_domain(row)

    def test_steps_out_of_order_are_sorted_by_position(self, db_session):
        """Test that steps are ordered by position."""
        row = ClaimFactory()
        row.process_steps.reverse()
        assert [s.id for s in claim_row_to_domain(row).process_steps][0] == ProcessStepId.DECLARATION

    def test_extra_step_is_shape_error(self, db_session):
        """Test that an unknown extra step is malformed."""
        row = ClaimFactory()
        row.process_steps.append(
            ClaimProcessStep(step_id="archivage", position=6, status=StepStatus.PENDING)
        )
        with pytest.raises(StoreShapeError):
            claim_row_to_domain(row)
