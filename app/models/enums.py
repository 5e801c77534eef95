"""
Status and type enumerations for claims, workflow steps and identities.

Two families live here:

- Domain enums (``ClaimStatus``, ``ClaimType``) are what the workflow engine,
  dashboards and API speak.
- Store enums (``StoreClaimStatus``, ``StoreClaimType``) are the values persisted
  in the relational store. Translation between the two happens only in
  ``app.services.claims.mapping``.

Enums are string enums for JSON serialization and database storage.
"""
import enum


class ClaimStatus(str, enum.Enum):
    """Claim status as seen by the workflow (canonical forward order)."""

    OUVERT = "ouvert"
    EN_ANALYSE = "en_analyse"
    EN_EXPERTISE = "en_expertise"
    EN_VALIDATION = "en_validation"
    APPROUVE = "approuve"
    PAYE = "paye"
    CLOS = "clos"
    REJETE = "rejete"


class ClaimType(str, enum.Enum):
    """Claim type as seen by the workflow."""

    AUTO = "auto"
    HABITATION = "habitation"
    SANTE = "sante"
    RESPONSABILITE_CIVILE = "responsabilite_civile"
    VIE = "vie"


class StoreClaimStatus(str, enum.Enum):
    """Claim status values persisted in the store."""

    DECLARATION = "declaration"
    INSTRUCTION = "instruction"
    EXPERTISE = "expertise"
    OFFRE = "offre"
    ACCEPTATION = "acceptation"
    PAIEMENT = "paiement"
    CLOTURE = "cloture"
    REJETE = "rejete"


class StoreClaimType(str, enum.Enum):
    """Claim type values persisted in the store."""

    AUTOMOBILE = "automobile"
    HABITATION = "habitation"
    SANTE = "sante"
    VIE = "vie"
    RESPONSABILITE_CIVILE = "responsabilite_civile"
    AUTRE = "autre"


class AppRole(str, enum.Enum):
    """Identity roles, declared from highest to lowest privilege."""

    ADMIN = "admin"
    RESPONSABLE = "responsable"
    GESTIONNAIRE = "gestionnaire"
    EXPERT = "expert"
    MEDECIN_EXPERT = "medecin_expert"
    COMPTABILITE = "comptabilite"
    DIRECTION = "direction"
    AUDIT = "audit"
    ASSURE = "assure"


class StepStatus(str, enum.Enum):
    """Process step status."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ProcessStepId(str, enum.Enum):
    """The five fixed process steps, in workflow order."""

    DECLARATION = "declaration"
    INSTRUCTION = "instruction"
    EXPERTISE = "expertise"
    VALIDATION = "validation"
    PAIEMENT = "paiement"


class ExpertiseStatus(str, enum.Enum):
    """Expert assessment status."""

    PLANIFIE = "planifie"
    EN_COURS = "en_cours"
    TERMINE = "termine"


class ClaimEventType(str, enum.Enum):
    """Audit event type tags."""

    CREATION = "creation"
    ASSIGNMENT = "affectation"
    STATUS_CHANGE = "statut"
    DOCUMENT = "document"
    COMMENT = "commentaire"
    EXPERTISE = "expertise"
    VALIDATION = "validation"
    PAYMENT = "paiement"
    REJECTION = "rejet"
    CLOSURE = "cloture"


def enum_values(enum_cls) -> list:
    """Column value list for ``sqlalchemy.Enum(values_callable=...)``."""
    return [member.value for member in enum_cls]
