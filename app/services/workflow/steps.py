"""
The five fixed process steps of a claim.

Step texts are static; only status and timestamps vary per claim. A new claim
starts with the declaration step in progress and every other step pending.
"""
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import List, Optional, Tuple

from app.models.enums import ProcessStepId, StepStatus

STEP_ORDER: Tuple[ProcessStepId, ...] = (
    ProcessStepId.DECLARATION,
    ProcessStepId.INSTRUCTION,
    ProcessStepId.EXPERTISE,
    ProcessStepId.VALIDATION,
    ProcessStepId.PAIEMENT,
)


@dataclass(frozen=True)
class StepDefinition:
    id: ProcessStepId
    position: int
    title: str
    description: str
    required_actions: Tuple[str, ...]


STEP_DEFINITIONS = MappingProxyType({
    ProcessStepId.DECLARATION: StepDefinition(
        id=ProcessStepId.DECLARATION,
        position=1,
        title="1. Déclaration du sinistre",
        description="\n".join([
            "Délai de 5 jours pour déclarer le sinistre à l'assureur dès sa connaissance "
            "(Article 27, paragraphe 4 du Code des assurances).",
            "À la réception de la déclaration :",
            "• Accuser réception",
            "• Demander les pièces de procédure",
            "• Mandater un expert pour l'évaluation des dommages",
            "• Attribuer un numéro de sinistre au dossier",
        ]),
        required_actions=(
            "Vérifier les documents fournis",
            "Assigner un gestionnaire",
            "Passer à l'analyse",
        ),
    ),
    ProcessStepId.INSTRUCTION: StepDefinition(
        id=ProcessStepId.INSTRUCTION,
        position=2,
        title="2. Phase d'instruction",
        description="\n".join([
            "À la réception des pièces de procédure :",
            "• Délivrer un acte de nomination à l'expert mandaté",
            "• Délai de 2 semaines pour le dépôt des conclusions de l'expert",
            "Pour les sinistres corporels :",
            "• Délivrer un bon de prise en charge pour l'hôpital",
            "• Délivrer une lettre de demande d'informations pour la victime ou les ayants droit "
            "(Articles 81 et 89 du Code des assurances)",
        ]),
        required_actions=(
            "Attendre les pièces de procédure",
            "Désigner un expert si nécessaire",
            "Délivrer les documents requis",
        ),
    ),
    ProcessStepId.EXPERTISE: StepDefinition(
        id=ProcessStepId.EXPERTISE,
        position=3,
        title="3. Expertise et évaluation",
        description="\n".join([
            "L'expert doit évaluer les dommages et fournir un rapport détaillé.",
            "L'expert dispose d'un délai de 15 jours pour rendre son rapport.",
            "Le rapport doit inclure :",
            "• L'évaluation des dommages",
            "• Les causes du sinistre",
            "• Les mesures de prévention recommandées",
        ]),
        required_actions=(
            "Attendre le rapport d'expertise",
            "Valider l'estimation des dommages",
            "Préparer le dossier pour validation",
        ),
    ),
    ProcessStepId.VALIDATION: StepDefinition(
        id=ProcessStepId.VALIDATION,
        position=4,
        title="4. Validation et décision",
        description="\n".join([
            "Le gestionnaire doit valider le rapport d'expertise.",
            "En cas d'accord, préparer la proposition d'indemnisation.",
            "En cas de désaccord, demander des compléments d'information.",
            "Transmettre la décision au service compétent pour le paiement.",
        ]),
        required_actions=(
            "Réviser le montant proposé",
            "Approuver ou rejeter le dossier",
            "Notifier le déclarant",
        ),
    ),
    ProcessStepId.PAIEMENT: StepDefinition(
        id=ProcessStepId.PAIEMENT,
        position=5,
        title="5. Paiement et clôture",
        description="\n".join([
            "Préparer l'ordre de paiement.",
            "Vérifier les coordonnées bancaires du bénéficiaire.",
            "Effectuer le virement bancaire.",
            "Archiver le dossier une fois le paiement effectué.",
        ]),
        required_actions=(
            "Préparer l'ordre de paiement",
            "Vérifier les coordonnées bancaires",
            "Effectuer le virement",
        ),
    ),
})


@dataclass(frozen=True)
class InitialStep:
    step_id: ProcessStepId
    position: int
    status: StepStatus
    started_at: Optional[datetime]


def next_step_id(step_id: ProcessStepId) -> Optional[ProcessStepId]:
    """Successor in the fixed order, None for the last step."""
    index = STEP_ORDER.index(ProcessStepId(step_id))
    if index + 1 < len(STEP_ORDER):
        return STEP_ORDER[index + 1]
    return None


def step_index(step_id: ProcessStepId) -> int:
    return STEP_ORDER.index(ProcessStepId(step_id))


def initial_steps(now: datetime) -> List[InitialStep]:
    """Declaration in progress since ``now``, the other four pending."""
    steps = []
    for position, step_id in enumerate(STEP_ORDER, start=1):
        is_first = position == 1
        steps.append(
            InitialStep(
                step_id=step_id,
                position=position,
                status=StepStatus.IN_PROGRESS if is_first else StepStatus.PENDING,
                started_at=now if is_first else None,
            )
        )
    return steps
