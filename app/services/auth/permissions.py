"""
Role and permission registry.

A registry maps each role to a set of dotted permission strings (``claims.view``,
``claims.edit``...). The wildcard ``*`` grants everything. Lookups are total:
unknown roles resolve to the empty set, so every check is deny-by-default.

Two vocabularies exist:

- ``FULL_REGISTRY``: the nine-role table used with the identity store.
- ``DEMO_REGISTRY``: the simplified six-role table used with the demo login.

Which one is active is chosen by ``AUTH_MODE`` (see ``app.config.workflow``);
they are never merged.
"""
from types import MappingProxyType
from typing import FrozenSet, Iterable, Mapping, Optional, Union

from app.config.workflow import AuthMode, get_workflow_settings
from app.models.enums import AppRole

WILDCARD = "*"

RoleLike = Union[AppRole, str, None]

ROLE_LABELS = MappingProxyType({
    AppRole.ADMIN: "Administrateur Système",
    AppRole.RESPONSABLE: "Responsable Sinistres",
    AppRole.GESTIONNAIRE: "Gestionnaire Sinistre",
    AppRole.EXPERT: "Expert Agréé",
    AppRole.MEDECIN_EXPERT: "Médecin Expert",
    AppRole.COMPTABILITE: "Service Financier",
    AppRole.DIRECTION: "Direction",
    AppRole.AUDIT: "Audit / Régulateur",
    AppRole.ASSURE: "Assuré",
})

# Highest first; used when an identity holds several roles
ROLE_PRIORITY = (
    AppRole.ADMIN,
    AppRole.DIRECTION,
    AppRole.RESPONSABLE,
    AppRole.GESTIONNAIRE,
    AppRole.COMPTABILITE,
    AppRole.EXPERT,
    AppRole.MEDECIN_EXPERT,
    AppRole.AUDIT,
    AppRole.ASSURE,
)


class PermissionRegistry:
    """Static role -> permission set lookup."""

    def __init__(self, name: str, table: Mapping[AppRole, Iterable[str]]):
        self.name = name
        self._table = MappingProxyType(
            {AppRole(role): frozenset(perms) for role, perms in table.items()}
        )

    def permissions_for(self, role: RoleLike) -> FrozenSet[str]:
        """Permission set of ``role``; empty for unknown roles."""
        if role is None:
            return frozenset()
        try:
            return self._table.get(AppRole(role), frozenset())
        except ValueError:
            return frozenset()

    def has_permission(self, role: RoleLike, permission: str) -> bool:
        granted = self.permissions_for(role)
        return WILDCARD in granted or permission in granted

    def has_any(self, role: RoleLike, permissions: Iterable[str]) -> bool:
        return any(self.has_permission(role, permission) for permission in permissions)

    def roles(self) -> FrozenSet[AppRole]:
        return frozenset(self._table)

    def __repr__(self) -> str:
        return f"PermissionRegistry({self.name!r})"


FULL_REGISTRY = PermissionRegistry(
    "full",
    {
        AppRole.ADMIN: [WILDCARD],
        AppRole.RESPONSABLE: [
            "claims.view", "claims.validate", "claims.reject", "reports.view",
            "users.view", "dashboard.global", "delays.monitor",
        ],
        AppRole.GESTIONNAIRE: [
            "claims.view", "claims.edit", "claims.assign", "claims.instruction",
            "documents.request", "documents.upload", "expert.designate", "offer.prepare",
        ],
        AppRole.EXPERT: [
            "claims.view.assigned", "expertise.create", "expertise.edit",
            "documents.view", "report.upload",
        ],
        AppRole.MEDECIN_EXPERT: [
            "claims.view.assigned.corporel", "medical.report.create",
            "medical.report.edit", "documents.view.medical",
        ],
        AppRole.COMPTABILITE: [
            "claims.view.validated", "payments.create", "payments.view", "payment.proof.upload",
        ],
        AppRole.DIRECTION: ["dashboard.strategic", "reports.view", "kpi.view", "performance.view"],
        AppRole.AUDIT: ["claims.view.readonly", "history.view", "delays.verify"],
        AppRole.ASSURE: ["claims.view.own", "claims.create", "documents.upload.own", "offer.accept"],
    },
)

DEMO_REGISTRY = PermissionRegistry(
    "demo",
    {
        AppRole.ADMIN: [WILDCARD],
        AppRole.GESTIONNAIRE: [
            "claims.view", "claims.edit", "claims.create", "claims.assign", "documents.upload",
        ],
        AppRole.EXPERT: ["claims.view", "expertise.edit", "documents.upload"],
        AppRole.RESPONSABLE: [
            "claims.view", "claims.validate", "claims.reject", "reports.view", "dashboard.global",
        ],
        AppRole.COMPTABILITE: ["claims.view", "payments.create", "payments.view"],
        AppRole.ASSURE: ["claims.view.own", "claims.create", "documents.upload.own"],
    },
)


def get_permission_registry(mode: Optional[AuthMode] = None) -> PermissionRegistry:
    """Registry matching the configured (or given) authentication mode."""
    mode = mode or get_workflow_settings().auth_mode
    return DEMO_REGISTRY if mode == AuthMode.DEMO else FULL_REGISTRY


def resolve_primary_role(roles: Iterable[RoleLike]) -> AppRole:
    """First role of ROLE_PRIORITY held by the identity; ``assure`` if none."""
    held = set()
    for role in roles:
        try:
            held.add(AppRole(role))
        except ValueError:
            continue
    for role in ROLE_PRIORITY:
        if role in held:
            return role
    return AppRole.ASSURE


def role_label(role: RoleLike) -> str:
    try:
        return ROLE_LABELS[AppRole(role)]
    except (KeyError, ValueError):
        return str(role)
