"""
Per-session claim snapshots.

Each logged-in session gets a ``Workspace`` holding its ``SessionContext`` and a
``ClaimCollection``: the last internally consistent snapshot of all claims
read from the store. Readers always see a complete snapshot; a failed read
keeps the previous one, and a slow read that finishes after a newer read or
a local write is discarded.

Workspaces are created at login, dropped at logout, and held by a
``WorkspaceRegistry`` stored on ``app.state``.
"""
import itertools
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from app.models.domain import Claim
from app.services.auth.session import SessionContext
from app.services.claims.repository import ClaimRepository, FetchResult
from app.utils.logger import get_logger

logger = get_logger(__name__)


class ClaimCollection:
    """Snapshot of claims with a stale-response guard."""

    def __init__(self):
        self._lock = threading.Lock()
        self._tokens = itertools.count(1)
        self._claims: Tuple[Claim, ...] = ()
        self._applied_token = 0
        self._loaded = False
        self.last_error: Optional[str] = None

    @property
    def loaded(self) -> bool:
        return self._loaded

    def begin_fetch(self) -> int:
        """Token identifying a fetch; later fetches get larger tokens."""
        with self._lock:
            return next(self._tokens)

    def apply(self, token: int, result: FetchResult) -> bool:
        """
        Install ``result`` if it is the newest fetch to complete.

        Returns True when the snapshot was replaced.
        """
        with self._lock:
            if token <= self._applied_token:
                logger.debug("Discarding stale claim fetch", token=token, applied=self._applied_token)
                return False
            if not result.ok:
                self.last_error = result.error
                logger.warning("Claim fetch failed, keeping last snapshot", error=result.error)
                return False
            self._claims = tuple(result.claims)
            self._applied_token = token
            self._loaded = True
            self.last_error = None
            return True

    def refresh(self, repository: ClaimRepository) -> FetchResult:
        token = self.begin_fetch()
        result = repository.fetch_all()
        self.apply(token, result)
        return result

    def upsert(self, claim: Claim) -> None:
        """
        Replace the claim with the same number, or prepend it if new.

        Also advances the watermark, so a fetch begun before this write cannot
        install its older copy afterwards.
        """
        with self._lock:
            self._applied_token = next(self._tokens)
            claims = list(self._claims)
            for index, existing in enumerate(claims):
                if existing.id == claim.id:
                    claims[index] = claim
                    break
            else:
                claims.insert(0, claim)
            self._claims = tuple(claims)

    def snapshot(self) -> List[Claim]:
        with self._lock:
            return list(self._claims)

    def get(self, claim_number: str) -> Optional[Claim]:
        with self._lock:
            return next((c for c in self._claims if c.id == claim_number), None)


@dataclass
class Workspace:
    session: SessionContext
    claims: ClaimCollection = field(default_factory=ClaimCollection)


class WorkspaceRegistry:
    """Live workspaces keyed by session id."""

    def __init__(self):
        self._lock = threading.Lock()
        self._workspaces: Dict[str, Workspace] = {}

    def open(self, session: SessionContext) -> Workspace:
        workspace = Workspace(session=session)
        with self._lock:
            self._workspaces[session.session_id] = workspace
        return workspace

    def get(self, session_id: Optional[str]) -> Optional[Workspace]:
        if not session_id:
            return None
        with self._lock:
            return self._workspaces.get(session_id)

    def get_or_open(self, session: SessionContext) -> Workspace:
        """Existing workspace, or a new one (e.g. another worker served the login)."""
        with self._lock:
            workspace = self._workspaces.get(session.session_id)
            if workspace is None:
                workspace = Workspace(session=session)
                self._workspaces[session.session_id] = workspace
            else:
                workspace.session = session
            return workspace

    def close(self, session_id: Optional[str]) -> None:
        with self._lock:
            self._workspaces.pop(session_id, None)

    def clear(self) -> None:
        with self._lock:
            self._workspaces.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._workspaces)
