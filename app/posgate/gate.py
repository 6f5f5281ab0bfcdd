from __future__ import annotations

from collections.abc import Callable
from typing import Any

from app.posgate.core.error_catalog import SessionError
from app.posgate.repos.access import ModuleNode, SessionScopedAccessRepository
from app.posgate.services.guards import GuardDecision, GuardOutcome, GuardPaths, PermissionWrapper, RequireAuthHook
from app.posgate.services.identity import LocalIdentityProvider
from app.posgate.services.navigation import NavigationBuilder
from app.posgate.services.permissions import PermissionResolver, PermissionSnapshot
from app.posgate.services.session_store import IdentityProvider, SessionStore


class PosGate:
    """Wires one client's session store, permission resolver, navigation and guards."""

    def __init__(
        self,
        provider: IdentityProvider,
        repository,
        *,
        paths: GuardPaths | None = None,
        load_timeout: float | None = None,
        on_session_error: Callable[[SessionError], None] | None = None,
    ) -> None:
        self.paths = paths or GuardPaths.from_settings()
        self.session_store = SessionStore(provider, on_error=on_session_error)
        self.resolver = PermissionResolver(self.session_store, repository, load_timeout=load_timeout)
        self.navigation = NavigationBuilder(repository)
        self._owned_db = None

    @classmethod
    def from_database(cls, session_factory, **kwargs) -> "PosGate":
        db = session_factory()
        gate = cls(LocalIdentityProvider(db), SessionScopedAccessRepository(session_factory), **kwargs)
        gate._owned_db = db
        return gate

    async def start(self) -> PermissionSnapshot:
        return await self.resolver.start()

    def close(self) -> None:
        self.resolver.close()
        if self._owned_db is not None:
            self._owned_db.close()
            self._owned_db = None

    def snapshot(self) -> PermissionSnapshot:
        return self.resolver.snapshot()

    def sidebar(self) -> list[ModuleNode]:
        snapshot = self.resolver.snapshot()
        if snapshot.loading or snapshot.user is None or snapshot.user.role_id is None:
            return []
        return self.navigation.build_sidebar(snapshot.user.role_id)

    def protect(self, menu_id, children: Any = None, *, placeholder: Any = "Loading...") -> GuardOutcome:
        guard = PermissionWrapper(menu_id, children, placeholder=placeholder, paths=self.paths)
        return guard.evaluate(self.resolver.snapshot())

    def require_auth(self) -> GuardDecision:
        return RequireAuthHook(self.paths)(self.resolver.snapshot())
