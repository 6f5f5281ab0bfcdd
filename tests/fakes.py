from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

from app.posgate.core.error_catalog import ErrorCatalog, RepositoryError, SessionError
from app.posgate.repos.access import MenuNode, ModuleNode
from app.posgate.services.session_store import Session


def make_session(user_id: str = "u-1", role_id: int | None = 1, *, token: str | None = None, ttl_minutes: int = 60) -> Session:
    issued_at = datetime.now(timezone.utc)
    return Session(
        user_id=user_id,
        role_id=role_id,
        token=token or f"token-{user_id}-{role_id}",
        issued_at=issued_at,
        expiry=issued_at + timedelta(minutes=ttl_minutes),
        username=user_id,
    )


class FakeIdentityProvider:
    """In-memory provider: accounts map identifier -> (password, role_id)."""

    def __init__(self, accounts: dict[str, tuple[str, int | None]] | None = None) -> None:
        self.accounts = accounts or {}
        self.live: dict[str, Session] = {}
        self.fail_with: Exception | None = None
        self.sign_out_error: Exception | None = None
        self.refresh_error: Exception | None = None
        self.refresh_count = 0

    def sign_in(self, identifier: str, password: str) -> Session:
        if self.fail_with is not None:
            raise self.fail_with
        account = self.accounts.get(identifier)
        if account is None or account[0] != password:
            raise SessionError("Invalid credentials", error=ErrorCatalog.INVALID_CREDENTIALS)
        session = make_session(identifier, account[1])
        self.live[session.token] = session
        return session

    def get_session(self, token: str) -> Session | None:
        if self.fail_with is not None:
            raise self.fail_with
        return self.live.get(token)

    def refresh(self, token: str) -> Session:
        if self.refresh_error is not None:
            raise self.refresh_error
        current = self.live.pop(token, None)
        if current is None:
            raise SessionError("Session is no longer valid", error=ErrorCatalog.INVALID_TOKEN)
        self.refresh_count += 1
        refreshed = make_session(current.user_id, current.role_id, token=f"{token}-r{self.refresh_count}")
        self.live[refreshed.token] = refreshed
        return refreshed

    def sign_out(self, token: str) -> None:
        if self.sign_out_error is not None:
            raise self.sign_out_error
        self.live.pop(token, None)


SCENARIO_TREE = [
    ModuleNode(
        module_id=10,
        name="Dashboard",
        group_name="Overview",
        sort_index=1,
        menus=(MenuNode(menu_id=100, module_id=10, name="Dashboard", path="dashboard", sort_index=1),),
    ),
    ModuleNode(
        module_id=20,
        name="Reports",
        group_name="Analytics",
        sort_index=2,
        menus=(
            MenuNode(
                menu_id=200,
                module_id=20,
                name="Reports",
                path="reports",
                sort_index=1,
                actions=frozenset({"export"}),
            ),
        ),
    ),
]


class FakeAccessRepository:
    """Serves fixed trees per role; a role can be made to block or fail."""

    def __init__(self, trees: dict[int, list[ModuleNode]] | None = None) -> None:
        self.trees = trees if trees is not None else {1: SCENARIO_TREE}
        self.calls: list[int] = []
        self.gates: dict[int, threading.Event] = {}
        self.failures: dict[int, Exception] = {}

    def block(self, role_id: int) -> threading.Event:
        gate = threading.Event()
        self.gates[role_id] = gate
        return gate

    def fail(self, role_id: int, error: Exception | None = None) -> None:
        self.failures[role_id] = error or RepositoryError("Access data store unavailable")

    def get_accessible_menus(self, role_id: int) -> list[ModuleNode]:
        self.calls.append(role_id)
        gate = self.gates.get(role_id)
        if gate is not None:
            gate.wait(timeout=5)
        if role_id in self.failures:
            raise self.failures[role_id]
        return list(self.trees.get(role_id, []))
