from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from app.posgate.core.config import settings
from app.posgate.core.logging import log_json
from app.posgate.services.permissions import PermissionSnapshot

logger = logging.getLogger("posgate.guards")


class DecisionKind(str, Enum):
    RENDER = "render"
    REDIRECT = "redirect"
    DEFER = "defer"


@dataclass(frozen=True)
class GuardDecision:
    kind: DecisionKind
    path: str | None = None

    @classmethod
    def render(cls) -> "GuardDecision":
        return cls(DecisionKind.RENDER)

    @classmethod
    def defer(cls) -> "GuardDecision":
        return cls(DecisionKind.DEFER)

    @classmethod
    def redirect_to(cls, path: str) -> "GuardDecision":
        return cls(DecisionKind.REDIRECT, path)

    @property
    def is_redirect(self) -> bool:
        return self.kind is DecisionKind.REDIRECT


@dataclass(frozen=True)
class GuardPaths:
    login_path: str
    unauthorized_path: str

    @classmethod
    def from_settings(cls, config=settings) -> "GuardPaths":
        return cls(login_path=config.LOGIN_PATH, unauthorized_path=config.UNAUTHORIZED_PATH)


def _grants_view(entry) -> bool:
    if entry is None:
        return False
    if isinstance(entry, Mapping):
        return bool(entry.get("view"))
    return bool(getattr(entry, "view", False))


def decide_menu_access(
    user,
    permissions: Mapping | None,
    menu_id,
    loading: bool,
    *,
    paths: GuardPaths,
) -> GuardDecision:
    # Never redirect while the snapshot may still belong to an older session.
    if loading:
        return GuardDecision.defer()
    if user is None:
        return GuardDecision.redirect_to(paths.login_path)
    entry = permissions.get(menu_id) if permissions is not None else None
    if not _grants_view(entry):
        return GuardDecision.redirect_to(paths.unauthorized_path)
    return GuardDecision.render()


def decide_authenticated(user, loading: bool, *, paths: GuardPaths) -> GuardDecision:
    if loading:
        return GuardDecision.defer()
    if user is None:
        return GuardDecision.redirect_to(paths.login_path)
    return GuardDecision.render()


@dataclass(frozen=True)
class GuardOutcome:
    decision: GuardDecision
    content: Any = None


class RouteGuard:
    def __init__(self, paths: GuardPaths | None = None) -> None:
        self.paths = paths or GuardPaths.from_settings()

    def decide(self, snapshot: PermissionSnapshot) -> GuardDecision:
        raise NotImplementedError

    def content_for(self, decision: GuardDecision) -> Any:
        return None

    def evaluate(self, snapshot: PermissionSnapshot) -> GuardOutcome:
        try:
            decision = self.decide(snapshot)
        except Exception as exc:
            log_json(
                logger,
                {
                    "event": "guard.failed",
                    "guard": self.__class__.__name__,
                    "error_class": exc.__class__.__name__,
                    "error": str(exc),
                },
                level=logging.ERROR,
            )
            decision = GuardDecision.redirect_to(self.paths.unauthorized_path)
        return GuardOutcome(decision=decision, content=self.content_for(decision))


class PermissionWrapper(RouteGuard):
    """Renders its children only when the current role may view ``menu_id``."""

    def __init__(self, menu_id, children: Any = None, *, placeholder: Any = "Loading...", paths: GuardPaths | None = None):
        super().__init__(paths)
        self.menu_id = menu_id
        self.children = children
        self.placeholder = placeholder

    def decide(self, snapshot: PermissionSnapshot) -> GuardDecision:
        return decide_menu_access(
            snapshot.user,
            snapshot.permissions,
            self.menu_id,
            snapshot.loading,
            paths=self.paths,
        )

    def content_for(self, decision: GuardDecision) -> Any:
        if decision.kind is DecisionKind.DEFER:
            return self.placeholder
        if decision.kind is DecisionKind.RENDER:
            return self.children
        return None


class RequireAuthHook(RouteGuard):
    """Page-level guard: only checks that a session exists."""

    def decide(self, snapshot: PermissionSnapshot) -> GuardDecision:
        return decide_authenticated(snapshot.user, snapshot.loading, paths=self.paths)

    def __call__(self, snapshot: PermissionSnapshot) -> GuardDecision:
        return self.evaluate(snapshot).decision


def use_require_auth(resolver, paths: GuardPaths | None = None) -> GuardDecision:
    return RequireAuthHook(paths)(resolver.snapshot())
