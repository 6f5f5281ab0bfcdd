from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from app.posgate.core.config import settings
from app.posgate.core.error_catalog import RepositoryError
from app.posgate.core.logging import log_json
from app.posgate.repos.access import MENU_ACTIONS, ModuleNode
from app.posgate.services.session_store import Identity, Session, SessionEvent, SessionStore

logger = logging.getLogger("posgate.permissions")

_MENU_KEY_PATTERN = re.compile(r"-?[0-9]+")

PERMISSION_ACTIONS = ("view", *MENU_ACTIONS)


@dataclass(frozen=True)
class Permission:
    menu_id: int
    view: bool = False
    create: bool = False
    edit: bool = False
    delete: bool = False
    pdf: bool = False
    export: bool = False

    def allows(self, action: str) -> bool:
        if action not in PERMISSION_ACTIONS:
            return False
        return bool(getattr(self, action))

    def as_dict(self) -> dict[str, bool]:
        return {action: getattr(self, action) for action in PERMISSION_ACTIONS}


def _menu_key(menu_id) -> int:
    if isinstance(menu_id, bool):
        raise KeyError(menu_id)
    if isinstance(menu_id, int):
        return menu_id
    if isinstance(menu_id, str) and _MENU_KEY_PATTERN.fullmatch(menu_id.strip()):
        return int(menu_id.strip())
    raise KeyError(menu_id)


def _path_key(path: str) -> str:
    return path.strip().strip("/")


class PermissionSet(Mapping):
    """Read-only menu_id -> Permission mapping compiled for one session."""

    def __init__(self, permissions: Iterable[Permission] = (), paths: Mapping[str, int] | None = None):
        self._by_menu = MappingProxyType({permission.menu_id: permission for permission in permissions})
        by_path: dict[str, int] = {}
        for path, menu_id in (paths or {}).items():
            by_path.setdefault(_path_key(path), menu_id)
        self._by_path = MappingProxyType(by_path)

    def __getitem__(self, menu_id) -> Permission:
        return self._by_menu[_menu_key(menu_id)]

    def __iter__(self) -> Iterator[int]:
        return iter(self._by_menu)

    def __len__(self) -> int:
        return len(self._by_menu)

    def __repr__(self) -> str:
        return f"PermissionSet({sorted(self._by_menu)})"

    def can_view(self, menu_id) -> bool:
        return self.can(menu_id, "view")

    def can(self, menu_id, action: str) -> bool:
        permission = self.get(menu_id)
        return permission is not None and permission.allows(action)

    def for_path(self, path: str) -> Permission | None:
        menu_id = self._by_path.get(_path_key(path))
        if menu_id is None:
            return None
        return self._by_menu.get(menu_id)

    def viewable_menu_ids(self) -> frozenset[int]:
        return frozenset(menu_id for menu_id, permission in self._by_menu.items() if permission.view)


EMPTY_PERMISSIONS = PermissionSet()


def compile_permission_set(tree: Iterable[ModuleNode]) -> PermissionSet:
    permissions: list[Permission] = []
    paths: dict[str, int] = {}
    for module in tree:
        for menu in module.menus:
            permissions.append(
                Permission(
                    menu_id=menu.menu_id,
                    view=True,
                    **{action: action in menu.actions for action in MENU_ACTIONS},
                )
            )
            paths.setdefault(_path_key(menu.path), menu.menu_id)
    return PermissionSet(permissions, paths)


class ResolverState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class PermissionSnapshot:
    state: ResolverState
    user: Identity | None
    permissions: PermissionSet
    generation: int
    role_id: int | None = None

    @property
    def loading(self) -> bool:
        return self.state in (ResolverState.UNINITIALIZED, ResolverState.LOADING)


SnapshotListener = Callable[[PermissionSnapshot], None]


class PermissionResolver:
    """Keeps the permission snapshot of the current session up to date.

    Every session change bumps the generation; a load only publishes its result
    while its generation is still the current one.
    """

    def __init__(
        self,
        session_store: SessionStore,
        repository,
        *,
        load_timeout: float | None = None,
    ) -> None:
        self._store = session_store
        self._repository = repository
        self._load_timeout = settings.PERMISSION_LOAD_TIMEOUT_SEC if load_timeout is None else load_timeout
        self._generation = 0
        self._snapshot = PermissionSnapshot(ResolverState.UNINITIALIZED, None, EMPTY_PERMISSIONS, 0)
        self._task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._listeners: list[SnapshotListener] = []
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def state(self) -> ResolverState:
        return self._snapshot.state

    @property
    def user(self) -> Identity | None:
        return self._snapshot.user

    @property
    def permissions(self) -> PermissionSet:
        return self._snapshot.permissions

    @property
    def loading(self) -> bool:
        return self._snapshot.loading

    def snapshot(self) -> PermissionSnapshot:
        return self._snapshot

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start(self) -> PermissionSnapshot:
        self._loop = asyncio.get_running_loop()
        if self._unsubscribe is None:
            self._unsubscribe = self._store.on_session_change(self._on_session_change)
        self._apply_session(self._store.get_current_session())
        return await self.wait_settled()

    async def wait_settled(self) -> PermissionSnapshot:
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})
        return self._snapshot

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._cancel_pending()

    def _on_session_change(self, event: SessionEvent, session: Session | None) -> None:
        log_json(logger, {"event": "permissions.session_change", "session_event": event.value})
        self._apply_session(session)

    def _apply_session(self, session: Session | None) -> None:
        self._generation += 1
        generation = self._generation
        self._cancel_pending()

        if session is None:
            self._publish(PermissionSnapshot(ResolverState.UNAUTHENTICATED, None, EMPTY_PERMISSIONS, generation))
            return

        identity = session.identity
        if session.role_id is None:
            log_json(logger, {"event": "permissions.no_role", "user_id": session.user_id, "generation": generation})
            self._publish(PermissionSnapshot(ResolverState.READY, identity, EMPTY_PERMISSIONS, generation))
            return

        self._publish(
            PermissionSnapshot(ResolverState.LOADING, identity, EMPTY_PERMISSIONS, generation, session.role_id)
        )
        if self._loop is None:
            raise RuntimeError("PermissionResolver.start() must run before session changes are delivered")
        self._task = self._loop.create_task(self._load(generation, session))

    async def _load(self, generation: int, session: Session) -> None:
        role_id = session.role_id
        try:
            tree = await asyncio.wait_for(
                asyncio.to_thread(self._repository.get_accessible_menus, role_id),
                timeout=self._load_timeout,
            )
            permissions = compile_permission_set(tree)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            self._fail_closed(generation, role_id, reason="timeout", error=None)
            return
        except RepositoryError as exc:
            self._fail_closed(generation, role_id, reason="repository_error", error=exc)
            return
        except Exception as exc:
            logger.exception("permission load crashed for role %s", role_id)
            self._fail_closed(generation, role_id, reason="unexpected_error", error=exc)
            return

        if generation != self._generation:
            log_json(
                logger,
                {"event": "permissions.discarded", "generation": generation, "current": self._generation},
            )
            return
        self._publish(
            PermissionSnapshot(ResolverState.READY, session.identity, permissions, generation, role_id)
        )

    def _fail_closed(self, generation: int, role_id: int | None, *, reason: str, error: Exception | None) -> None:
        if generation != self._generation:
            return
        log_json(
            logger,
            {
                "event": "permissions.load_failed",
                "reason": reason,
                "role_id": role_id,
                "generation": generation,
                "error": str(error) if error is not None else None,
            },
            level=logging.ERROR,
        )
        self._publish(PermissionSnapshot(ResolverState.UNAUTHENTICATED, None, EMPTY_PERMISSIONS, generation))

    def _cancel_pending(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()

    def _publish(self, snapshot: PermissionSnapshot) -> None:
        self._snapshot = snapshot
        log_json(
            logger,
            {
                "event": "permissions.state",
                "state": snapshot.state.value,
                "generation": snapshot.generation,
                "role_id": snapshot.role_id,
                "menus": len(snapshot.permissions),
            },
        )
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("permission snapshot listener failed")
