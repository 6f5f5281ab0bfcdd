from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.posgate.core.error_catalog import RepositoryError
from app.posgate.db.models import Menu, MenuAccess, Module, RoleModuleAccess

MENU_ACTIONS = ("create", "edit", "delete", "pdf", "export")


@dataclass(frozen=True)
class MenuNode:
    menu_id: int
    module_id: int
    name: str
    path: str
    sort_index: int
    actions: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class ModuleNode:
    module_id: int
    name: str
    group_name: str | None
    sort_index: int
    menus: tuple[MenuNode, ...] = ()


def _require(row, *fields: str, entity: str):
    missing = [name for name in fields if getattr(row, name, None) is None]
    if missing:
        raise RepositoryError(
            f"Malformed {entity} row",
            details={"entity": entity, "missing": missing},
        )


def _granted_actions(grant: MenuAccess | None) -> frozenset[str]:
    if grant is None:
        return frozenset()
    return frozenset(action for action in MENU_ACTIONS if getattr(grant, f"can_{action}", False))


class AccessRepository:
    def __init__(self, db):
        self.db = db

    def list_module_ids_for_role(self, role_id: int) -> list[int]:
        stmt = (
            select(RoleModuleAccess.module_id)
            .where(RoleModuleAccess.role_id == role_id)
            .order_by(RoleModuleAccess.module_id)
        )
        return list(dict.fromkeys(self.db.execute(stmt).scalars().all()))

    def list_modules(self, module_ids: list[int]):
        stmt = (
            select(Module)
            .where(Module.module_id.in_(module_ids))
            .order_by(Module.sort_index.asc(), Module.module_id.asc())
        )
        return self.db.execute(stmt).scalars().all()

    def list_visible_menus(self, module_ids: list[int]):
        stmt = (
            select(Menu)
            .where(Menu.module_id.in_(module_ids))
            .where(Menu.visibility.is_(True))
            .order_by(Menu.sort_index.asc(), Menu.menu_id.asc())
        )
        return self.db.execute(stmt).scalars().all()

    def list_menu_grants(self, role_id: int, menu_ids: list[int]) -> dict[int, MenuAccess]:
        if not menu_ids:
            return {}
        stmt = select(MenuAccess).where(MenuAccess.role_id == role_id, MenuAccess.menu_id.in_(menu_ids))
        return {grant.menu_id: grant for grant in self.db.execute(stmt).scalars().all()}

    def get_accessible_menus(self, role_id: int) -> list[ModuleNode]:
        try:
            module_ids = self.list_module_ids_for_role(role_id)
            if not module_ids:
                return []
            modules = self.list_modules(module_ids)
            menus = self.list_visible_menus(module_ids)
            grants = self.list_menu_grants(role_id, [menu.menu_id for menu in menus])
        except SQLAlchemyError as exc:
            raise RepositoryError(
                "Access data store unavailable",
                details={"role_id": role_id, "type": exc.__class__.__name__},
            ) from exc

        menus_by_module: dict[int, list[MenuNode]] = {}
        for menu in menus:
            _require(menu, "menu_id", "module_id", "name", "path", "sort_index", entity="menu")
            menus_by_module.setdefault(menu.module_id, []).append(
                MenuNode(
                    menu_id=menu.menu_id,
                    module_id=menu.module_id,
                    name=menu.name,
                    path=menu.path,
                    sort_index=menu.sort_index,
                    actions=_granted_actions(grants.get(menu.menu_id)),
                )
            )

        tree: list[ModuleNode] = []
        for module in modules:
            _require(module, "module_id", "name", "sort_index", entity="module")
            tree.append(
                ModuleNode(
                    module_id=module.module_id,
                    name=module.name,
                    group_name=module.group_name,
                    sort_index=module.sort_index,
                    menus=tuple(menus_by_module.get(module.module_id, ())),
                )
            )
        return tree


class SessionScopedAccessRepository:
    """Runs each lookup in its own short-lived session so it can be called from worker threads."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def get_accessible_menus(self, role_id: int) -> list[ModuleNode]:
        try:
            db = self.session_factory()
        except SQLAlchemyError as exc:
            raise RepositoryError("Access data store unavailable", details={"role_id": role_id}) from exc
        try:
            return AccessRepository(db).get_accessible_menus(role_id)
        finally:
            db.close()
