from __future__ import annotations

from dataclasses import dataclass

from app.posgate.core.config import settings
from app.posgate.repos.access import ModuleNode


@dataclass(frozen=True)
class SidebarLink:
    menu_id: int
    name: str
    href: str
    active: bool = False


@dataclass(frozen=True)
class SidebarModule:
    module_id: int
    name: str
    group_name: str | None
    links: tuple[SidebarLink, ...]


def build_href(path: str, prefix: str | None = None) -> str:
    if path.startswith("/"):
        return path
    base = (settings.MENU_PATH_PREFIX if prefix is None else prefix).rstrip("/")
    return f"{base}/{path}"


def is_active_menu(href: str, pathname: str | None) -> bool:
    if not pathname:
        return False
    return pathname == href or pathname.startswith(href + "/")


class NavigationBuilder:
    def __init__(self, repository, path_prefix: str | None = None):
        self.repository = repository
        self.path_prefix = path_prefix

    def build_sidebar(self, role_id: int) -> list[ModuleNode]:
        return list(self.repository.get_accessible_menus(role_id))

    def build_links(self, role_id: int, pathname: str | None = None) -> list[SidebarModule]:
        modules = []
        for module in self.build_sidebar(role_id):
            links = []
            for menu in module.menus:
                href = build_href(menu.path, self.path_prefix)
                links.append(
                    SidebarLink(
                        menu_id=menu.menu_id,
                        name=menu.name,
                        href=href,
                        active=is_active_menu(href, pathname),
                    )
                )
            modules.append(
                SidebarModule(
                    module_id=module.module_id,
                    name=module.name,
                    group_name=module.group_name,
                    links=tuple(links),
                )
            )
        return modules
