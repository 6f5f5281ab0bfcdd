from typing import Literal

from pydantic import BaseModel, Field


class SidebarMenuItem(BaseModel):
    menu_id: int
    name: str
    href: str = Field(..., description="Absolute route for the menu, prefixed when stored relative.")
    active: bool = False


class SidebarModuleItem(BaseModel):
    module_id: int
    name: str
    group_name: str | None = None
    menus: list[SidebarMenuItem] = Field(default_factory=list)


class SidebarResponse(BaseModel):
    role_id: int | None
    modules: list[SidebarModuleItem]
    trace_id: str = ""


class PermissionItem(BaseModel):
    menu_id: int
    view: bool
    create: bool = False
    edit: bool = False
    delete: bool = False
    pdf: bool = False
    export: bool = False


class PermissionsResponse(BaseModel):
    role_id: int | None
    permissions: list[PermissionItem]
    trace_id: str = ""


class GuardResponse(BaseModel):
    menu_id: str
    decision: Literal["render", "redirect", "defer"]
    redirect_to: str | None = None
    trace_id: str = ""
