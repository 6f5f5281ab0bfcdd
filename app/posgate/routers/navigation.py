import logging

from fastapi import APIRouter, Depends, Request

from app.posgate.core.deps import get_optional_session, require_session
from app.posgate.core.error_catalog import RepositoryError
from app.posgate.core.logging import log_json
from app.posgate.db.session import get_db
from app.posgate.repos.access import AccessRepository
from app.posgate.schemas.navigation import (
    GuardResponse,
    PermissionItem,
    PermissionsResponse,
    SidebarMenuItem,
    SidebarModuleItem,
    SidebarResponse,
)
from app.posgate.services.guards import GuardPaths, decide_menu_access
from app.posgate.services.navigation import NavigationBuilder
from app.posgate.services.permissions import EMPTY_PERMISSIONS, compile_permission_set
from app.posgate.services.session_store import Session

router = APIRouter()
logger = logging.getLogger("posgate.navigation")


def _trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", "")


@router.get("/sidebar", response_model=SidebarResponse, summary="Sidebar tree for the caller's role")
async def sidebar(
    request: Request,
    pathname: str | None = None,
    session: Session = Depends(require_session),
    db=Depends(get_db),
):
    modules = []
    if session.role_id is not None:
        builder = NavigationBuilder(AccessRepository(db))
        modules = builder.build_links(session.role_id, pathname=pathname)
    return SidebarResponse(
        role_id=session.role_id,
        modules=[
            SidebarModuleItem(
                module_id=module.module_id,
                name=module.name,
                group_name=module.group_name,
                menus=[
                    SidebarMenuItem(menu_id=link.menu_id, name=link.name, href=link.href, active=link.active)
                    for link in module.links
                ],
            )
            for module in modules
        ],
        trace_id=_trace_id(request),
    )


@router.get("/permissions", response_model=PermissionsResponse, summary="Permission set for the caller's role")
async def permissions(request: Request, session: Session = Depends(require_session), db=Depends(get_db)):
    permission_set = EMPTY_PERMISSIONS
    if session.role_id is not None:
        permission_set = compile_permission_set(AccessRepository(db).get_accessible_menus(session.role_id))
    return PermissionsResponse(
        role_id=session.role_id,
        permissions=[PermissionItem(**permission_set[menu_id].as_dict(), menu_id=menu_id) for menu_id in permission_set],
        trace_id=_trace_id(request),
    )


@router.get("/guard/{menu_id}", response_model=GuardResponse, summary="Route guard decision for a menu")
async def guard(
    request: Request,
    menu_id: str,
    session: Session | None = Depends(get_optional_session),
    db=Depends(get_db),
):
    user = session.identity if session is not None else None
    permission_set = EMPTY_PERMISSIONS
    if session is not None and session.role_id is not None:
        try:
            permission_set = compile_permission_set(AccessRepository(db).get_accessible_menus(session.role_id))
        except RepositoryError as exc:
            log_json(
                logger,
                {"event": "guard.repository_error", "trace_id": _trace_id(request), "error": exc.message},
                level=logging.ERROR,
            )
            user = None
    decision = decide_menu_access(user, permission_set, menu_id, False, paths=GuardPaths.from_settings())
    return GuardResponse(
        menu_id=menu_id,
        decision=decision.kind.value,
        redirect_to=decision.path,
        trace_id=_trace_id(request),
    )
