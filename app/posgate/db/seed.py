from sqlalchemy import select

from app.posgate.core.config import settings
from app.posgate.core.security import get_password_hash
from app.posgate.db.models import Menu, MenuAccess, Module, Role, RoleModuleAccess, UserAccount


DEFAULT_ROLES = [
    (1, "ADMIN"),
    (2, "MANAGER"),
    (3, "CASHIER"),
]

# (module_id, name, group_name, sort_index)
DEFAULT_MODULES = [
    (10, "Dashboard", "Overview", 1),
    (20, "Catalog", "Inventory", 2),
    (30, "Sales", "Point of Sale", 3),
    (40, "Administration", "Settings", 4),
]

# (menu_id, module_id, name, path, sort_index)
DEFAULT_MENUS = [
    (100, 10, "Dashboard", "dashboard", 1),
    (101, 10, "Organization Dashboard", "organization-dashboard", 2),
    (200, 20, "Products", "products", 1),
    (201, 20, "Product Categories", "product-categories", 2),
    (202, 20, "Product Groups", "product-groups", 3),
    (203, 20, "Units of Measure", "uom", 4),
    (300, 30, "Customers", "customers", 1),
    (301, 30, "Product Sell Price", "ProductSellPrice", 2),
    (400, 40, "Users", "users", 1),
    (401, 40, "User Roles", "user-role", 2),
    (402, 40, "Modules", "modules", 3),
    (403, 40, "Terms & Conditions", "terms-conditions", 4),
]

DEFAULT_MODULE_ACCESS = {
    "ADMIN": [10, 20, 30, 40],
    "MANAGER": [10, 20, 30],
    "CASHIER": [30],
}

ALL_ACTIONS = ("create", "edit", "delete", "pdf", "export")

DEFAULT_MENU_ACTIONS = {
    "ADMIN": {menu_id: ALL_ACTIONS for menu_id, *_ in DEFAULT_MENUS},
    "MANAGER": {200: ("create", "edit"), 201: ("create", "edit"), 300: ("create", "edit", "export")},
    "CASHIER": {300: ("create",)},
}


def _get_or_create_roles(db) -> dict[str, Role]:
    existing = {role.name: role for role in db.execute(select(Role)).scalars().all()}
    for role_id, name in DEFAULT_ROLES:
        if name in existing:
            continue
        role = Role(role_id=role_id, name=name)
        db.add(role)
        existing[name] = role
    db.flush()
    return existing


def _get_or_create_modules(db) -> None:
    existing = set(db.execute(select(Module.module_id)).scalars().all())
    for module_id, name, group_name, sort_index in DEFAULT_MODULES:
        if module_id in existing:
            continue
        db.add(Module(module_id=module_id, name=name, group_name=group_name, sort_index=sort_index))
    db.flush()


def _get_or_create_menus(db) -> None:
    existing = set(db.execute(select(Menu.menu_id)).scalars().all())
    for menu_id, module_id, name, path, sort_index in DEFAULT_MENUS:
        if menu_id in existing:
            continue
        db.add(Menu(menu_id=menu_id, module_id=module_id, name=name, path=path, sort_index=sort_index))
    db.flush()


def _ensure_module_access(db, roles: dict[str, Role]) -> None:
    existing = {(row.role_id, row.module_id) for row in db.execute(select(RoleModuleAccess)).scalars().all()}
    for role_name, module_ids in DEFAULT_MODULE_ACCESS.items():
        role = roles[role_name]
        for module_id in module_ids:
            if (role.role_id, module_id) in existing:
                continue
            db.add(RoleModuleAccess(role_id=role.role_id, module_id=module_id))
    db.flush()


def _ensure_menu_access(db, roles: dict[str, Role]) -> None:
    existing = {(row.role_id, row.menu_id) for row in db.execute(select(MenuAccess)).scalars().all()}
    for role_name, grants in DEFAULT_MENU_ACTIONS.items():
        role = roles[role_name]
        for menu_id, actions in grants.items():
            if (role.role_id, menu_id) in existing:
                continue
            db.add(
                MenuAccess(
                    role_id=role.role_id,
                    menu_id=menu_id,
                    can_create="create" in actions,
                    can_edit="edit" in actions,
                    can_delete="delete" in actions,
                    can_pdf="pdf" in actions,
                    can_export="export" in actions,
                )
            )
    db.flush()


def _ensure_admin_user(db, roles: dict[str, Role]) -> None:
    user = (
        db.execute(select(UserAccount).where(UserAccount.username == settings.SEED_ADMIN_USERNAME))
        .scalars()
        .first()
    )
    if user:
        return
    role = roles.get(settings.SEED_ADMIN_ROLE.upper())
    db.add(
        UserAccount(
            username=settings.SEED_ADMIN_USERNAME,
            email=settings.SEED_ADMIN_EMAIL,
            hashed_password=get_password_hash(settings.SEED_ADMIN_PASSWORD),
            role_id=role.role_id if role else None,
            is_active=True,
        )
    )
    db.flush()


def run_seed(db) -> None:
    roles = _get_or_create_roles(db)
    _get_or_create_modules(db)
    _get_or_create_menus(db)
    _ensure_module_access(db, roles)
    _ensure_menu_access(db, roles)
    _ensure_admin_user(db, roles)
    db.commit()


if __name__ == "__main__":
    from app.posgate.db.session import SessionLocal, init_db

    init_db()
    with SessionLocal() as session:
        run_seed(session)
