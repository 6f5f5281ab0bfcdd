from sqlalchemy import func, select

from app.posgate.db.models import MenuAccess, RoleModuleAccess, UserAccount
from app.posgate.db.seed import DEFAULT_MENUS, run_seed
from app.posgate.repos.access import AccessRepository
from tests.access_helpers import auth_headers, login


def _count(db_session, model):
    return db_session.execute(select(func.count()).select_from(model)).scalar_one()


def test_seed_is_idempotent(db_session):
    run_seed(db_session)
    counts = [_count(db_session, model) for model in (RoleModuleAccess, MenuAccess, UserAccount)]

    run_seed(db_session)

    assert [_count(db_session, model) for model in (RoleModuleAccess, MenuAccess, UserAccount)] == counts


def test_seeded_admin_sees_every_menu(db_session):
    run_seed(db_session)

    tree = AccessRepository(db_session).get_accessible_menus(1)

    assert [module.module_id for module in tree] == [10, 20, 30, 40]
    assert {menu.menu_id for module in tree for menu in module.menus} == {menu_id for menu_id, *_ in DEFAULT_MENUS}
    assert all(menu.actions == frozenset({"create", "edit", "delete", "pdf", "export"}) for module in tree for menu in module.menus)


def test_seeded_cashier_only_sees_sales(db_session):
    run_seed(db_session)

    tree = AccessRepository(db_session).get_accessible_menus(3)

    assert [(module.module_id, [menu.menu_id for menu in module.menus]) for module in tree] == [(30, [300, 301])]
    assert tree[0].menus[0].actions == frozenset({"create"})


def test_seeded_admin_can_sign_in(client, db_session):
    run_seed(db_session)

    token = login(client, "admin", "change-me")
    response = client.get("/posgate/navigation/sidebar", headers=auth_headers(token))

    assert [module["name"] for module in response.json()["modules"]] == ["Dashboard", "Catalog", "Sales", "Administration"]
