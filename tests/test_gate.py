import asyncio

from app.posgate.core.error_catalog import SessionError
from app.posgate.gate import PosGate
from app.posgate.services.guards import DecisionKind, GuardDecision, GuardPaths
from app.posgate.services.permissions import ResolverState
from tests.access_helpers import PASSWORD, create_user, seed_scenario
from tests.fakes import SCENARIO_TREE, FakeAccessRepository, FakeIdentityProvider

PATHS = GuardPaths(login_path="/login", unauthorized_path="/denied")


def test_gate_walks_sign_in_and_sign_out(db_session, session_factory):
    seed_scenario(db_session)
    create_user(db_session, username="alice", role_id=1)

    async def scenario():
        gate = PosGate.from_database(session_factory, paths=PATHS)
        steps = {}
        steps["start"] = await gate.start()
        steps["anonymous"] = gate.require_auth()
        gate.session_store.sign_in("alice", PASSWORD)
        steps["loading"] = (gate.protect(100, "dashboard"), gate.sidebar())
        steps["ready"] = await gate.resolver.wait_settled()
        steps["dashboard"] = gate.protect(100, "dashboard")
        steps["users"] = gate.protect(300, "users")
        steps["sidebar"] = gate.sidebar()
        gate.session_store.sign_out()
        steps["signed_out"] = (gate.require_auth(), gate.protect(100, "dashboard"), gate.sidebar())
        gate.close()
        return steps

    steps = asyncio.run(scenario())

    assert steps["start"].state is ResolverState.UNAUTHENTICATED
    assert steps["anonymous"] == GuardDecision.redirect_to("/login")
    loading_outcome, loading_sidebar = steps["loading"]
    assert loading_outcome.decision.kind is DecisionKind.DEFER
    assert loading_outcome.content == "Loading..."
    assert loading_sidebar == []
    assert steps["ready"].state is ResolverState.READY
    assert steps["dashboard"].content == "dashboard"
    assert steps["users"].decision == GuardDecision.redirect_to("/denied")
    assert [module.module_id for module in steps["sidebar"]] == [10, 20]
    assert {menu.menu_id for module in steps["sidebar"] for menu in module.menus} == steps[
        "ready"
    ].permissions.viewable_menu_ids()
    require_auth, dashboard, sidebar = steps["signed_out"]
    assert require_auth == GuardDecision.redirect_to("/login")
    assert dashboard.decision == GuardDecision.redirect_to("/login")
    assert sidebar == []


def test_gate_reports_provider_failure_without_dropping_permissions():
    reported = []
    provider = FakeIdentityProvider({"alice": ("pw", 1)})
    gate = PosGate(provider, FakeAccessRepository({1: SCENARIO_TREE}), paths=PATHS, on_session_error=reported.append)
    outage = SessionError("identity service down")

    async def scenario():
        await gate.start()
        gate.session_store.sign_in("alice", "pw")
        await gate.resolver.wait_settled()
        provider.fail_with = outage
        current = gate.session_store.get_current_session()
        return current, gate.snapshot()

    current, snapshot = asyncio.run(scenario())

    assert current is None
    assert reported == [outage]
    assert snapshot.state is ResolverState.READY
    assert gate.protect(200, "reports").decision.kind is DecisionKind.RENDER


def test_gate_close_releases_provider_session(session_factory):
    opened = []

    class TrackedSession:
        def __init__(self):
            self._db = session_factory()
            self.closed = False
            opened.append(self)

        def __getattr__(self, name):
            return getattr(self._db, name)

        def close(self):
            self.closed = True
            self._db.close()

    gate = PosGate.from_database(TrackedSession, paths=PATHS)
    gate.close()
    gate.close()

    assert len(opened) == 1
    assert opened[0].closed is True
