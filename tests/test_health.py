from sqlalchemy.exc import OperationalError

import app.posgate.routers.health as health_router


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["trace_id"]


def test_ready(client):
    response = client.get("/ready")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ready"
    assert payload["trace_id"]


def test_ready_reports_unavailable_database(client):
    class BrokenSession:
        def execute(self, *_args, **_kwargs):
            raise OperationalError("SELECT 1", {}, Exception("database is unreachable"))

    client.app.dependency_overrides[health_router.get_db] = lambda: BrokenSession()
    try:
        response = client.get("/ready")
    finally:
        client.app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.json()["code"] == "DB_UNAVAILABLE"
