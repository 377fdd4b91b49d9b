"""Health & Readiness — liveness always up, readiness follows the database.

Tests:
    - liveness returns 200 without a database
    - readiness returns 503 before the database is initialized
    - readiness returns 503 when the health check fails
    - readiness returns 200 against a reachable database
"""

import bloodtrack.infrastructure.database as db_module


async def test_liveness(client):
    response = await client.get("/api/v1/health/")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_readiness_without_database(client, monkeypatch):
    monkeypatch.setattr(db_module, "db_manager", None)
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 503
    assert response.json() == {
        "status": "not_ready", "reason": "database_unavailable",
    }


async def test_readiness_when_health_check_fails(client, monkeypatch, sqlite_manager):
    async def unreachable():
        return False

    monkeypatch.setattr(sqlite_manager, "health_check", unreachable)
    monkeypatch.setattr(db_module, "db_manager", sqlite_manager)
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 503


async def test_readiness_with_database(client, monkeypatch, sqlite_manager):
    monkeypatch.setattr(db_module, "db_manager", sqlite_manager)
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready", "checks": {"database": "healthy"}}
