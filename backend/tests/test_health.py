"""Basic health check tests."""


def test_health_check(client):
    """Test that the health endpoint returns ok."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_sync_routes_registered(client):
    paths = client.get("/openapi.json").json()["paths"]
    assert "/api/sync/connections/{connection_id}" in paths
    assert "/api/sync/connections/{connection_id}/latest" in paths
    assert "/api/sync/connections/{connection_id}/unlink" in paths
