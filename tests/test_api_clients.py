"""Client directory and health endpoint tests."""

BASE = "/api/v1/clients"


def _register(client, email, **extra):
    return client.post(BASE, json={
        "email": email,
        "fullName": "Robin Vale",
        "organization": "Vale Holdings",
        **extra,
    })


class TestClients:
    def test_register_and_get(self, client):
        res = _register(client, "robin@vale.example", phoneNumber="+1 202 555 0147")
        assert res.status_code == 201
        data = res.get_json()
        assert data["onboardingStatus"] == "NOT_STARTED"
        assert data["email"] == "robin@vale.example"

        fetched = client.get(f"{BASE}/{data['id']}").get_json()
        assert fetched["phoneNumber"] == "+1 202 555 0147"

    def test_register_requires_organisation(self, client):
        res = client.post(BASE, json={"email": "robin@vale.example", "fullName": "Robin"})
        assert res.status_code == 400
        assert "organization" in res.get_json()["details"]

    def test_duplicate_email(self, client):
        _register(client, "robin@vale.example")
        assert _register(client, "robin@vale.example").status_code == 409

    def test_unknown_client(self, client):
        assert client.get(f"{BASE}/31337").status_code == 404

    def test_by_status_newest_first(self, client):
        first = _register(client, "a@vale.example").get_json()
        second = _register(client, "b@vale.example").get_json()
        res = client.get(f"{BASE}/by-status/NOT_STARTED")
        assert [c["id"] for c in res.get_json()["items"]] == [second["id"], first["id"]]

    def test_by_status_invalid(self, client):
        res = client.get(f"{BASE}/by-status/SOMEWHERE")
        assert res.status_code == 400
        assert "ONBOARDED" in res.get_json()["details"]["validOptions"]


class TestHealth:
    def test_ready(self, client):
        assert client.get("/api/v1/health/ready").get_json() == {"status": "ok"}

    def test_live_checks_database(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        assert res.get_json()["checks"]["database"]["status"] == "ok"


def test_unknown_route_returns_json_404(client):
    res = client.get("/api/v1/nowhere")
    assert res.status_code == 404
    assert res.get_json()["code"] == "ERR_NOT_FOUND"


def test_wrong_method_returns_json_405(client):
    res = client.post("/api/v1/health/ready")
    assert res.status_code == 405
    body = res.get_json()
    assert body["code"] == "ERR_METHOD_NOT_ALLOWED"
    assert body["details"] == {"method": "POST"}
