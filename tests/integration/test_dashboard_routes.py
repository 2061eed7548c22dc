from models.user import UserRole


def test_admin_dashboard_totals(client, create_user, create_store, auth_headers):
    admin_headers = auth_headers(create_user(role=UserRole.ADMIN))
    rater = create_user()
    first = create_store()
    second = create_store()
    for store in (first, second):
        client.post(f"/api/stores/{store.id}/rate", json={"value": 3}, headers=auth_headers(rater))

    resp = client.get("/api/dashboard/admin", headers=admin_headers)

    assert resp.status_code == 200
    assert resp.json() == {"totalUsers": 2, "totalStores": 2, "totalRatings": 2}


def test_store_owner_dashboard(client, create_user, create_store, auth_headers):
    owner = create_user(role=UserRole.STORE_OWNER)
    rater = create_user()
    mine = create_store(owner=owner, name="My Store")
    create_store(name="Someone Else's Store")
    client.post(f"/api/stores/{mine.id}/rate", json={"value": 2}, headers=auth_headers(rater))

    resp = client.get("/api/dashboard/store-owner", headers=auth_headers(owner))

    assert resp.status_code == 200
    stores = resp.json()["stores"]
    assert [store["name"] for store in stores] == ["My Store"]
    assert (stores[0]["averageRating"], stores[0]["ratingCount"]) == (2.0, 1)
    assert stores[0]["ratings"][0]["userEmail"] == rater.email


def test_dashboards_check_roles(client, create_user, auth_headers):
    user_headers = auth_headers(create_user())

    assert client.get("/api/dashboard/admin", headers=user_headers).status_code == 403
    assert client.get("/api/dashboard/store-owner", headers=user_headers).status_code == 403


def test_health_endpoints(client):
    assert client.get("/").json()["status"] == "healthy"
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert "X-Request-ID" in resp.headers


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/api/nowhere")
    assert resp.status_code == 404
    assert resp.json()["kind"] == "NotFound"
    assert resp.json()["success"] is False
