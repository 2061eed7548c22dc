from models.user import UserRole


def test_users_endpoints_are_admin_only(client, create_user, auth_headers):
    headers = auth_headers(create_user())

    assert client.get("/api/users", headers=headers).status_code == 403
    assert client.get("/api/users").status_code == 401


def test_list_users_with_filters(client, create_user, auth_headers):
    admin = create_user(role=UserRole.ADMIN, name="Ada Admin")
    create_user(name="Bob Buyer", email="bob@shopper.io", address="Harbour Road")
    create_user(role=UserRole.STORE_OWNER, name="Olga Owner", address="Hill Road")
    headers = auth_headers(admin)

    everyone = client.get("/api/users", headers=headers).json()
    assert [user["name"] for user in everyone] == ["Ada Admin", "Bob Buyer", "Olga Owner"]

    owners = client.get("/api/users", params={"role": "store_owner"}, headers=headers).json()
    assert [user["name"] for user in owners] == ["Olga Owner"]

    by_email = client.get("/api/users", params={"email": "SHOPPER"}, headers=headers).json()
    assert [user["email"] for user in by_email] == ["bob@shopper.io"]

    by_address = client.get(
        "/api/users", params={"address": "road", "sortBy": "name", "order": "desc"}, headers=headers
    ).json()
    assert [user["name"] for user in by_address] == ["Olga Owner", "Bob Buyer"]

    bad_sort = client.get("/api/users", params={"sortBy": "passwordHash"}, headers=headers)
    assert bad_sort.status_code == 400


def test_create_user_with_role(client, create_user, auth_headers):
    headers = auth_headers(create_user(role=UserRole.ADMIN))

    resp = client.post(
        "/api/users",
        json={"name": "New Owner", "email": "new.owner@example.com", "password": "Owner#2024", "role": "STORE_OWNER"},
        headers=headers,
    )
    assert resp.status_code == 201
    assert resp.json()["role"] == "store_owner"

    duplicate = client.post(
        "/api/users",
        json={"name": "Other", "email": "NEW.OWNER@example.com", "password": "Owner#2024"},
        headers=headers,
    )
    assert duplicate.status_code == 409

    bad_role = client.post(
        "/api/users",
        json={"name": "Other", "email": "other@example.com", "password": "Owner#2024", "role": "superuser"},
        headers=headers,
    )
    assert bad_role.status_code == 400


def test_user_detail_includes_ratings_and_stores(client, create_user, create_store, auth_headers):
    admin_headers = auth_headers(create_user(role=UserRole.ADMIN))
    owner = create_user(role=UserRole.STORE_OWNER)
    rater = create_user()
    owned = create_store(owner=owner, name="Owned Store")
    client.post(f"/api/stores/{owned.id}/rate", json={"value": 4}, headers=auth_headers(rater))

    owner_detail = client.get(f"/api/users/{owner.id}", headers=admin_headers).json()
    assert [store["name"] for store in owner_detail["stores"]] == ["Owned Store"]
    assert owner_detail["stores"][0]["averageRating"] == 4.0

    rater_detail = client.get(f"/api/users/{rater.id}", headers=admin_headers).json()
    assert [(r["storeName"], r["value"]) for r in rater_detail["ratings"]] == [("Owned Store", 4)]
    assert rater_detail["stores"] == []

    assert client.get("/api/users/missing", headers=admin_headers).status_code == 404


def test_update_user(client, create_user, auth_headers):
    headers = auth_headers(create_user(role=UserRole.ADMIN))
    user = create_user()

    resp = client.put(f"/api/users/{user.id}", json={"role": "store_owner", "name": "Promoted"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["role"] == "store_owner"
    assert resp.json()["name"] == "Promoted"

    empty = client.put(f"/api/users/{user.id}", json={}, headers=headers)
    assert empty.status_code == 400


def test_role_change_applies_to_existing_tokens(client, create_user, create_store, auth_headers):
    admin_headers = auth_headers(create_user(role=UserRole.ADMIN))
    user = create_user()
    user_headers = auth_headers(user)
    store = create_store()

    client.put(f"/api/users/{user.id}", json={"role": "store_owner"}, headers=admin_headers)

    resp = client.post(f"/api/stores/{store.id}/rate", json={"value": 5}, headers=user_headers)
    assert resp.status_code == 403


def test_delete_user_recomputes_store_aggregates(client, create_user, create_store, auth_headers):
    admin = create_user(role=UserRole.ADMIN)
    admin_headers = auth_headers(admin)
    leaving = create_user()
    staying = create_user()
    staying_headers = auth_headers(staying)
    store = create_store()
    client.post(f"/api/stores/{store.id}/rate", json={"value": 1}, headers=auth_headers(leaving))
    client.post(f"/api/stores/{store.id}/rate", json={"value": 5}, headers=staying_headers)

    resp = client.delete(f"/api/users/{leaving.id}", headers=admin_headers)
    assert resp.status_code == 200

    view = client.get(f"/api/stores/{store.id}", headers=staying_headers).json()
    assert (view["averageRating"], view["ratingCount"]) == (5.0, 1)


def test_admin_cannot_delete_self(client, create_user, auth_headers):
    admin = create_user(role=UserRole.ADMIN)

    resp = client.delete(f"/api/users/{admin.id}", headers=auth_headers(admin))

    assert resp.status_code == 403


def test_demoting_owner_releases_their_stores(client, create_user, create_store, auth_headers):
    admin_headers = auth_headers(create_user(role=UserRole.ADMIN))
    owner = create_user(role=UserRole.STORE_OWNER)
    owner_headers = auth_headers(owner)
    store = create_store(owner=owner)

    resp = client.put(f"/api/users/{owner.id}", json={"role": "user"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["role"] == "user"

    view = client.get(f"/api/stores/{store.id}", headers=admin_headers).json()
    assert view["ownerId"] is None

    # Promoting them back does not hand the store back
    client.put(f"/api/users/{owner.id}", json={"role": "store_owner"}, headers=admin_headers)
    denied = client.put(f"/api/stores/{store.id}", json={"name": "Reclaimed"}, headers=owner_headers)
    assert denied.status_code == 403
    assert client.get(f"/api/users/{owner.id}", headers=admin_headers).json()["stores"] == []
