from datetime import datetime, timedelta

from app.models.user import UserRole
from app.utils.rate_limit import InMemoryRateLimitStore, rate_limit_key


def new_user_payload(n):
    return {"name": f"New {n}", "email": f"new{n}@example.com", "password": "secret123"}


def test_store_counts_within_window():
    store = InMemoryRateLimitStore()
    now = datetime(2024, 3, 1, 12)

    assert store.hit("k", 60, now).count == 1
    assert store.hit("k", 60, now + timedelta(seconds=30)).count == 2
    assert store.hit("other", 60, now).count == 1

    state = store.hit("k", 60, now + timedelta(seconds=60))
    assert state.count == 1
    assert state.reset_at == now + timedelta(seconds=120)


def test_store_reset():
    store = InMemoryRateLimitStore()
    now = datetime(2024, 3, 1, 12)
    store.hit("k", 60, now)
    store.reset()
    assert store.hit("k", 60, now).count == 1


def test_key_includes_user_and_path():
    assert rate_limit_key(7, "/api/admin/users") == "7:/api/admin/users"
    assert rate_limit_key(None, "/x") == "anonymous:/x"


def test_admin_create_user_is_throttled(client, make_user, headers):
    admin = make_user(UserRole.ADMIN)

    for n in range(5):
        response = client.post("/api/admin/users", json=new_user_payload(n), headers=headers(admin))
        assert response.status_code == 201

    response = client.post("/api/admin/users", json=new_user_payload(5), headers=headers(admin))
    assert response.status_code == 429
    assert response.json()["message"] == "Too many requests, please try again later."
    assert 1 <= int(response.headers["Retry-After"]) <= 60


def test_each_admin_has_own_counter(client, make_user, headers):
    first = make_user(UserRole.ADMIN)
    second = make_user(UserRole.ADMIN)

    for n in range(5):
        client.post("/api/admin/users", json=new_user_payload(n), headers=headers(first))
    assert client.post("/api/admin/users", json=new_user_payload(9), headers=headers(first)).status_code == 429

    response = client.post("/api/admin/users", json=new_user_payload(10), headers=headers(second))
    assert response.status_code == 201


def test_store_drops_expired_windows():
    store = InMemoryRateLimitStore()
    now = datetime(2024, 3, 1, 12)
    store.hit("a", 60, now)
    store.hit("b", 60, now + timedelta(seconds=61))

    assert list(store._windows) == ["b"]


def test_admin_delete_user_is_throttled_across_targets(client, make_user, headers):
    admin = make_user(UserRole.ADMIN)
    targets = [make_user() for _ in range(6)]

    for user in targets[:5]:
        assert client.delete(f"/api/admin/users/{user.id}", headers=headers(admin)).status_code == 200

    response = client.delete(f"/api/admin/users/{targets[5].id}", headers=headers(admin))
    assert response.status_code == 429
