from datetime import datetime, timedelta

from app.models.activity_log import ActivityLog, ActivityAction, LogStatus
from app.models.user import User, AccountStatus
from app.services import email_service
from app.utils.security import verify_password
from conftest import DEFAULT_PASSWORD


def login(client, email, password=DEFAULT_PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def failed_login_messages(db, user_id):
    entries = (
        db.query(ActivityLog)
        .filter(ActivityLog.action == ActivityAction.LOGIN_FAILED, ActivityLog.performed_by_id == user_id)
        .order_by(ActivityLog.id)
        .all()
    )
    return [entry.error_message for entry in entries]


def test_register_and_duplicate(client, db):
    payload = {"name": "Ada", "email": "Ada@Example.com", "password": "secret123"}

    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["token"]
    assert body["user"]["email"] == "ada@example.com"
    assert body["user"]["role"] == "user"

    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 400
    assert response.json()["message"] == "User already exists with this email"

    assert db.query(ActivityLog).filter(ActivityLog.action == ActivityAction.USER_REGISTER).count() == 1


def test_register_rejects_short_password(client, db):
    response = client.post("/api/auth/register", json={"name": "Ada", "email": "ada@example.com", "password": "123"})
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_login_success_resets_counter(client, db, make_user):
    user = make_user(failed_login_attempts=3)

    response = login(client, user.email)
    assert response.status_code == 200
    assert response.json()["user"]["id"] == user.id

    db.refresh(user)
    assert user.failed_login_attempts == 0
    assert user.last_login is not None
    assert db.query(ActivityLog).filter(ActivityLog.action == ActivityAction.USER_LOGIN).count() == 1


def test_login_unknown_email(client, db):
    response = login(client, "ghost@example.com")
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"
    assert db.query(ActivityLog).count() == 0


def test_lockout_after_five_failures(client, db, make_user):
    user = make_user()

    for _ in range(5):
        response = login(client, user.email, "wrong-password")
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    db.refresh(user)
    assert user.failed_login_attempts == 5
    assert user.lockout_until is not None

    # Even the right password is refused while locked
    response = login(client, user.email)
    assert response.status_code == 403
    assert response.json()["message"] == (
        "Account is temporarily locked. Please try again later or contact support."
    )

    messages = failed_login_messages(db, user.id)
    assert messages[:4] == ["Invalid password"] * 4
    assert messages[4] == "Account locked after 5 failed login attempts"
    assert messages[5] == "Account is locked"


def test_expired_lock_starts_fresh_window(client, db, make_user):
    user = make_user(failed_login_attempts=5, lockout_until=datetime.utcnow() - timedelta(minutes=1))

    response = login(client, user.email, "wrong-password")
    assert response.status_code == 401

    db.refresh(user)
    assert user.failed_login_attempts == 1
    assert user.lockout_until is None


def test_lock_lasts_two_hours(db, make_user):
    user = make_user()
    now = datetime(2024, 3, 1, 12)
    for _ in range(4):
        assert user.register_failed_login(5, timedelta(minutes=120), now) is False
    assert user.register_failed_login(5, timedelta(minutes=120), now) is True
    assert user.lockout_until == now + timedelta(hours=2)
    assert user.is_locked(now + timedelta(minutes=119))
    assert not user.is_locked(now + timedelta(minutes=120))


def test_inactive_user_cannot_login(client, db, make_user):
    user = make_user(is_active=False)

    response = login(client, user.email)
    assert response.status_code == 401
    assert failed_login_messages(db, user.id) == ["Account is not active"]


def test_me_and_invalid_token(client, make_user, headers):
    user = make_user()

    response = client.get("/api/auth/me", headers=headers(user))
    assert response.status_code == 200
    assert response.json()["email"] == user.email

    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["message"] == "Could not validate credentials"


def test_change_password(client, db, make_user, headers):
    user = make_user()

    response = client.put(
        "/api/auth/change-password",
        json={"current_password": "wrong", "new_password": "another1"},
        headers=headers(user),
    )
    assert response.status_code == 400

    response = client.put(
        "/api/auth/change-password",
        json={"current_password": DEFAULT_PASSWORD, "new_password": "another1"},
        headers=headers(user),
    )
    assert response.status_code == 200
    db.refresh(user)
    assert verify_password("another1", user.hashed_password)

    statuses = [
        entry.status for entry in
        db.query(ActivityLog).filter(ActivityLog.action == ActivityAction.PASSWORD_CHANGE).order_by(ActivityLog.id)
    ]
    assert statuses == [LogStatus.FAILED, LogStatus.SUCCESS]


def test_forgot_password_unknown_email_is_generic(client, db):
    response = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
    assert response.status_code == 200
    assert "reset_token" not in response.json()


def test_password_reset_flow(client, db, make_user):
    user = make_user(failed_login_attempts=5, lockout_until=datetime.utcnow() + timedelta(hours=1))

    response = client.post("/api/auth/forgot-password", json={"email": user.email})
    assert response.status_code == 200
    token = response.json()["reset_token"]
    assert response.json()["reset_url"].endswith(f"/reset-password/{token}")

    db.refresh(user)
    # Only the hash is stored
    assert user.reset_password_token != token

    response = client.post("/api/auth/reset-password", json={"token": token, "new_password": "fresh-pass"})
    assert response.status_code == 200

    db.refresh(user)
    assert user.reset_password_token is None
    assert user.lockout_until is None
    assert login(client, user.email, "fresh-pass").status_code == 200

    response = client.post("/api/auth/reset-password", json={"token": token, "new_password": "again123"})
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired reset token"


def test_expired_reset_token(client, db, make_user):
    user = make_user()
    token = client.post("/api/auth/forgot-password", json={"email": user.email}).json()["reset_token"]

    user.reset_password_expire = datetime.utcnow() - timedelta(seconds=1)
    db.commit()

    response = client.post("/api/auth/reset-password", json={"token": token, "new_password": "fresh-pass"})
    assert response.status_code == 400


def test_email_failure_clears_token(client, db, make_user, monkeypatch):
    user = make_user()

    def fail(*args, **kwargs):
        raise email_service.EmailDeliveryError("connection refused")

    monkeypatch.setattr(email_service, "is_email_configured", lambda: True)
    monkeypatch.setattr(email_service, "send_password_reset_email", fail)

    response = client.post("/api/auth/forgot-password", json={"email": user.email})
    assert response.status_code == 500
    assert response.json()["message"] == "Email could not be sent"

    db.refresh(user)
    assert user.reset_password_token is None
    assert user.reset_password_expire is None


def test_email_sent(client, db, make_user, monkeypatch):
    user = make_user()
    sent = []

    monkeypatch.setattr(email_service, "is_email_configured", lambda: True)
    monkeypatch.setattr(email_service, "send_password_reset_email", lambda *args: sent.append(args))

    response = client.post("/api/auth/forgot-password", json={"email": user.email})
    assert response.status_code == 200
    assert "reset_token" not in response.json()
    assert sent[0][0] == user.email
    assert sent[0][3] == 10


def test_deactivated_token_holder_is_rejected(client, db, make_user, headers):
    user = make_user()
    auth = headers(user)
    db.query(User).filter(User.id == user.id).update({User.is_active: False})
    db.commit()

    assert client.get("/api/auth/me", headers=auth).status_code == 401


def test_suspended_token_holder_is_rejected(client, db, make_user, headers):
    user = make_user()
    auth = headers(user)
    db.query(User).filter(User.id == user.id).update({User.account_status: AccountStatus.SUSPENDED})
    db.commit()

    assert client.get("/api/tasks/", headers=auth).status_code == 401
    assert client.post("/api/tasks/", json={"title": "Sneaky"}, headers=auth).status_code == 401


def test_locked_token_holder_is_rejected(client, db, make_user, headers):
    user = make_user()
    auth = headers(user)
    db.query(User).filter(User.id == user.id).update({User.lockout_until: datetime.utcnow() + timedelta(hours=1)})
    db.commit()

    response = client.get("/api/tasks/", headers=auth)
    assert response.status_code == 401
    assert response.json()["message"].startswith("Account is temporarily locked")
