import pytest

from app.models.activity_log import ActivityLog, ActivityAction, ActivityLogImmutableError, EntityType, LogStatus
from app.models.task import Task
from app.models.user import UserRole
from app.services import audit_service
from app.services.audit_service import AuditService


def test_record_returns_entry(db, make_user):
    user = make_user()

    entry = AuditService.record(
        db, ActivityAction.USER_LOGIN, performed_by_id=user.id, target_type=EntityType.USER, target_id=user.id
    )
    assert entry is not None
    assert entry.id is not None
    assert entry.status == LogStatus.SUCCESS
    assert entry.performer.id == user.id


def test_record_returns_none_on_failure(db, monkeypatch):
    def broken(**kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(audit_service, "ActivityLog", broken)

    assert AuditService.record(db, ActivityAction.USER_LOGIN, performed_by_id=1) is None


def test_audit_failure_does_not_fail_the_operation(client, db, make_user, headers, monkeypatch):
    def broken(**kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(audit_service, "ActivityLog", broken)
    user = make_user()

    response = client.post("/api/tasks/", json={"title": "Still saved"}, headers=headers(user))
    assert response.status_code == 201
    assert db.query(Task).filter(Task.title == "Still saved").count() == 1
    assert db.query(ActivityLog).count() == 0


def test_entries_are_append_only(db, make_user):
    entry = AuditService.record(db, ActivityAction.USER_LOGIN, performed_by_id=make_user().id)

    entry.details = "rewritten"
    with pytest.raises(ActivityLogImmutableError):
        db.commit()
    db.rollback()

    db.refresh(entry)
    assert entry.details is None


def test_request_metadata_is_captured(client, db, make_user):
    user = make_user()
    client.post(
        "/api/auth/login",
        json={"email": user.email, "password": "wrong-password"},
        headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "User-Agent": "pytest-agent"},
    )

    entry = db.query(ActivityLog).one()
    assert entry.ip_address == "203.0.113.7"
    assert entry.user_agent == "pytest-agent"


def test_status_change_records_diff(client, db, make_user, make_task, headers):
    manager = make_user(UserRole.MANAGER)
    task = make_task(manager)

    client.patch(f"/api/tasks/{task.id}/status", json={"status": "in-progress"}, headers=headers(manager))

    entry = db.query(ActivityLog).filter(ActivityLog.action == ActivityAction.TASK_STATUS_CHANGED).one()
    assert entry.changes == {"status": {"from": "pending", "to": "in-progress"}}
    assert entry.target_entity_type == EntityType.TASK
    assert entry.target_entity_id == task.id
