from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from app.models.activity_log import ActivityLog, ActivityAction
from app.models.task import Task, TaskStatus, TaskPriority
from app.models.user import UserRole


def test_requires_authentication(client, db):
    response = client.get("/api/tasks/")
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Not authenticated"}


def test_user_lists_only_visible_tasks(client, make_user, make_team, make_task, headers):
    user = make_user()
    other = make_user()
    manager = make_user(UserRole.MANAGER)
    team = make_team(manager, members=[user])

    make_task(manager, assignee=user, title="assigned")
    make_task(manager, team=team, title="team")
    make_task(user, title="personal")
    make_task(manager, assignee=other, title="hidden")

    response = client.get("/api/tasks/", headers=headers(user))
    assert response.status_code == 200
    assert {task["title"] for task in response.json()} == {"assigned", "team", "personal"}

    response = client.get("/api/tasks/", headers=headers(manager))
    assert len(response.json()) == 4


def test_list_filters_by_status_and_sorts_by_priority(client, make_user, make_task, headers):
    manager = make_user(UserRole.MANAGER)
    make_task(manager, title="low", priority=TaskPriority.LOW)
    make_task(manager, title="high", priority=TaskPriority.HIGH)
    make_task(manager, title="done", status=TaskStatus.COMPLETED)

    response = client.get("/api/tasks/?status=pending&sort_by=priority", headers=headers(manager))
    assert [task["title"] for task in response.json()] == ["high", "low"]


def test_create_defaults_to_self_assignment(client, db, make_user, headers):
    user = make_user()

    response = client.post("/api/tasks/", json={"title": "  Write notes  ", "tags": ["docs", " "]}, headers=headers(user))
    assert response.status_code == 201
    body = response.json()
    assert body["title"] == "Write notes"
    assert body["tags"] == ["docs"]
    assert body["assignment"] == {"type": "self"}
    assert body["assigned_to_id"] == user.id
    assert body["completed_at"] is None

    actions = [entry.action for entry in db.query(ActivityLog).all()]
    assert actions == [ActivityAction.TASK_CREATED]


def test_create_completed_task_stamps_completed_at(client, make_user, headers):
    user = make_user()

    response = client.post("/api/tasks/", json={"title": "Done already", "status": "completed"}, headers=headers(user))
    assert response.status_code == 201
    assert response.json()["completed_at"] is not None


def test_empty_title_is_rejected(client, make_user, headers):
    response = client.post("/api/tasks/", json={"title": "   "}, headers=headers(make_user()))
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"


def test_user_cannot_assign_to_others(client, make_user, headers):
    user = make_user()
    other = make_user()

    response = client.post(
        "/api/tasks/",
        json={"title": "Delegate", "assignment": {"type": "individual", "user_id": other.id}},
        headers=headers(user),
    )
    assert response.status_code == 403


def test_manager_assigns_to_team(client, db, make_user, make_team, headers):
    manager = make_user(UserRole.MANAGER)
    member = make_user()
    team = make_team(manager, members=[member])

    response = client.post(
        "/api/tasks/",
        json={"title": "Team work", "assignment": {"type": "team", "team_id": team.id}},
        headers=headers(manager),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["assignment"] == {"type": "team", "team_id": team.id}
    assert body["assigned_to_id"] is None
    assert body["team"]["name"] == team.name

    assigned = db.query(ActivityLog).filter(ActivityLog.action == ActivityAction.TASK_ASSIGNED).one()
    assert assigned.changes["assignment"]["to"]["team_id"] == team.id

    # The member now sees it
    response = client.get("/api/tasks/", headers=headers(member))
    assert [task["title"] for task in response.json()] == ["Team work"]


def test_assignment_to_unknown_user_is_not_found(client, make_user, headers):
    response = client.post(
        "/api/tasks/",
        json={"title": "Nobody", "assignment": {"type": "individual", "user_id": 999}},
        headers=headers(make_user(UserRole.MANAGER)),
    )
    assert response.status_code == 404
    assert response.json()["message"] == "Assigned user not found"


def test_get_task_not_found_and_forbidden(client, make_user, make_task, headers):
    user = make_user()
    manager = make_user(UserRole.MANAGER)
    task = make_task(manager, assignee=make_user())

    assert client.get("/api/tasks/999", headers=headers(user)).status_code == 404

    response = client.get(f"/api/tasks/{task.id}", headers=headers(user))
    assert response.status_code == 403
    assert response.json()["message"] == "Not authorized to view this task"

    assert client.get(f"/api/tasks/{task.id}", headers=headers(manager)).status_code == 200


def test_user_cannot_change_priority(client, make_user, make_task, headers):
    user = make_user()
    task = make_task(make_user(UserRole.MANAGER), assignee=user)

    response = client.put(f"/api/tasks/{task.id}", json={"priority": "high"}, headers=headers(user))
    assert response.status_code == 403
    assert response.json()["message"] == "Field not permitted for role: priority"


def test_user_updates_status_of_own_task(client, make_user, make_task, headers):
    user = make_user()
    task = make_task(make_user(UserRole.MANAGER), assignee=user)

    response = client.patch(f"/api/tasks/{task.id}/status", json={"status": "completed"}, headers=headers(user))
    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert response.json()["completed_at"] is not None

    response = client.patch(f"/api/tasks/{task.id}/status", json={"status": "in-progress"}, headers=headers(user))
    assert response.json()["status"] == "in-progress"
    assert response.json()["completed_at"] is None


def test_user_cannot_update_status_of_team_task(client, make_user, make_team, make_task, headers):
    user = make_user()
    manager = make_user(UserRole.MANAGER)
    task = make_task(manager, team=make_team(manager, members=[user]))

    response = client.patch(f"/api/tasks/{task.id}/status", json={"status": "completed"}, headers=headers(user))
    assert response.status_code == 403
    assert response.json()["message"] == "Not authorized for this task"


def test_put_keeps_completed_at_consistent(client, db, make_user, make_task, headers):
    manager = make_user(UserRole.MANAGER)
    task = make_task(manager)

    response = client.put(f"/api/tasks/{task.id}", json={"status": "completed", "title": "Shipped"}, headers=headers(manager))
    assert response.status_code == 200
    completed_at = response.json()["completed_at"]
    assert completed_at is not None

    # Re-saving as completed keeps the original timestamp
    response = client.put(f"/api/tasks/{task.id}", json={"status": "completed"}, headers=headers(manager))
    assert response.json()["completed_at"] == completed_at

    response = client.put(f"/api/tasks/{task.id}", json={"status": "pending"}, headers=headers(manager))
    assert response.json()["completed_at"] is None

    update = (
        db.query(ActivityLog)
        .filter(ActivityLog.action == ActivityAction.TASK_UPDATED)
        .order_by(ActivityLog.id)
        .first()
    )
    assert update.changes["status"] == {"from": "pending", "to": "completed"}
    assert update.changes["title"] == {"from": "Task", "to": "Shipped"}


def test_database_rejects_inconsistent_completion(db, make_user):
    user = make_user()
    db.add(Task(title="broken", created_by_id=user.id, assigned_to_id=user.id, completed_at=datetime.utcnow()))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_last_write_wins(client, make_user, make_task, headers):
    manager = make_user(UserRole.MANAGER)
    admin = make_user(UserRole.ADMIN)
    task = make_task(manager)

    client.put(f"/api/tasks/{task.id}", json={"title": "First"}, headers=headers(manager))
    client.put(f"/api/tasks/{task.id}", json={"title": "Second"}, headers=headers(admin))

    assert client.get(f"/api/tasks/{task.id}", headers=headers(manager)).json()["title"] == "Second"


def test_reassign_to_self_points_at_creator(client, make_user, make_task, headers):
    manager = make_user(UserRole.MANAGER)
    admin = make_user(UserRole.ADMIN)
    task = make_task(manager, assignee=make_user())

    response = client.patch(f"/api/tasks/{task.id}/reassign", json={"assignment": {"type": "self"}}, headers=headers(admin))
    assert response.status_code == 200
    assert response.json()["assigned_to_id"] == manager.id
    assert response.json()["assignment"] == {"type": "self"}


def test_user_cannot_delete(client, make_user, make_task, headers):
    user = make_user()
    task = make_task(user)

    response = client.delete(f"/api/tasks/{task.id}", headers=headers(user))
    assert response.status_code == 403
    assert response.json()["message"] == "Not authorized to delete tasks"


def test_manager_deletes_task(client, db, make_user, make_task, headers):
    manager = make_user(UserRole.MANAGER)
    task = make_task(manager)
    task_id = task.id

    response = client.delete(f"/api/tasks/{task_id}", headers=headers(manager))
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert db.query(Task).filter(Task.id == task_id).first() is None

    entry = db.query(ActivityLog).filter(ActivityLog.action == ActivityAction.TASK_DELETED).one()
    assert entry.target_entity_id == task_id


def test_search_respects_visibility(client, make_user, make_task, headers):
    user = make_user()
    manager = make_user(UserRole.MANAGER)
    make_task(manager, assignee=user, title="Fix login bug")
    make_task(manager, assignee=manager, title="Fix billing bug")
    make_task(user, title="Buy milk", tags=["errand"])

    response = client.get("/api/tasks/search?q=bug", headers=headers(user))
    assert [task["title"] for task in response.json()] == ["Fix login bug"]

    response = client.get("/api/tasks/search?q=errand", headers=headers(user))
    assert [task["title"] for task in response.json()] == ["Buy milk"]


def test_search_takes_wildcards_literally(client, make_user, make_task, headers):
    user = make_user()
    make_task(user, title="rename config_file", tags=["chores", "home"])
    make_task(user, title="Plain title", tags=["errand"])

    def titles(term):
        response = client.get("/api/tasks/search", params={"q": term}, headers=headers(user))
        assert response.status_code == 200
        return [task["title"] for task in response.json()]

    assert titles("%") == []
    assert titles("_") == ["rename config_file"]
    assert titles("[") == []
    assert titles('", "') == []
    assert titles("hom") == ["rename config_file"]


def test_assignable_users_requires_capability(client, make_user, headers):
    user = make_user()
    manager = make_user(UserRole.MANAGER)

    assert client.get("/api/tasks/users", headers=headers(user)).status_code == 403
    response = client.get("/api/tasks/users", headers=headers(manager))
    assert {row["id"] for row in response.json()} == {user.id, manager.id}
