import os

# Settings are read at import time, so they must be in place before the app loads
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "test"
os.environ["USER_DELETION_TASK_POLICY"] = "delete"
for key in ("SMTP_HOST", "SMTP_USER", "SMTP_PASSWORD"):
    os.environ[key] = ""

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.database import Base, get_db  # noqa: E402
from app.models.task import Task, TaskStatus, TaskPriority, AssignmentType  # noqa: E402
from app.models.team import Team  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402
from app.utils.rate_limit import InMemoryRateLimitStore  # noqa: E402
from app.utils.security import create_access_token, hash_password  # noqa: E402
from main import app  # noqa: E402

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

DEFAULT_PASSWORD = "secret123"


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.state.rate_limit_store = InMemoryRateLimitStore()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role=UserRole.USER, name=None, email=None, password=DEFAULT_PASSWORD, **fields):
        counter["n"] += 1
        user = User(
            name=name or f"{role.value.title()} {counter['n']}",
            email=email or f"{role.value}{counter['n']}@example.com",
            hashed_password=hash_password(password),
            role=role,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_team(db):
    def _make(creator, members=(), name=None, is_active=True):
        team = Team(
            name=name or f"Team {creator.id}-{len(db.query(Team).all()) + 1}",
            created_by_id=creator.id,
            members=list(members),
            is_active=is_active,
        )
        db.add(team)
        db.commit()
        db.refresh(team)
        return team

    return _make


@pytest.fixture
def make_task(db):
    def _make(
        creator,
        assignee=None,
        team=None,
        title="Task",
        status=TaskStatus.PENDING,
        priority=TaskPriority.MEDIUM,
        created_at=None,
        completed_at=None,
        due_date=None,
        tags=None,
    ):
        task = Task(
            title=title,
            priority=priority,
            created_by_id=creator.id,
            created_at=created_at or datetime.utcnow(),
            due_date=due_date,
            tags=tags or [],
        )
        if team is not None:
            task.apply_assignment(AssignmentType.TEAM, team_id=team.id)
        elif assignee is not None and assignee.id != creator.id:
            task.apply_assignment(AssignmentType.INDIVIDUAL, user_id=assignee.id)
        else:
            task.apply_assignment(AssignmentType.SELF, user_id=creator.id)

        task.status = status
        if completed_at is not None:
            task.completed_at = completed_at
        db.add(task)
        db.commit()
        db.refresh(task)
        return task

    return _make


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def headers():
    return auth_headers
