"""
Database Seeding Script
Creates database tables and populates them with demo users, a team and tasks
spread over the last few weeks so the analytics endpoints have data to show.
"""

import random
from datetime import datetime, timedelta

from dotenv import load_dotenv

load_dotenv()

from app.database import SessionLocal  # noqa: E402
from app.models.task import Task, TaskStatus, TaskPriority, AssignmentType  # noqa: E402
from app.models.team import Team  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402
from app.utils.security import get_password_hash  # noqa: E402
from create_tables import create_tables  # noqa: E402

DEMO_PASSWORD = "password123"

DEMO_USERS = [
    {"name": "Maya Patel", "email": "maya.manager@example.com", "role": UserRole.MANAGER},
    {"name": "Leo Brooks", "email": "leo@example.com", "role": UserRole.USER},
    {"name": "Ana Silva", "email": "ana@example.com", "role": UserRole.USER},
    {"name": "Sam Reed", "email": "sam@example.com", "role": UserRole.USER},
]

DEMO_TASKS = [
    ("Complete project documentation", "Write documentation for the task manager", ["documentation"]),
    ("Review code changes", "Review pull requests and provide feedback", ["code-review"]),
    ("Update dependencies", "Bump third party packages", ["maintenance"]),
    ("Fix authentication bug", "Resolve token expiration issue", ["bug", "security"]),
    ("Design new dashboard", "Mockups for the analytics dashboard", ["design"]),
    ("Write unit tests", "Cover the task endpoints", ["testing"]),
    ("Prepare sprint demo", "Slides and walkthrough for stakeholders", ["meeting"]),
    ("Optimize slow queries", "Add indexes for analytics queries", ["performance"]),
]


def seed_users(db):
    users = []
    for data in DEMO_USERS:
        user = db.query(User).filter(User.email == data["email"]).first()
        if not user:
            user = User(hashed_password=get_password_hash(DEMO_PASSWORD), **data)
            db.add(user)
            print(f"[SUCCESS] Created user {data['email']}")
        users.append(user)
    db.commit()
    return users


def seed_team(db, manager, members):
    team = db.query(Team).filter(Team.name == "Platform Team").first()
    if not team:
        team = Team(
            name="Platform Team",
            description="Backend and infrastructure work",
            created_by_id=manager.id,
            members=members,
        )
        db.add(team)
        db.commit()
        print("[SUCCESS] Created team Platform Team")
    return team


def seed_tasks(db, manager, members, team, days: int = 21):
    if db.query(Task).count():
        print("[INFO] Tasks already present, skipping")
        return

    rng = random.Random(42)
    now = datetime.utcnow()
    created = 0
    for offset in range(days):
        created_at = now - timedelta(days=days - offset)
        for title, description, tags in rng.sample(DEMO_TASKS, 2):
            task = Task(
                title=title,
                description=description,
                priority=rng.choice(list(TaskPriority)),
                due_date=created_at + timedelta(days=rng.randint(1, 10)),
                tags=tags,
                created_by_id=manager.id,
                created_at=created_at,
            )
            if rng.random() < 0.2:
                task.apply_assignment(AssignmentType.TEAM, team_id=team.id)
            else:
                task.apply_assignment(AssignmentType.INDIVIDUAL, user_id=rng.choice(members).id)

            roll = rng.random()
            if roll < 0.55:
                task.status = TaskStatus.COMPLETED
                task.completed_at = min(created_at + timedelta(hours=rng.randint(2, 96)), now)
            elif roll < 0.8:
                task.status = TaskStatus.IN_PROGRESS
            db.add(task)
            created += 1
    db.commit()
    print(f"[SUCCESS] Created {created} tasks")


def main():
    print(f"\n{'='*60}")
    print("Seeding Task Manager database")
    print(f"{'='*60}")

    create_tables()
    db = SessionLocal()
    try:
        manager, *members = seed_users(db)
        team = seed_team(db, manager, members)
        seed_tasks(db, manager, members, team)
    finally:
        db.close()

    print(f"\nDemo users share the password '{DEMO_PASSWORD}'")


if __name__ == "__main__":
    main()
