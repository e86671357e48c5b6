# create_tables.py
import os
import sys

from app.database import Base, SessionLocal, engine
from app import models  # noqa: F401
from app.models.user import User, UserRole, AccountStatus
from app.utils.security import get_password_hash


def create_tables(reset: bool = False):
    """Create all tables, dropping existing ones first when reset is set"""
    try:
        if reset:
            Base.metadata.drop_all(bind=engine)
            print("Existing tables dropped")

        Base.metadata.create_all(bind=engine)
        print("All tables created successfully!")

        create_default_admin()

    except Exception as e:
        print(f"Error creating tables: {e}")
        raise


def create_default_admin():
    """Create a default admin user"""
    email = os.getenv("ADMIN_EMAIL", "admin@example.com").lower()
    password = os.getenv("ADMIN_PASSWORD", "admin123")

    db = SessionLocal()
    try:
        if db.query(User).filter(User.email == email).first():
            print("Admin user already exists")
            return

        db.add(User(
            name="System Administrator",
            email=email,
            hashed_password=get_password_hash(password),
            role=UserRole.ADMIN,
            is_active=True,
            account_status=AccountStatus.ACTIVE,
        ))
        db.commit()
        print("Default admin user created!")
        print(f"   Email: {email}")
        print(f"   Password: {password}")
    finally:
        db.close()


if __name__ == "__main__":
    create_tables(reset="--reset" in sys.argv)
