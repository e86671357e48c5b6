from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
import os
from dotenv import load_dotenv

# Registers SQL helper functions on every new connection
from app.utils import sql_functions  # noqa: F401

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./taskboard.db")


def engine_options(url: str) -> dict:
    """Connection arguments for the configured backend"""
    if url.startswith("sqlite"):
        # Sessions are handed across FastAPI's threadpool
        return {"connect_args": {"check_same_thread": False}}
    if url.startswith("postgresql"):
        # If you're using PostgreSQL on Render or similar, keep sslmode=require
        return {
            "connect_args": {"sslmode": os.getenv("DB_SSLMODE", "require")},
            "pool_pre_ping": True,
        }
    return {}


engine = create_engine(DATABASE_URL, **engine_options(DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

# This is required to be imported wherever DB session is needed
def get_db():
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()
