from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os

from app.database import Base, engine
from app import models  # noqa: F401  registers every table on Base.metadata
from app.routers import auth, tasks, teams, analytics, admin, admin_users, admin_tasks, activity_logs
from app.utils.errors import register_exception_handlers
from app.utils.rate_limit import InMemoryRateLimitStore
from app.utils.request_logging import RequestLoggingMiddleware

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Task Manager API")

# Swap for a shared store when running more than one worker
app.state.rate_limit_store = InMemoryRateLimitStore()

# CORS configuration
origins = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

# Route registration
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(tasks.router, prefix="/api/tasks", tags=["Tasks"])
app.include_router(teams.router, prefix="/api/teams", tags=["Teams"])
app.include_router(analytics.router, prefix="/api/analytics", tags=["Analytics"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
app.include_router(admin_users.router, prefix="/api/admin", tags=["Admin Users"])
app.include_router(admin_tasks.router, prefix="/api/admin", tags=["Admin Tasks"])
app.include_router(activity_logs.router, prefix="/api/admin", tags=["Activity Logs"])


@app.on_event("startup")
def startup_event():
    """Create missing tables when the application starts"""
    logger.info("Starting Task Manager API...")
    Base.metadata.create_all(bind=engine)


# Root route
@app.get("/")
def read_root():
    return {"message": "Task Manager API"}


@app.get("/api/health")
def health():
    return {"status": "ok"}
