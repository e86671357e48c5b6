from sqlalchemy.orm import Session
from sqlalchemy import func, case, and_
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List, Dict, Any
import logging

from app.models.task import Task, TaskStatus, TaskPriority
from app.models.user import User
from app.utils.sql_functions import day_bucket, week_bucket, day_of_week, hours_between

logger = logging.getLogger(__name__)

GROUP_BY_CHOICES = ("day", "week")


@dataclass
class AnalyticsFilters:
    """Scope of an analytics query.

    ``user_id`` of None means every user's tasks, it never means "tasks with no
    assignee". Date bounds are inclusive.
    """
    user_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    group_by: str = "day"
    limit: int = 7


def percentage(part: int, whole: int) -> float:
    if not whole:
        return 0
    return round(part / whole * 100, 2)


def _round(value) -> Optional[float]:
    if value is None:
        return None
    return round(float(value), 2)


def _count_where(condition):
    return func.sum(case((condition, 1), else_=0))


class AnalyticsService:
    """Aggregations over the task table"""

    def __init__(self, db: Session, filters: Optional[AnalyticsFilters] = None):
        self.db = db
        self.filters = filters or AnalyticsFilters()

    def _bucket(self, column):
        if self.filters.group_by == "week":
            return week_bucket(column)
        return day_bucket(column)

    def _criteria(self, date_column) -> List:
        criteria = []
        if self.filters.user_id is not None:
            criteria.append(Task.assigned_to_id == self.filters.user_id)
        if self.filters.start_date is not None:
            criteria.append(date_column >= self.filters.start_date)
        if self.filters.end_date is not None:
            criteria.append(date_column <= self.filters.end_date)
        return criteria

    def _completed_criteria(self) -> List:
        return [Task.completed_at.isnot(None)] + self._criteria(Task.completed_at)

    def overview(self) -> Dict[str, Any]:
        criteria = self._criteria(Task.created_at)

        status_rows = (
            self.db.query(Task.status, func.count(Task.id))
            .filter(*criteria)
            .group_by(Task.status)
            .all()
        )
        priority_rows = (
            self.db.query(Task.priority, func.count(Task.id))
            .filter(*criteria)
            .group_by(Task.priority)
            .all()
        )
        overdue = (
            self.db.query(func.count(Task.id))
            .filter(
                *criteria,
                Task.due_date.isnot(None),
                Task.due_date < datetime.utcnow(),
                Task.status != TaskStatus.COMPLETED,
            )
            .scalar()
        ) or 0

        by_status = {TaskStatus(status): count for status, count in status_rows}
        total = sum(by_status.values())
        completed = by_status.get(TaskStatus.COMPLETED, 0)

        return {
            "total_tasks": total,
            "completed_tasks": completed,
            "pending_tasks": by_status.get(TaskStatus.PENDING, 0),
            "in_progress_tasks": by_status.get(TaskStatus.IN_PROGRESS, 0),
            "overdue_tasks": overdue,
            "completion_rate": percentage(completed, total),
            "status_breakdown": [
                {"status": TaskStatus(status).value, "count": count} for status, count in status_rows
            ],
            "priority_breakdown": [
                {"priority": TaskPriority(priority).value, "count": count} for priority, count in priority_rows
            ],
        }

    def completion_trends(self) -> List[Dict[str, Any]]:
        bucket = self._bucket(Task.completed_at)
        rows = (
            self.db.query(
                bucket.label("bucket"),
                func.count(Task.id).label("completed"),
                _count_where(Task.priority == TaskPriority.HIGH).label("high"),
                _count_where(Task.priority == TaskPriority.MEDIUM).label("medium"),
                _count_where(Task.priority == TaskPriority.LOW).label("low"),
            )
            .filter(*self._completed_criteria())
            .group_by(bucket)
            .order_by(bucket)
            .all()
        )
        return [
            {
                "date": row.bucket,
                "completed": row.completed,
                "high_priority": int(row.high or 0),
                "medium_priority": int(row.medium or 0),
                "low_priority": int(row.low or 0),
            }
            for row in rows
        ]

    def productivity(self) -> List[Dict[str, Any]]:
        bucket = self._bucket(Task.created_at)
        rows = (
            self.db.query(
                bucket.label("bucket"),
                func.count(Task.id).label("created"),
                _count_where(Task.status == TaskStatus.COMPLETED).label("completed"),
                _count_where(Task.status == TaskStatus.PENDING).label("pending"),
                _count_where(Task.status == TaskStatus.IN_PROGRESS).label("in_progress"),
            )
            .filter(*self._criteria(Task.created_at))
            .group_by(bucket)
            .order_by(bucket)
            .all()
        )
        result = []
        for row in rows:
            completed = int(row.completed or 0)
            result.append({
                "date": row.bucket,
                "created": row.created,
                "completed": completed,
                "pending": int(row.pending or 0),
                "in_progress": int(row.in_progress or 0),
                "completion_rate": percentage(completed, row.created),
            })
        return result

    def time_analysis(self) -> Dict[str, Any]:
        hours = hours_between(Task.created_at, Task.completed_at)

        def avg_for(priority):
            return func.avg(case((Task.priority == priority, hours), else_=None))

        row = (
            self.db.query(
                func.count(Task.id).label("total"),
                func.avg(hours).label("avg_hours"),
                func.min(hours).label("min_hours"),
                func.max(hours).label("max_hours"),
                avg_for(TaskPriority.HIGH).label("high"),
                avg_for(TaskPriority.MEDIUM).label("medium"),
                avg_for(TaskPriority.LOW).label("low"),
            )
            .filter(*self._completed_criteria())
            .one()
        )

        if not row.total:
            return {
                "avg_completion_time_hours": 0,
                "min_completion_time_hours": 0,
                "max_completion_time_hours": 0,
                "avg_completion_time_days": 0,
                "total_completed": 0,
                "by_priority": {"high": None, "medium": None, "low": None},
            }

        return {
            "avg_completion_time_hours": _round(row.avg_hours),
            "min_completion_time_hours": _round(row.min_hours),
            "max_completion_time_hours": _round(row.max_hours),
            "avg_completion_time_days": _round(float(row.avg_hours) / 24),
            "total_completed": row.total,
            "by_priority": {
                "high": _round(row.high),
                "medium": _round(row.medium),
                "low": _round(row.low),
            },
        }

    def best_days(self) -> List[Dict[str, Any]]:
        """Calendar dates with the most completions, busiest first.

        Dates with equal counts come back in whatever order the database
        groups them; there is no secondary sort.
        """
        date_key = day_bucket(Task.completed_at)
        weekday = day_of_week(Task.completed_at)
        completed_count = func.count(Task.id)
        rows = (
            self.db.query(
                date_key.label("date"),
                weekday.label("day_of_week"),
                completed_count.label("completed_count"),
            )
            .filter(*self._completed_criteria())
            .group_by(date_key, weekday)
            .order_by(completed_count.desc())
            .limit(self.filters.limit)
            .all()
        )
        return [
            {"date": row.date, "day_of_week": int(row.day_of_week), "completed_count": row.completed_count}
            for row in rows
        ]

    def task_stats_by_user(self) -> List[Dict[str, Any]]:
        """Per-assignee totals, used by the admin reports and team productivity"""
        criteria = self._criteria(Task.created_at)
        completion_hours = case(
            (Task.status == TaskStatus.COMPLETED, hours_between(Task.created_at, Task.completed_at)),
            else_=None,
        )
        rows = (
            self.db.query(
                User.id.label("user_id"),
                User.name.label("name"),
                User.email.label("email"),
                User.role.label("role"),
                func.count(Task.id).label("total"),
                _count_where(Task.status == TaskStatus.COMPLETED).label("completed"),
                _count_where(Task.status == TaskStatus.IN_PROGRESS).label("in_progress"),
                _count_where(Task.status == TaskStatus.PENDING).label("pending"),
                _count_where(Task.priority == TaskPriority.HIGH).label("high_priority"),
                _count_where(
                    and_(
                        Task.due_date.isnot(None),
                        Task.due_date < datetime.utcnow(),
                        Task.status != TaskStatus.COMPLETED,
                    )
                ).label("overdue"),
                func.avg(completion_hours).label("avg_hours"),
            )
            .join(Task, Task.assigned_to_id == User.id)
            .filter(*criteria)
            .group_by(User.id, User.name, User.email, User.role)
            .order_by(func.count(Task.id).desc())
            .all()
        )
        result = []
        for row in rows:
            completed = int(row.completed or 0)
            result.append({
                "user_id": row.user_id,
                "name": row.name,
                "email": row.email,
                "role": row.role.value if hasattr(row.role, "value") else row.role,
                "total_tasks": row.total,
                "completed_tasks": completed,
                "in_progress_tasks": int(row.in_progress or 0),
                "pending_tasks": int(row.pending or 0),
                "high_priority_tasks": int(row.high_priority or 0),
                "overdue_tasks": int(row.overdue or 0),
                "completion_rate": percentage(completed, row.total),
                "avg_completion_days": _round(float(row.avg_hours) / 24) if row.avg_hours is not None else None,
            })
        return result
