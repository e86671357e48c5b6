# app/utils/sql_functions.py
"""
Date bucketing expressions that compile for both PostgreSQL and SQLite.

Analytics group in the database; these constructs give each backend its own
spelling of "day key", "ISO week key", "weekday number" and "hours between".
"""

import sqlite3
from datetime import date

from sqlalchemy import Float, Integer, String, event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.expression import FunctionElement


class day_bucket(FunctionElement):
    """YYYY-MM-DD key of a timestamp"""
    type = String()
    inherit_cache = True
    name = "day_bucket"


class week_bucket(FunctionElement):
    """ISO week key of a timestamp, e.g. 2024-W07"""
    type = String()
    inherit_cache = True
    name = "week_bucket"


class day_of_week(FunctionElement):
    """Weekday number, 1 = Sunday through 7 = Saturday"""
    type = Integer()
    inherit_cache = True
    name = "day_of_week"


class hours_between(FunctionElement):
    """Hours elapsed from the first timestamp to the second"""
    type = Float()
    inherit_cache = True
    name = "hours_between"


@compiles(day_bucket)
def _day_bucket_default(element, compiler, **kw):
    return "strftime('%%Y-%%m-%%d', %s)" % compiler.process(element.clauses, **kw)


@compiles(day_bucket, "postgresql")
def _day_bucket_pg(element, compiler, **kw):
    return "to_char(%s, 'YYYY-MM-DD')" % compiler.process(element.clauses, **kw)


@compiles(week_bucket)
def _week_bucket_default(element, compiler, **kw):
    return "iso_week(%s)" % compiler.process(element.clauses, **kw)


@compiles(week_bucket, "postgresql")
def _week_bucket_pg(element, compiler, **kw):
    return "to_char(%s, 'IYYY-\"W\"IW')" % compiler.process(element.clauses, **kw)


@compiles(day_of_week)
def _day_of_week_default(element, compiler, **kw):
    return "(CAST(strftime('%%w', %s) AS INTEGER) + 1)" % compiler.process(element.clauses, **kw)


@compiles(day_of_week, "postgresql")
def _day_of_week_pg(element, compiler, **kw):
    return "(CAST(EXTRACT(DOW FROM %s) AS INTEGER) + 1)" % compiler.process(element.clauses, **kw)


@compiles(hours_between)
def _hours_between_default(element, compiler, **kw):
    start, end = list(element.clauses)
    return "((julianday(%s) - julianday(%s)) * 24.0)" % (
        compiler.process(end, **kw),
        compiler.process(start, **kw),
    )


@compiles(hours_between, "postgresql")
def _hours_between_pg(element, compiler, **kw):
    start, end = list(element.clauses)
    return "(EXTRACT(EPOCH FROM (%s - %s)) / 3600.0)" % (
        compiler.process(end, **kw),
        compiler.process(start, **kw),
    )


def iso_week(value):
    """SQLite implementation of the ISO week key"""
    if value is None:
        return None
    year, week, _ = date.fromisoformat(str(value)[:10]).isocalendar()
    return f"{year}-W{week:02d}"


@event.listens_for(Engine, "connect")
def _register_sqlite_functions(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        dbapi_connection.create_function("iso_week", 1, iso_week, deterministic=True)
