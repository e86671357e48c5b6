# app/utils/search.py
from sqlalchemy import func, select

LIKE_ESCAPE = "\\"


def like_pattern(term: str) -> str:
    """Substring pattern for ILIKE with %, _ and the escape character taken literally"""
    escaped = (
        term.strip()
        .replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def contains(column, term: str):
    return column.ilike(like_pattern(term), escape=LIKE_ESCAPE)


def any_element_contains(db, json_column, term: str):
    """EXISTS over the elements of a JSON string array, matching each element on its own"""
    if db.get_bind().dialect.name == "postgresql":
        elements = func.json_array_elements_text(json_column).table_valued("value")
    else:
        elements = func.json_each(json_column).table_valued("value")
    return select(elements.c.value).where(contains(elements.c.value, term)).exists()
