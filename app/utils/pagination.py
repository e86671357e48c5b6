# app/utils/pagination.py
import math


def paginate(query, page: int, limit: int):
    """Apply page/limit to a query and return (items, pagination block)"""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }
