"""Offset pagination shared by the student and fee listings."""

from typing import Any, List, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select


def total_pages_for(total: int, limit: int) -> int:
    return (total + limit - 1) // limit if limit else 0


async def paginate(
    db: AsyncSession,
    stmt: Select,
    page: int,
    limit: int,
) -> Tuple[List[Any], int, int]:
    """Run stmt for one page. Returns (rows, total match count, total pages)."""
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar() or 0

    offset = (page - 1) * limit
    result = await db.execute(stmt.offset(offset).limit(limit))
    rows = list(result.scalars().all())
    return rows, total, total_pages_for(total, limit)
