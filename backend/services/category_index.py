"""
Category usage index shared by every batch.

All counter changes are single SQL statements (``usage_count = usage_count + n``)
so concurrent batches touching the same (type, name) never lose updates.
"""
from __future__ import annotations

import logging
from collections import Counter

from sqlalchemy import case
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from models.prtimes_categories import CATEGORY_TYPES, PRTimesCategory
from services.errors import ConsistencyError
from services.row_normalizer import PLACEHOLDER

logger = logging.getLogger(__name__)


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise RuntimeError(f"Unsupported database dialect for category upsert: {dialect}")


def _check_type(category_type: str) -> str:
    if category_type not in CATEGORY_TYPES:
        raise ValueError(f"Unknown category type: {category_type}")
    return category_type


def upsert_many(db: Session, counts: Counter | dict[tuple[str, str], int]) -> None:
    """Add ``n`` to each (type, name); missing entries are created with count ``n``."""
    # sorted so concurrent writers lock rows in the same order
    values = [
        {
            "category_type": _check_type(ctype),
            "category_name": name,
            "usage_count": int(n),
            "is_active": True,
        }
        for (ctype, name), n in sorted(counts.items())
        if n > 0
    ]
    if not values:
        return

    insert = _insert_for(db)
    stmt = insert(PRTimesCategory).values(values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["category_type", "category_name"],
        set_={"usage_count": PRTimesCategory.__table__.c.usage_count + stmt.excluded.usage_count},
    )
    db.execute(stmt)


def upsert(db: Session, category_type: str, category_name: str, by: int = 1) -> None:
    upsert_many(db, {(category_type, category_name): by})


def decrement(db: Session, category_type: str, category_name: str, by: int) -> int:
    """
    Lower a count by ``by``, floored at zero. The row is never removed and
    ``is_active`` is left alone. Returns the amount actually subtracted.
    """
    _check_type(category_type)
    if by <= 0:
        return 0

    key_filter = (
        PRTimesCategory.category_type == category_type,
        PRTimesCategory.category_name == category_name,
    )
    current = (
        db.query(PRTimesCategory.usage_count)
        .filter(*key_filter)
        .with_for_update()
        .scalar()
    )
    if current is None:
        logger.warning(
            "Category index consistency: %s",
            ConsistencyError(f"category {category_type}:{category_name!r} missing, cannot subtract {by}"),
        )
        return 0
    if current < by:
        logger.warning(
            "Category index consistency: %s",
            ConsistencyError(
                f"category {category_type}:{category_name!r} has {current}, cannot subtract {by}; flooring at 0"
            ),
        )

    db.query(PRTimesCategory).filter(*key_filter).update(
        {
            PRTimesCategory.usage_count: case(
                (PRTimesCategory.usage_count > by, PRTimesCategory.usage_count - by),
                else_=0,
            )
        },
        synchronize_session=False,
    )
    return min(current, by)


def decrement_many(db: Session, counts: Counter | dict[tuple[str, str], int]) -> int:
    removed = 0
    for (ctype, name), n in sorted(counts.items()):
        removed += decrement(db, ctype, name, n)
    return removed


def _ordered_query(db: Session, category_type: str | None):
    query = db.query(PRTimesCategory).filter(PRTimesCategory.is_active.is_(True))
    if category_type is not None:
        query = query.filter(PRTimesCategory.category_type == _check_type(category_type))
    return query.order_by(
        PRTimesCategory.category_type.asc(),
        case((PRTimesCategory.category_name == PLACEHOLDER, 0), else_=1),
        PRTimesCategory.usage_count.desc(),
        PRTimesCategory.category_name.asc(),
    )


def list_categories(db: Session, category_type: str | None = None) -> dict[str, list[str]] | list[str]:
    rows = _ordered_query(db, category_type).all()
    if category_type is not None:
        return [row.category_name for row in rows]

    grouped: dict[str, list[str]] = {ctype: [] for ctype in CATEGORY_TYPES}
    for row in rows:
        grouped[row.category_type].append(row.category_name)
    return grouped


def category_counts(db: Session, category_type: str | None = None) -> list[dict]:
    return [
        {
            "categoryType": row.category_type,
            "categoryName": row.category_name,
            "usageCount": int(row.usage_count or 0),
            "isActive": bool(row.is_active),
        }
        for row in _ordered_query(db, category_type).all()
    ]
