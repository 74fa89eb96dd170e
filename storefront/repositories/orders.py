"""
Order persistence. The database is the only source of truth: there is no
in-process cache, and status changes go through update_conditional().
"""
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import func, update
from sqlmodel import Session, select

from storefront.models import Order
from storefront.models.order import utcnow

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass
class Page:
    items: list[Order] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size if self.page_size else 0


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, order: Order, *related: Any) -> Order:
        """Inserts the order together with dependent rows (discount, audit) in one commit."""
        self.db.add(order)
        self.db.flush()
        for row in related:
            self.db.add(row)
        self.db.commit()
        self.db.refresh(order)
        return order

    def find_one(self, **filters: Any) -> Order | None:
        stmt = select(Order)
        for name, value in filters.items():
            column = getattr(Order, name)
            if isinstance(value, (list, tuple, set, frozenset)):
                stmt = stmt.where(column.in_(list(value)))
            else:
                stmt = stmt.where(column == value)
        return self.db.exec(stmt).first()

    def get(self, order_id: str) -> Order | None:
        # populate_existing: always re-read, a concurrent writer may have moved the order
        return self.db.get(Order, order_id, populate_existing=True)

    def update_conditional(
        self,
        order_id: str,
        expected_status: str,
        patch: dict[str, Any],
        *related: Any,
    ) -> Order | None:
        """
        UPDATE orders SET ... WHERE id = :id AND status = :expected.
        Returns the fresh order, or None when the precondition no longer holds
        (nothing is written then, `related` rows included).
        """
        values = dict(patch)
        values["updated_at"] = utcnow()
        result = self.db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            return None
        for row in related:
            self.db.add(row)
        self.db.commit()
        return self.get(order_id)

    def find_many(
        self,
        filters: dict[str, Any] | None = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page:
        """Newest first; page is 1-based."""
        page = max(1, page)
        page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        stmt = select(Order)
        count_stmt = select(func.count()).select_from(Order)
        for name, value in (filters or {}).items():
            if value is None:
                continue
            column = getattr(Order, name)
            stmt = stmt.where(column == value)
            count_stmt = count_stmt.where(column == value)
        total = self.db.exec(count_stmt).one()
        items = list(
            self.db.exec(
                stmt.order_by(Order.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
            ).all()
        )
        return Page(items=items, total=int(total), page=page, page_size=page_size)

    def stats(self) -> dict[str, Any]:
        """Count and amount per status, total orders, revenue of paid + delivered."""
        rows = self.db.exec(
            select(Order.status, func.count(), func.coalesce(func.sum(Order.total_amount), 0)).group_by(Order.status)
        ).all()
        by_status = {status: {"count": int(count), "total_amount": amount} for status, count, amount in rows}
        total_orders = sum(v["count"] for v in by_status.values())
        revenue = sum(
            (by_status[s]["total_amount"] for s in ("paid", "delivered") if s in by_status),
            0,
        )
        return {"by_status": by_status, "total_orders": total_orders, "total_revenue": revenue}
